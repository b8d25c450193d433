"""Differences between two build manifests and applying them on disk."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field, replace
from typing import Iterable

from carnivalkit import logger
from carnivalkit.manifest import BuildRecord, ChangeTag, ChunkRecord
from carnivalkit.progress import format_bytes


@dataclass
class DeltaManifest:
    """Files added, modified and removed between two versions."""

    added: list[BuildRecord] = field(default_factory=list)
    modified: list[BuildRecord] = field(default_factory=list)
    removed: list[BuildRecord] = field(default_factory=list)

    def print_summary(self) -> None:
        if self.added:
            print(f"  Added: {len(self.added)} files")
        if self.modified:
            print(f"  Modified: {len(self.modified)} files")
        if self.removed:
            print(f"  Removed: {len(self.removed)} files")

    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


def _by_name(records: Iterable[BuildRecord]) -> dict[str, BuildRecord]:
    return {record.file_name: record for record in records}


def generate_delta(
    old_manifest: Iterable[BuildRecord], new_manifest: Iterable[BuildRecord]
) -> DeltaManifest:
    """Compare two manifests by file name and SHA."""
    old_files = _by_name(old_manifest)
    new_files = _by_name(new_manifest)
    delta = DeltaManifest()

    for name, new_record in new_files.items():
        old_record = old_files.get(name)
        if old_record is None:
            delta.added.append(replace(new_record, change_tag=ChangeTag.ADDED))
        elif old_record.sha != new_record.sha:
            delta.modified.append(replace(new_record, change_tag=ChangeTag.MODIFIED))

    for name, old_record in old_files.items():
        if name not in new_files:
            delta.removed.append(replace(old_record, change_tag=ChangeTag.REMOVED))

    return delta


def combine_manifests(delta: DeltaManifest) -> list[BuildRecord]:
    """Added, then modified, then removed records in one list."""
    return [*delta.added, *delta.modified, *delta.removed]


def _needs_content(record: BuildRecord) -> bool:
    return not record.is_directory() and not record.is_empty()


def filter_chunks_for_delta(
    all_chunks: Iterable[ChunkRecord], delta: DeltaManifest
) -> list[ChunkRecord]:
    """Keep only chunks of added or modified files that have content."""
    wanted = {
        record.file_name
        for record in (*delta.added, *delta.modified)
        if _needs_content(record)
    }
    return [chunk for chunk in all_chunks if chunk.file_path in wanted]


def check_for_resume_update(
    install_path: str | os.PathLike[str],
    delta: DeltaManifest,
    old_manifest: Iterable[BuildRecord],
) -> bool:
    """Tell whether files of the new version are already on disk."""
    old_files = _by_name(old_manifest)

    for record in delta.added:
        if _needs_content(record) and os.path.exists(
            os.path.join(install_path, record.file_name)
        ):
            return True

    for record in delta.modified:
        if not _needs_content(record):
            continue
        try:
            size = os.stat(os.path.join(install_path, record.file_name)).st_size
        except OSError:
            continue
        old_record = old_files.get(record.file_name)
        if old_record is None or size != old_record.size_in_bytes:
            return True

    return False


def _remove(path: str) -> None:
    """Remove a file or empty directory; a missing path is not an error."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise OSError(f"failed to remove {path}: {exc}") from exc


def _remove_all(path: str) -> None:
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise OSError(f"failed to remove directory {path}: {exc}") from exc


def cleanup_files(install_path: str | os.PathLike[str], delta: DeltaManifest) -> None:
    """Delete modified files (to be fetched again) and removed entries."""
    for record in delta.modified:
        if record.is_directory():
            continue
        logger.debug("Removing modified file", "file", record.file_name)
        _remove(os.path.join(install_path, record.file_name))
    cleanup_removed_files(install_path, delta)


def cleanup_removed_files(
    install_path: str | os.PathLike[str], delta: DeltaManifest
) -> None:
    """Delete files and directory trees no longer in the new version."""
    for record in delta.removed:
        path = os.path.join(install_path, record.file_name)
        logger.debug("Removing deleted file", "file", record.file_name)
        if record.is_directory():
            _remove_all(path)
        else:
            _remove(path)


def print_update_info(delta: DeltaManifest) -> None:
    """Print download size and the net change in disk usage."""
    download_size = sum(r.size_in_bytes for r in (*delta.added, *delta.modified))
    removed_size = sum(r.size_in_bytes for r in delta.removed)
    net_change = download_size - removed_size

    print("\n=== Update Info ===")
    print(f"Download Size: {format_bytes(download_size)}")
    if net_change >= 0:
        print(f"Disk Space Required: +{format_bytes(net_change)}")
    else:
        print(f"Disk Space Freed: {format_bytes(-net_change)}")