"""Integrity checks of installed files and downloaded chunks."""

from __future__ import annotations

import hashlib
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

from carnivalkit.manifest import BuildRecord

_READ_SIZE = 1024 * 1024


@dataclass
class VerifyResult:
    """Outcome of checking one file against its manifest record."""

    file_path: str
    expected: str
    actual: str = ""
    valid: bool = False
    error: str | None = None


def hash_file(path: str | os.PathLike[str]) -> str:
    """Return the hex SHA-256 digest of a file's contents."""
    hasher = hashlib.sha256()
    with open(path, "rb") as handle:
        for block in iter(lambda: handle.read(_READ_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def verify_chunk(data: bytes, expected_sha: str) -> bool:
    """Tell whether ``data`` hashes to ``expected_sha``."""
    return hashlib.sha256(data).hexdigest() == expected_sha


def verify_file(install_path: str | os.PathLike[str], record: BuildRecord) -> VerifyResult:
    """Check one file's presence, size and SHA-256 against its record."""
    path = os.path.join(install_path, record.file_name)
    result = VerifyResult(file_path=record.file_name, expected=record.sha)

    try:
        info = os.stat(path)
    except FileNotFoundError:
        result.error = "file missing"
        return result
    except OSError as exc:
        result.error = f"failed to stat file: {exc}"
        return result

    if os.path.isdir(path):
        result.error = "expected file but found directory"
        return result

    if info.st_size != record.size_in_bytes:
        result.error = (
            f"size mismatch: expected {record.size_in_bytes}, got {info.st_size}"
        )
        return result

    try:
        digest = hash_file(path)
    except OSError as exc:
        result.error = f"failed to hash file: {exc}"
        return result

    result.actual = digest
    result.valid = digest == record.sha
    if not result.valid:
        result.error = "hash mismatch"
    return result


def verify_installation(
    install_path: str | os.PathLike[str],
    records: Iterable[BuildRecord],
    verbose: bool = False,
    max_workers: int = 0,
) -> tuple[bool, list[VerifyResult]]:
    """Verify every non-directory record in parallel.

    Returns whether all files are valid, and one result per file.
    """
    files = [record for record in records if not record.is_directory()]
    if not files:
        return True, []

    workers = max_workers if max_workers > 0 else (os.cpu_count() or 1)
    total = len(files)
    lock = threading.Lock()
    checked = 0

    def check(record: BuildRecord) -> VerifyResult:
        nonlocal checked
        result = verify_file(install_path, record)
        with lock:
            checked += 1
            if verbose:
                status = "OK" if result.valid else "FAILED"
                print(f"[{checked}/{total}] {result.file_path}: {status}")
        return result

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(check, files))

    return all(result.valid for result in results), results