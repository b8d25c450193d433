"""Build and chunk manifests: parsing, fetching and path handling."""

from __future__ import annotations

import csv
import io
import os
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from carnivalkit import logger

CONTENT_URL = "https://content.indiegalacdn.com"
MAX_CHUNK_SIZE = 1048576
USER_AGENT = "galaClient"
DIRECTORY_FLAG = 40

_INT_RE = re.compile(r"[+-]?[0-9]+")


class BuildOS(str, Enum):
    """Operating system a build targets, as named on the content server."""

    WINDOWS = "win"
    LINUX = "lin"
    MAC = "mac"


class ChangeTag(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class ManifestError(Exception):
    """Raised when a manifest cannot be read or fetched."""


@dataclass
class BuildRecord:
    """One file or directory entry of a build manifest."""

    size_in_bytes: int = 0
    chunks: int = 0
    sha: str = ""
    flags: int = 0
    file_name: str = ""
    change_tag: ChangeTag | None = None

    def is_directory(self) -> bool:
        return self.flags == DIRECTORY_FLAG

    def is_empty(self) -> bool:
        return self.size_in_bytes == 0


@dataclass
class ChunkRecord:
    """One chunk entry of a chunks manifest."""

    id: int = 0
    file_path: str = ""
    chunk_sha: str = ""


def change_tag_from_string(value: str) -> ChangeTag:
    try:
        return ChangeTag(value)
    except ValueError:
        raise ManifestError(f"invalid ChangeTag value: {value}") from None


def _atoi(text: str) -> int:
    return int(text) if _INT_RE.fullmatch(text) else 0


def _iter_rows(data: bytes | str) -> Iterator[dict[str, str]]:
    """Yield each CSV row as a mapping from header name to field."""
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode("utf-8", "surrogateescape")
    else:
        text = data
    rows = (row for row in csv.reader(io.StringIO(text, newline="")) if row)

    try:
        header = next(rows)
    except StopIteration:
        raise ManifestError("failed to read CSV header: EOF") from None
    except csv.Error as exc:
        raise ManifestError(f"failed to read CSV header: {exc}") from exc

    columns = {name: idx for idx, name in enumerate(header)}
    try:
        for row in rows:
            if len(row) != len(header):
                raise ManifestError("failed to read CSV row: wrong number of fields")
            yield {name: row[idx] for name, idx in columns.items()}
    except csv.Error as exc:
        raise ManifestError(f"failed to read CSV row: {exc}") from exc


def _build_record(fields: dict[str, str]) -> BuildRecord:
    record = BuildRecord()
    if "Size in Bytes" in fields:
        record.size_in_bytes = _atoi(fields["Size in Bytes"])
    if "Chunks" in fields:
        record.chunks = _atoi(fields["Chunks"])
    if "SHA" in fields:
        record.sha = fields["SHA"]
    if "Flags" in fields:
        record.flags = _atoi(fields["Flags"])
    if "File Name" in fields:
        record.file_name = normalize_path(fields["File Name"])
    if "Change Tag" in fields:
        try:
            record.change_tag = change_tag_from_string(fields["Change Tag"])
        except ManifestError:
            logger.warn("Unknown ChangeTag supplied", "change_tag", fields["Change Tag"])
    return record


def _chunk_record(fields: dict[str, str]) -> ChunkRecord:
    record = ChunkRecord()
    if "ID" in fields:
        record.id = _atoi(fields["ID"])
    if "Filepath" in fields:
        record.file_path = normalize_path(fields["Filepath"])
    if "Chunk SHA" in fields:
        record.chunk_sha = fields["Chunk SHA"]
    return record


def parse_build_manifest(data: bytes | str) -> list[BuildRecord]:
    """Parse a build manifest CSV into records."""
    return [_build_record(fields) for fields in _iter_rows(data)]


def parse_chunks_manifest(data: bytes | str) -> list[ChunkRecord]:
    """Parse a chunks manifest CSV into records."""
    return [_chunk_record(fields) for fields in _iter_rows(data)]


def fetch_csv(url: str, timeout: float | None = 30.0) -> bytes:
    """Download ``url`` and return its body; anything but HTTP 200 fails."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            if response.status != 200:
                raise ManifestError(f"HTTP {response.status}")
            return response.read()
    except urllib.error.HTTPError as exc:
        raise ManifestError(f"HTTP {exc.code}") from exc
    except OSError as exc:
        raise ManifestError(f"request failed: {exc}") from exc


def _product_base(namespace: str, id_key_name: str, build_os: BuildOS | str) -> str:
    os_name = BuildOS(build_os).value
    return f"{CONTENT_URL}/DevShowCaseSourceVolume/dev_fold_{namespace}/{id_key_name}/{os_name}"


def fetch_build(
    namespace: str, id_key_name: str, build_os: BuildOS | str, version: str
) -> tuple[list[BuildRecord], bytes]:
    """Fetch and parse a build manifest; returns the records and the raw CSV."""
    url = f"{_product_base(namespace, id_key_name, build_os)}/{version}_manifest.csv"
    try:
        data = fetch_csv(url)
    except ManifestError as exc:
        raise ManifestError(f"failed to fetch build manifest: {exc}") from exc
    return parse_build_manifest(data), data


def fetch_chunks(
    namespace: str, id_key_name: str, build_os: BuildOS | str, version: str
) -> list[ChunkRecord]:
    """Fetch and parse the chunks manifest of a build."""
    url = f"{_product_base(namespace, id_key_name, build_os)}/{version}_manifest_chunks.csv"
    try:
        data = fetch_csv(url)
    except ManifestError as exc:
        raise ManifestError(f"failed to fetch chunks manifest: {exc}") from exc
    return parse_chunks_manifest(data)


def get_chunk_url(
    namespace: str, id_key_name: str, build_os: BuildOS | str, chunk_sha: str
) -> str:
    return f"{_product_base(namespace, id_key_name, build_os)}/{chunk_sha}"


def latin1_to_utf8(data: bytes | str) -> str:
    """Read every byte as a Latin-1 character."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("latin-1")
    return data.encode("utf-8", "surrogateescape").decode("latin-1")


def _normalize_separators(path: str) -> str:
    return path.replace("\\", "/").replace("/", os.sep)


def normalize_path(path: bytes | str) -> str:
    """Decode as Latin-1, then use the running system's path separator."""
    return _normalize_separators(latin1_to_utf8(path))


def extract_sha(chunk_id: str) -> str:
    """Return the part after the last underscore of ``prefix_index_sha``."""
    return chunk_id.rpartition("_")[2]