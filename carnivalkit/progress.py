"""Download progress tracking with a live terminal display."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass
from typing import TextIO

_CLEAR_LINE = "\033[K"
_FILE_BAR_WIDTH = 20
_BAR_WIDTH = 60
_MAX_NAME = 45


@dataclass
class _FileProgress:
    file_name: str
    total_chunks: int
    total_size: int
    chunks_written: int = 0
    bytes_written: int = 0
    complete: bool = False


def format_bytes(count: int) -> str:
    """Format a byte count with binary units, e.g. ``1.50 KB``."""
    unit = 1024
    if count < unit:
        return f"{count} B"
    div, exp = unit, 0
    n = count // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{count / div:.2f} {'KMGTPE'[exp]}B"


def _bar(percent: float, width: int) -> str:
    filled = min(max(int(percent / 100 * width), 0), width)
    return "█" * filled + "░" * (width - filled)


class Tracker:
    """Tracks downloaded and written bytes and redraws a progress display.

    A background thread redraws the display every ``interval`` seconds until
    :meth:`wait` or :meth:`abort` is called.
    """

    def __init__(
        self,
        total_bytes: int,
        total_files: int,
        verbose: bool = False,
        output: TextIO | None = None,
        interval: float = 0.1,
    ) -> None:
        self.total_bytes = total_bytes
        self.total_files = total_files
        self.verbose = verbose
        self.files: dict[int, _FileProgress] = {}
        self.downloaded_bytes = 0
        self.written_bytes = 0
        self.completed_files = 0
        self.download_speed = 0
        self.disk_speed = 0

        self._output = output if output is not None else sys.stdout
        self._interval = interval
        self._lock = threading.Lock()
        self._last_downloaded = 0
        self._last_written = 0
        self._last_speed_update = time.monotonic()
        self._lines_drawn = 0
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._display_loop, daemon=True)
        self._thread.start()

    def __enter__(self) -> "Tracker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wait()

    def _display_loop(self) -> None:
        while not self._stop.wait(self._interval):
            self._update_speed()
            self._render()
        self._render()

    def _update_speed(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_speed_update
        if elapsed <= 0:
            return
        with self._lock:
            downloaded = self.downloaded_bytes
            written = self.written_bytes
        self.download_speed = int((downloaded - self._last_downloaded) / elapsed)
        self.disk_speed = int((written - self._last_written) / elapsed)
        self._last_downloaded = downloaded
        self._last_written = written
        self._last_speed_update = now

    def _file_lines(self) -> list[str]:
        lines = []
        with self._lock:
            entries = sorted(self.files.items())
            snapshot = [
                (fp.file_name, fp.total_chunks, fp.chunks_written, fp.complete)
                for _, fp in entries
            ]
        for name, total_chunks, chunks_written, complete in snapshot:
            percent = chunks_written / total_chunks * 100 if total_chunks > 0 else 0.0
            status = "✓ " if complete else "⏳"
            if len(name) > _MAX_NAME:
                name = "..." + name[-42:]
            lines.append(
                f"{_CLEAR_LINE}{status} {name:<{_MAX_NAME}} "
                f"[{_bar(percent, _FILE_BAR_WIDTH)}] {percent:5.1f}%"
            )
        lines.append(_CLEAR_LINE)
        return lines

    def _render(self) -> None:
        parts = []
        if self._lines_drawn > 0:
            parts.append(f"\033[{self._lines_drawn}A")

        with self._lock:
            downloaded = self.downloaded_bytes
            completed = self.completed_files
        percent = downloaded / self.total_bytes * 100 if self.total_bytes > 0 else 0.0

        lines = self._file_lines() if self.verbose else []
        lines.append(f"{_CLEAR_LINE}[{_bar(percent, _BAR_WIDTH)}]")
        lines.append(
            f"{_CLEAR_LINE}{format_bytes(downloaded)} / {format_bytes(self.total_bytes)} "
            f"[{percent:5.1f}%] | DL: {format_bytes(self.download_speed)}/s | "
            f"Disk: {format_bytes(self.disk_speed)}/s | "
            f"Files: {completed}/{self.total_files}"
        )
        lines.extend(_CLEAR_LINE for _ in range(len(lines), self._lines_drawn))

        parts.append("\n".join(lines) + "\n")
        self._output.write("".join(parts))
        self._output.flush()
        self._lines_drawn = len(lines)

    def add_file(
        self,
        file_index: int,
        file_name: str,
        total_chunks: int,
        file_size: int,
        chunks_already_written: int = 0,
    ) -> None:
        """Start tracking a file."""
        with self._lock:
            self.files[file_index] = _FileProgress(
                file_name=file_name,
                total_chunks=total_chunks,
                total_size=file_size,
                chunks_written=chunks_already_written,
            )

    def chunk_downloaded(self, file_index: int, chunk_size: int) -> None:
        with self._lock:
            self.downloaded_bytes += chunk_size

    def add_downloaded_bytes(self, count: int) -> None:
        """Count bytes that were already on disk when resuming."""
        with self._lock:
            self.downloaded_bytes += count
            self.written_bytes += count

    def chunk_written(self, file_index: int, chunk_size: int) -> None:
        with self._lock:
            self.written_bytes += chunk_size
            fp = self.files.get(file_index)
            if fp is not None:
                fp.chunks_written += 1
                fp.bytes_written += chunk_size

    def file_complete(self, file_index: int) -> None:
        with self._lock:
            self.completed_files += 1
            fp = self.files.get(file_index)
            if fp is not None:
                fp.complete = True
                fp.chunks_written = fp.total_chunks

    def get_stats(self) -> tuple[int, int, int, int]:
        """Return ``(download_speed, disk_speed, completed_files, total_files)``."""
        with self._lock:
            completed = self.completed_files
        return self.download_speed, self.disk_speed, completed, self.total_files

    def wait(self) -> None:
        """Stop the display, drawing it one last time."""
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def print_summary(self) -> None:
        self._output.write(
            f"\n✓ Download complete: {self.completed_files} files, "
            f"{format_bytes(self.total_bytes)}\n"
        )
        self._output.flush()

    def abort(self) -> None:
        self.wait()