import io
import threading

import pytest

from carnivalkit.progress import Tracker, format_bytes


@pytest.fixture
def make_tracker():
    trackers = []

    def _make(total_bytes, total_files, verbose=False):
        out = io.StringIO()
        tracker = Tracker(total_bytes, total_files, verbose, output=out)
        trackers.append(tracker)
        return tracker, out

    yield _make
    for tracker in trackers:
        tracker.wait()


def test_new(make_tracker):
    tracker, _ = make_tracker(1000, 5)
    assert tracker.total_bytes == 1000
    assert tracker.total_files == 5


def test_add_file(make_tracker):
    tracker, _ = make_tracker(1000, 2)
    tracker.add_file(0, "file1.txt", 5, 500, 0)
    tracker.add_file(1, "file2.txt", 3, 500, 0)
    assert len(tracker.files) == 2
    fp = tracker.files[0]
    assert fp.file_name == "file1.txt"
    assert fp.total_chunks == 5
    assert fp.total_size == 500


def test_chunk_downloaded(make_tracker):
    tracker, _ = make_tracker(1000, 1)
    tracker.chunk_downloaded(0, 100)
    tracker.chunk_downloaded(0, 200)
    assert tracker.downloaded_bytes == 300


def test_add_downloaded_bytes_counts_both(make_tracker):
    tracker, _ = make_tracker(1000, 1)
    tracker.add_downloaded_bytes(250)
    assert tracker.downloaded_bytes == 250
    assert tracker.written_bytes == 250


def test_chunk_written(make_tracker):
    tracker, _ = make_tracker(1000, 1)
    tracker.add_file(0, "file.txt", 3, 300, 0)
    tracker.chunk_written(0, 100)
    tracker.chunk_written(0, 100)
    assert tracker.written_bytes == 200
    assert tracker.files[0].chunks_written == 2
    assert tracker.files[0].bytes_written == 200


def test_chunk_written_unknown_file_still_counts_bytes(make_tracker):
    tracker, _ = make_tracker(1000, 1)
    tracker.chunk_written(7, 64)
    assert tracker.written_bytes == 64
    assert 7 not in tracker.files


def test_file_complete(make_tracker):
    tracker, _ = make_tracker(1000, 2)
    tracker.add_file(0, "file1.txt", 5, 500, 0)
    tracker.add_file(1, "file2.txt", 3, 500, 0)
    tracker.file_complete(0)
    assert tracker.completed_files == 1
    assert tracker.files[0].complete is True
    assert tracker.files[0].chunks_written == 5
    assert tracker.files[1].complete is False


def test_get_stats(make_tracker):
    tracker, _ = make_tracker(1000, 5)
    tracker.file_complete(0)
    tracker.file_complete(1)
    _, _, completed, total = tracker.get_stats()
    assert completed == 2
    assert total == 5


def _finishes(action):
    done = threading.Event()

    def run():
        action()
        done.set()

    threading.Thread(target=run, daemon=True).start()
    return done.wait(1.0)


def test_wait_returns_and_renders():
    out = io.StringIO()
    tracker = Tracker(100, 1, output=out)
    assert _finishes(tracker.wait)
    assert "Files: 0/1" in out.getvalue()


def test_abort_returns():
    out = io.StringIO()
    tracker = Tracker(100, 1, output=out)
    assert _finishes(tracker.abort)
    assert "100 B" in out.getvalue()


def test_concurrent_access():
    tracker = Tracker(10000, 10, output=io.StringIO())
    for i in range(10):
        tracker.add_file(i, "file.txt", 10, 1000, 0)

    def downloads():
        for i in range(100):
            tracker.chunk_downloaded(i % 10, 100)

    def writes():
        for i in range(100):
            tracker.chunk_written(i % 10, 100)

    def completes():
        for i in range(10):
            tracker.file_complete(i)

    threads = [threading.Thread(target=f) for f in (downloads, writes, completes)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    tracker.wait()

    assert tracker.completed_files == 10
    assert tracker.downloaded_bytes == 10000
    assert tracker.written_bytes == 10000


def test_render_shows_totals():
    out = io.StringIO()
    tracker = Tracker(2048, 3, output=out)
    tracker.chunk_downloaded(0, 1024)
    tracker.file_complete(0)
    tracker.wait()
    text = out.getvalue()
    assert "1.00 KB / 2.00 KB [ 50.0%]" in text
    assert "Files: 1/3" in text


def test_verbose_render_truncates_long_names():
    out = io.StringIO()
    long_name = "dir/" + "x" * 60 + "/end.bin"
    tracker = Tracker(100, 2, verbose=True, output=out)
    tracker.add_file(0, long_name, 4, 100, 0)
    tracker.add_file(1, "short.txt", 2, 50, 0)
    tracker.file_complete(1)
    tracker.wait()
    text = out.getvalue()
    assert "..." + long_name[-42:] in text
    assert "✓  short.txt" in text
    assert "100.0%" in text


def test_print_summary():
    out = io.StringIO()
    tracker = Tracker(1536, 2, output=out)
    tracker.file_complete(0)
    tracker.file_complete(1)
    tracker.wait()
    tracker.print_summary()
    assert out.getvalue().endswith("\n✓ Download complete: 2 files, 1.50 KB\n")


@pytest.mark.parametrize(
    "count, expected",
    [
        (0, "0 B"),
        (100, "100 B"),
        (1023, "1023 B"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (1048576, "1.00 MB"),
        (1572864, "1.50 MB"),
        (1073741824, "1.00 GB"),
        (1610612736, "1.50 GB"),
        (1099511627776, "1.00 TB"),
    ],
)
def test_format_bytes(count, expected):
    assert format_bytes(count) == expected