import hashlib
import os

from carnivalkit.manifest import BuildRecord, parse_build_manifest
from carnivalkit.verify import (
    VerifyResult,
    hash_file,
    verify_chunk,
    verify_file,
    verify_installation,
)

HEADER = "Size in Bytes,Chunks,SHA,Flags,File Name,Change Tag\n"


def _sha(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def test_hash_file(tmp_path):
    path = tmp_path / "test.txt"
    path.write_bytes(b"hello world")
    assert hash_file(path) == (
        "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"
    )


def test_hash_file_not_found(tmp_path):
    try:
        hash_file(tmp_path / "nonexistent" / "file.txt")
    except FileNotFoundError as exc:
        assert "file.txt" in str(exc)
    else:
        raise AssertionError("expected FileNotFoundError")


def test_verify_chunk():
    data = b"test chunk data"
    assert verify_chunk(data, _sha(data)) is True
    assert verify_chunk(data, "wronghash") is False


def test_verify_file_success(tmp_path):
    content = b"file content for verification"
    (tmp_path / "game").mkdir()
    (tmp_path / "game" / "test.txt").write_bytes(content)
    sha = _sha(content)
    record = BuildRecord(
        file_name=os.path.join("game", "test.txt"), sha=sha, size_in_bytes=len(content)
    )

    result = verify_file(tmp_path, record)

    assert result.valid, result.error
    assert result.expected == sha
    assert result.actual == sha
    assert result.error is None


def test_verify_file_missing(tmp_path):
    record = BuildRecord(file_name="missing.txt", sha="abc123", size_in_bytes=100)
    result = verify_file(tmp_path, record)
    assert result == VerifyResult(
        file_path="missing.txt", expected="abc123", error="file missing"
    )


def test_verify_file_wrong_size(tmp_path):
    (tmp_path / "test.txt").write_bytes(b"short")
    record = BuildRecord(file_name="test.txt", sha="abc123", size_in_bytes=1000)
    result = verify_file(tmp_path, record)
    assert result.valid is False
    assert result.error == "size mismatch: expected 1000, got 5"


def test_verify_file_wrong_hash(tmp_path):
    content = b"test content"
    (tmp_path / "test.txt").write_bytes(content)
    record = BuildRecord(
        file_name="test.txt", sha="wronghash123456789", size_in_bytes=len(content)
    )
    result = verify_file(tmp_path, record)
    assert result.valid is False
    assert result.error == "hash mismatch"
    assert result.actual == _sha(content)


def test_verify_file_directory(tmp_path):
    (tmp_path / "dir").mkdir()
    record = BuildRecord(file_name="dir", sha="abc", size_in_bytes=0)
    result = verify_file(tmp_path, record)
    assert result.valid is False
    assert result.error == "expected file but found directory"


def test_installation_success(tmp_path):
    install = tmp_path / "game"
    install.mkdir()
    content1 = b"file one content"
    content2 = b"file two content with more data"
    (install / "file1.txt").write_bytes(content1)
    (install / "file2.txt").write_bytes(content2)

    csv_text = (
        HEADER
        + f"16,1,{_sha(content1)},0,file1.txt,\n"
        + f"31,1,{_sha(content2)},0,file2.txt,\n"
    )
    records = parse_build_manifest(csv_text)

    valid, results = verify_installation(install, records, verbose=False)

    assert valid is True
    assert len(results) == 2
    assert sorted(r.file_path for r in results) == ["file1.txt", "file2.txt"]


def test_installation_corrupted_file(tmp_path):
    install = tmp_path / "game"
    install.mkdir()
    (install / "file.txt").write_bytes(b"corrupted content")
    records = parse_build_manifest(HEADER + "17,1,wronghashvalue123456,0,file.txt,\n")

    valid, results = verify_installation(install, records)

    assert valid is False
    assert len(results) == 1
    assert results[0].error == "hash mismatch"


def test_installation_empty_manifest(tmp_path):
    valid, results = verify_installation(tmp_path, [])
    assert valid is True
    assert results == []


def test_installation_skips_directories(tmp_path):
    install = tmp_path / "game"
    (install / "subdir").mkdir(parents=True)
    content = b"test"
    (install / "file.txt").write_bytes(content)
    records = parse_build_manifest(
        HEADER + "0,0,,40,subdir,\n" + f"4,1,{_sha(content)},0,file.txt,\n"
    )

    valid, results = verify_installation(install, records, max_workers=2)

    assert valid is True
    assert len(results) == 1
    assert results[0].file_path == "file.txt"


def test_installation_verbose_output(tmp_path, capsys):
    content = b"abc"
    (tmp_path / "a.txt").write_bytes(content)
    records = [BuildRecord(file_name="a.txt", sha=_sha(content), size_in_bytes=3)]

    valid, _ = verify_installation(tmp_path, records, verbose=True, max_workers=1)

    assert valid is True
    assert capsys.readouterr().out == "[1/1] a.txt: OK\n"