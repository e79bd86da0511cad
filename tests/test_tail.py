"""Tests for bounded tail reading."""

import pytest

from clawtop.tail import TAIL_WINDOW, tail_lines


def test_small_file_returns_all_lines(tmp_path):
    """Test a file smaller than the window is read whole."""
    path = tmp_path / "log.jsonl"
    path.write_text("one\ntwo\nthree\n")

    assert tail_lines(path, 10) == ["one", "two", "three"]


def test_keeps_most_recent_lines(tmp_path):
    """Test lines are capped to max_lines, keeping the newest in order."""
    path = tmp_path / "log.jsonl"
    path.write_text("".join(f"line {i}\n" for i in range(10)))

    assert tail_lines(path, 3) == ["line 7", "line 8", "line 9"]


def test_last_line_without_newline(tmp_path):
    """Test an unterminated last line is still a line."""
    path = tmp_path / "log.jsonl"
    path.write_text("one\ntwo")

    assert tail_lines(path, 5) == ["one", "two"]


def test_blank_trailing_fragment_not_counted(tmp_path):
    """Test a whitespace-only trailing fragment is dropped."""
    path = tmp_path / "log.jsonl"
    path.write_text("one\ntwo\n  ")

    assert tail_lines(path, 2) == ["one", "two"]


def test_empty_file(tmp_path):
    """Test an empty file has no lines."""
    path = tmp_path / "log.jsonl"
    path.write_text("")

    assert tail_lines(path, 5) == []


@pytest.mark.parametrize("max_lines", [0, -1])
def test_non_positive_max_lines(tmp_path, max_lines):
    """Test max_lines <= 0 gives an empty list without reading."""
    assert tail_lines(tmp_path / "does-not-exist.jsonl", max_lines) == []


def test_missing_file_raises(tmp_path):
    """Test an unreadable file is reported to the caller."""
    with pytest.raises(OSError):
        tail_lines(tmp_path / "does-not-exist.jsonl", 5)


def test_partial_first_line_discarded(tmp_path):
    """Test a window starting mid-line drops the fragment."""
    path = tmp_path / "log.jsonl"
    path.write_bytes(b"aaaa\nbbbb\ncccc\n")

    # Window starts inside "bbbb"
    assert tail_lines(path, 10, window=8) == ["cccc"]


def test_window_on_line_boundary_keeps_line(tmp_path):
    """Test a window starting on the newline before a line keeps that line."""
    path = tmp_path / "log.jsonl"
    path.write_bytes(b"aaaa\nbbbb\ncccc\n")

    # 15 bytes, window of 11 starts at the newline before the first "b"
    assert tail_lines(path, 10, window=11) == ["bbbb", "cccc"]


def test_never_reads_more_than_window(tmp_path, monkeypatch):
    """Test a large file is read with at most window bytes."""
    path = tmp_path / "log.jsonl"
    path.write_bytes(b"".join(b"line %04d\n" % i for i in range(110)))
    reads = []
    real_open = open

    class RecordingFile:
        def __init__(self, f):
            self._f = f

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self._f.close()

        def fileno(self):
            return self._f.fileno()

        def seek(self, offset):
            return self._f.seek(offset)

        def read(self, size=-1):
            data = self._f.read(size)
            reads.append(len(data))
            return data

    monkeypatch.setattr("clawtop.tail.open", lambda p, mode: RecordingFile(real_open(p, mode)), raising=False)

    # 1100 bytes; a window of 101 starts on the newline ending "line 0099"
    lines = tail_lines(path, 10, window=101)

    assert sum(reads) <= 101
    assert lines == [f"line {i:04d}" for i in range(100, 110)]


def test_window_without_newline(tmp_path):
    """Test a window inside one huge line yields nothing rather than a fragment."""
    path = tmp_path / "log.jsonl"
    path.write_bytes(b"x" * 100 + b"\n")

    assert tail_lines(path, 10, window=20) == []


def test_large_file_first_line_is_complete(tmp_path):
    """Test files beyond the default window never start with a fragment."""
    path = tmp_path / "log.jsonl"
    line = "entry-{:06d}-" + "z" * 50
    count = (TAIL_WINDOW // 60) * 3
    path.write_text("".join(line.format(i) + "\n" for i in range(count)))

    lines = tail_lines(path, count)

    assert 0 < len(lines) < count
    assert all(len(ln) == len(line.format(0)) for ln in lines)
    assert lines[-1] == line.format(count - 1)
    assert sum(len(ln) + 1 for ln in lines) <= TAIL_WINDOW


def test_invalid_utf8_is_replaced(tmp_path):
    """Test undecodable bytes don't fail the read."""
    path = tmp_path / "log.jsonl"
    path.write_bytes(b"ok\n\xff\xfe\n")

    lines = tail_lines(path, 5)

    assert lines[0] == "ok"
    assert len(lines) == 2
