"""Bounded tail reading for large append-only logs."""

import os
from pathlib import Path

# Never read more than this many bytes from the end of a file
TAIL_WINDOW = 256 * 1024


def tail_lines(path: str | Path, max_lines: int, window: int = TAIL_WINDOW) -> list[str]:
    """
    Return up to max_lines of the last complete lines of a file, oldest first.

    At most ``window`` bytes are read. When the read starts mid-file the
    leading partial line is dropped, so the first returned line is never a
    truncated fragment. The first byte read only marks whether the window
    starts on a line boundary. A blank trailing fragment is not counted as
    a line.

    Raises:
        OSError: If the file can't be opened or read.
    """
    if max_lines <= 0:
        return []

    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        if size > window:
            # If the first byte is a newline the next line is kept whole
            f.seek(size - window)
            chunk = f.read(window)
            newline = chunk.find(b"\n")
            chunk = chunk[newline + 1 :] if newline >= 0 else b""
        else:
            chunk = f.read()

    lines = chunk.decode("utf-8", errors="replace").split("\n")
    if not lines[-1].strip():
        lines.pop()

    return lines[-max_lines:]
