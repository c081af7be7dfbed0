"""Line framing for upstream ``text/event-stream`` bodies.

Upstream chunks are arbitrary byte slices: a frame, or even a single UTF-8
character, may be split across two reads. Everything after the last newline
is carried over to the next chunk instead of being parsed early.
"""

import codecs
from typing import List, Optional, Tuple

DATA_PREFIX = "data:"


def next_frame(chunk: str, carryover: str = "") -> Tuple[List[str], str]:
    """Split ``carryover + chunk`` into complete lines.

    Returns the complete lines (terminators stripped) and the new carryover,
    which is the unterminated tail, possibly empty.
    """
    text = carryover + chunk
    parts = text.split("\n")
    tail = parts.pop()
    return [p[:-1] if p.endswith("\r") else p for p in parts], tail


class LineBuffer:
    """Incremental byte-to-line decoder for one upstream response."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.carryover = ""

    def feed(self, chunk: bytes) -> List[str]:
        lines, self.carryover = next_frame(self._decoder.decode(chunk), self.carryover)
        return lines

    def close(self) -> None:
        # an unterminated remainder at end of body is dropped, not an error
        self._decoder.reset()
        self.carryover = ""


def frame_data(line: str) -> Optional[str]:
    """Payload of a ``data:`` line, or None for comments, other fields and blanks."""
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data.startswith(" "):
        data = data[1:]
    return data
