"""
Pattern log reader/writer.

The log is line oriented: one `JointId;x;y;z;timestamp` record per joint and
a single `#` line closing each frame.
"""

import math
from datetime import datetime
from typing import Iterable, Optional

from loguru import logger

from joints import JointId
from models import Frame, LiveBody, Pattern, Position3

FRAME_END = "#"
FIELD_SEP = ";"

# Non-ISO timestamps written by older recorders (US and day-first locales)
LEGACY_TIMESTAMP_FORMATS = [
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%d.%m.%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
]


class ParseError(ValueError):
    def __init__(self, line_number: int, message: str):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


class PatternWriter:
    """Append-only writer used while a pattern is being recorded."""

    def __init__(self, path: str):
        self.path = path
        self.frames_written = 0

    def append(self, body: LiveBody) -> int:
        """Append one frame for `body`; returns the number of joints written."""
        positions = body.tracked_positions()
        stamp = body.timestamp.isoformat()
        with open(self.path, "a", encoding="utf-8") as f:
            for joint, pos in positions.items():
                f.write(format_record(joint, pos, stamp) + "\n")
            f.write(FRAME_END + "\n")
        self.frames_written += 1
        return len(positions)


def format_record(joint: JointId, pos: Position3, stamp: str) -> str:
    return FIELD_SEP.join([joint.value, repr(pos.x), repr(pos.y), repr(pos.z), stamp])


def _parse_record(line: str, line_number: int) -> tuple[JointId, Position3, datetime]:
    fields = line.split(FIELD_SEP)
    if len(fields) != 5:
        raise ParseError(line_number, f"expected 5 fields, got {len(fields)}")

    token = fields[0].strip()
    try:
        joint = JointId(token)
    except ValueError:
        raise ParseError(line_number, f"unknown joint {token!r}") from None

    try:
        x, y, z = (float(v) for v in fields[1:4])
    except ValueError:
        raise ParseError(line_number, f"bad coordinate in {line!r}") from None
    if not all(math.isfinite(v) for v in (x, y, z)):
        raise ParseError(line_number, f"non-finite coordinate in {line!r}")

    stamp = parse_timestamp(fields[4])
    if stamp is None:
        raise ParseError(line_number, f"bad timestamp {fields[4]!r}")

    return joint, Position3(x=x, y=y, z=z), stamp


def parse_timestamp(text: str) -> Optional[datetime]:
    """ISO-8601 first (a trailing `Z` means UTC), then the legacy formats."""
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in LEGACY_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_pattern(lines: Iterable[str]) -> Pattern:
    frames: list[Frame] = []
    current: dict[JointId, Position3] = {}
    stamp = None

    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        if line == FRAME_END:
            if current:
                frames.append(Frame(timestamp=stamp, joints=current))
                current = {}
            continue
        joint, pos, stamp = _parse_record(line, line_number)
        current[joint] = pos

    # Unterminated last frame
    if current:
        frames.append(Frame(timestamp=stamp, joints=current))

    return tuple(frames)


def read_pattern(path: str) -> Pattern:
    with open(path, "r", encoding="utf-8") as f:
        pattern = parse_pattern(f)
    logger.info("Loaded pattern {} ({} frames)", path, len(pattern))
    return pattern
