"""
Position in a media, in whole seconds.

An *absolute* position is frozen: reading it always returns the captured
seconds.  A *relative* position keeps running: reading it adds the wall
clock time elapsed since it was captured.  Players use relative positions
while playing (the external process only reports its position on seeks)
and absolute ones while paused or for durations.

    pos = TimePosition.create(0, 1, 30)           # 90s, running
    pos.current_seconds()                         # 90, 91, 92...
    frozen = pos.rebase(absolute=True)            # pause: stops at the current value
    frozen.to_clock()                             # Clock(hours=0, minutes=1, seconds=32)
"""

import re
import time
from dataclasses import dataclass, field
from typing import NamedTuple

CLOCK_PATTERN = re.compile(r"(\d+):(\d+):(\d+)")


class Clock(NamedTuple):
    hours: int
    minutes: int
    seconds: int

    def as_dict(self) -> dict:
        return self._asdict()


@dataclass(frozen=True)
class TimePosition:
    seconds: int = 0
    absolute: bool = False
    captured_at: float = field(default_factory=time.monotonic)

    @classmethod
    def create(cls, hours: int = 0, minutes: int = 0, seconds: int = 0,
               absolute: bool = False) -> "TimePosition":
        return cls(max(0, hours * 3600 + minutes * 60 + seconds), absolute)

    def current_seconds(self, now: float | None = None) -> int:
        if self.absolute:
            return self.seconds
        if now is None:
            now = time.monotonic()
        return self.seconds + max(0, int(now - self.captured_at))

    def to_clock(self, now: float | None = None) -> Clock:
        secs = self.current_seconds(now)
        return Clock(secs // 3600, (secs % 3600) // 60, secs % 60)

    def rebase(self, absolute: bool, now: float | None = None) -> "TimePosition":
        """New position continuing from the current value, in the given mode."""
        if now is None:
            now = time.monotonic()
        return TimePosition(self.current_seconds(now), absolute, now)


def parse_int(value: str) -> int:
    """int(value), or 0 when it isn't a number."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_position(line: str, absolute: bool = False) -> TimePosition:
    """Extract the first HH:MM:SS found anywhere in *line*.

    A line without any match yields a zero position, never an error.
    """
    match = CLOCK_PATTERN.search(line or "")
    if match is None:
        return TimePosition(0, absolute)
    hours, minutes, seconds = (parse_int(g) for g in match.groups())
    return TimePosition.create(hours, minutes, seconds, absolute)
