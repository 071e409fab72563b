from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Interval end {self.end.isoformat()} precedes start {self.start.isoformat()}")

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> Interval:
        return cls(start, start + timedelta(minutes=minutes))


def overlaps(a: Interval, b: Interval) -> bool:
    # Back-to-back intervals do not overlap.
    return a.start < b.end and b.start < a.end
