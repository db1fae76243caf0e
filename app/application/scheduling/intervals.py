from dataclasses import dataclass
from datetime import datetime, time, timedelta

from ...exceptions import InvalidIntervalError


def parse_time(value: str) -> time:
    """Parse a wall-clock time given as HH:MM or HH:MM:SS."""
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise InvalidIntervalError(f"Invalid time '{value}'. Use HH:MM or HH:MM:SS")


def add_minutes(value: time, minutes: int) -> time:
    """Shift a wall-clock time. Results past midnight are rejected, never wrapped."""
    shifted = datetime.combine(datetime.min.date(), value) + timedelta(minutes=minutes)
    if shifted.date() != datetime.min.date():
        raise InvalidIntervalError("Interval cannot extend past midnight")
    return shifted.time()


@dataclass(frozen=True, order=True)
class TimeInterval:
    """Half-open wall-clock interval [start, end) within a single day."""
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Start time {self.start.strftime('%H:%M')} must be before end time {self.end.strftime('%H:%M')}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeInterval":
        return cls(parse_time(start), parse_time(end))

    @classmethod
    def starting_at(cls, start: time, minutes: int) -> "TimeInterval":
        return cls(start, add_minutes(start, minutes))

    @property
    def minutes(self) -> int:
        delta = datetime.combine(datetime.min.date(), self.end) - datetime.combine(datetime.min.date(), self.start)
        return int(delta.total_seconds() // 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        # Touching endpoints do not overlap, so back-to-back bookings are allowed
        return self.start < other.end and other.start < self.end
