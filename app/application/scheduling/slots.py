from datetime import time
from typing import Iterator, List

from .intervals import TimeInterval


def display_time(value: time) -> str:
    """Render a wall-clock time as h:mm AM/PM, e.g. 9:00 AM."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


class SlotGenerator:
    """Fixed grid of bookable slots for one clinic day.

    Slots step from the opening hour by ``slot_minutes``. A slot is only
    produced if it ends at or before the closing hour, so with lengths that do
    not divide the day evenly the trailing partial slot is dropped.
    Iterating twice yields the same sequence.
    """

    def __init__(self, opening_hour: int = 9, closing_hour: int = 17, slot_minutes: int = 30):
        if not 0 <= opening_hour <= 23 or not 0 <= closing_hour <= 23:
            raise ValueError("Clinic hours must be between 0 and 23")
        if opening_hour >= closing_hour:
            raise ValueError("Opening hour must be before closing hour")
        if slot_minutes <= 0:
            raise ValueError("Slot length must be positive")
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour
        self.slot_minutes = slot_minutes

    def __iter__(self) -> Iterator[TimeInterval]:
        closing = self.closing_hour * 60
        start = self.opening_hour * 60
        while start + self.slot_minutes <= closing:
            end = start + self.slot_minutes
            yield TimeInterval(time(start // 60, start % 60), time(end // 60, end % 60))
            start = end

    def __len__(self) -> int:
        return (self.closing_hour - self.opening_hour) * 60 // self.slot_minutes

    def slots(self) -> List[TimeInterval]:
        return list(self)

    def __repr__(self) -> str:
        return f"SlotGenerator(opening_hour={self.opening_hour}, closing_hour={self.closing_hour}, slot_minutes={self.slot_minutes})"
