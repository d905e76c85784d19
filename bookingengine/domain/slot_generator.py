"""
Tiles a window into fixed-length candidate slots.
"""

from dataclasses import dataclass
from typing import Iterator

from .models import TimeWindow, duration_minutes


@dataclass(frozen=True)
class SlotGrid:
    """
    Lazy, restartable sequence of candidate slots over one window.

    Slot starts are ``window.start + k * granularity_minutes``; every slot has
    length ``duration_minutes`` and ends within the window. ``buffer_minutes``
    is carried along but never changes the step or the slot length: it widens
    a booked slot's footprint in the staff double-booking check
    (``models.occupied``).
    """
    window: TimeWindow
    duration_minutes: int
    granularity_minutes: int
    buffer_minutes: int = 0

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        if self.granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")

    def __iter__(self) -> Iterator[TimeWindow]:
        last_offset = duration_minutes(self.window) - self.duration_minutes
        offset = 0

        while offset <= last_offset:
            start = self.window.start.add(minutes=offset)
            yield TimeWindow(start=start, end=start.add(minutes=self.duration_minutes))
            offset += self.granularity_minutes

    def __len__(self) -> int:
        last_offset = duration_minutes(self.window) - self.duration_minutes
        if last_offset < 0:
            return 0
        return last_offset // self.granularity_minutes + 1


def generate_slots(
    window: TimeWindow,
    duration_minutes: int,
    buffer_minutes: int = 0,
    granularity_minutes: int = 30,
) -> SlotGrid:
    """
    Enumerate candidate slots of ``duration_minutes`` inside ``window``.

    Returns an empty grid when the duration does not fit the window.
    """
    return SlotGrid(
        window=window,
        duration_minutes=duration_minutes,
        granularity_minutes=granularity_minutes,
        buffer_minutes=buffer_minutes,
    )
