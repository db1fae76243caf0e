from datetime import time

import pytest

from app.application.scheduling.intervals import TimeInterval
from app.application.scheduling.slots import SlotGenerator, display_time


def test_default_grid_has_sixteen_half_hour_slots():
    slots = SlotGenerator().slots()
    assert len(slots) == 16
    assert slots[0] == TimeInterval(time(9, 0), time(9, 30))
    assert slots[-1] == TimeInterval(time(16, 30), time(17, 0))


def test_slots_are_contiguous_and_inside_hours():
    slots = SlotGenerator(8, 12, 20).slots()
    for prev, nxt in zip(slots, slots[1:]):
        assert prev.end == nxt.start
    assert slots[0].start == time(8, 0)
    assert slots[-1].end <= time(12, 0)


def test_partial_trailing_slot_is_dropped():
    gen = SlotGenerator(9, 17, 45)
    slots = gen.slots()
    # 8h / 45min = 10 full slots, the 11th would end at 17:15
    assert len(slots) == 10 == len(gen)
    assert slots[-1] == TimeInterval(time(15, 45), time(16, 30))


def test_iteration_is_restartable():
    gen = SlotGenerator()
    assert list(gen) == list(gen)


@pytest.mark.parametrize("args", [(17, 9, 30), (9, 9, 30), (9, 24, 30), (-1, 17, 30), (9, 17, 0)])
def test_bad_configuration_rejected(args):
    with pytest.raises(ValueError):
        SlotGenerator(*args)


def test_display_time():
    assert display_time(time(9, 0)) == "9:00 AM"
    assert display_time(time(12, 30)) == "12:30 PM"
    assert display_time(time(16, 30)) == "4:30 PM"
    assert display_time(time(0, 15)) == "12:15 AM"
