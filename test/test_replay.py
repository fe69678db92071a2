import random

import pytest

from gc_timeline.trace import Event, EventKind, GcPhase, reconstruct, TimelinePoint


def _alloc(address, size):
    return Event(EventKind.ALLOCATE, address, size)


def _mark(address):
    return Event(EventKind.GC_MARK, address)


def _base(address):
    return Event(EventKind.BASE_ADDRESS, address)


def _random_events(seed, n=400):
    """Allocations at fresh addresses interleaved with bursts of marks."""
    rng = random.Random(seed)
    events = []
    allocated = []
    next_address = 0x1000
    while len(events) < n:
        if allocated and rng.random() < 0.3:
            for _ in range(rng.randint(1, 6)):
                events.append(_mark(rng.choice(allocated)))
        else:
            events.append(_alloc(next_address, rng.randint(1, 4096)))
            allocated.append(next_address)
            next_address += 0x100
    return events


@pytest.fixture
def scenario():
    return [_alloc(0x10, 100), _mark(0x20), _alloc(0x30, 50)]


class TestScenario:
    def test_unmarked_allocation_is_freed(self, scenario):
        replay = reconstruct(scenario)
        assert replay.phases == [GcPhase(start_index=1, end_index=2, freed_bytes=100)]
        assert replay.live_bytes == 50
        assert replay.timeline[-1].size == 50

    def test_timeline_has_one_point_per_event(self, scenario):
        timeline, _ = reconstruct(scenario)
        assert timeline == [
            TimelinePoint(0x10, 100),
            TimelinePoint(0x20, 100),
            TimelinePoint(0x30, 50),
        ]

    def test_marked_allocation_survives(self):
        events = [_alloc(0x10, 100), _alloc(0x20, 10), _mark(0x10), _alloc(0x30, 50)]
        replay = reconstruct(events)
        assert replay.phases == [GcPhase(2, 3, 10)]
        assert replay.live_bytes == 150
        assert [p.size for p in replay.timeline] == [100, 110, 110, 150]

    def test_closing_allocation_reusing_swept_address(self):
        events = [_alloc(0x10, 100), _mark(0x20), _alloc(0x10, 30)]
        replay = reconstruct(events)
        assert replay.phases[0].freed_bytes == 100
        assert replay.live_bytes == 30
        assert replay.timeline[-1].size == 30

    def test_closing_allocation_reusing_marked_address(self):
        # 0x10 survives the sweep, then the closing allocation overwrites it
        events = [_alloc(0x10, 100), _mark(0x10), _alloc(0x10, 30)]
        replay = reconstruct(events)
        assert replay.phases == [GcPhase(1, 2, 0)]
        assert replay.timeline[-1].size == 130
        assert replay.live_bytes == 30
        assert replay.allocated_bytes == 130
        assert replay.freed_bytes + replay.live_bytes != replay.allocated_bytes


class TestPhaseBoundaries:
    def test_marks_only_stream(self):
        events = [_mark(0x10), _mark(0x20), _mark(0x30)]
        replay = reconstruct(events)
        assert replay.phases == [GcPhase(0, len(events), 0)]
        assert all(p.size == 0 for p in replay.timeline)

    def test_open_phase_closes_at_end_of_stream(self):
        events = [_alloc(0x10, 100), _alloc(0x20, 20), _mark(0x20)]
        replay = reconstruct(events)
        assert replay.phases == [GcPhase(2, 3, 100)]
        assert replay.live_bytes == 20
        # the implicit close happens after the last point is recorded
        assert replay.timeline[-1].size == 120

    def test_consecutive_allocations_do_not_open_phases(self):
        replay = reconstruct([_alloc(0x10, 1), _alloc(0x20, 2), _alloc(0x30, 3)])
        assert replay.phases == []
        assert [p.size for p in replay.timeline] == [1, 3, 6]

    def test_multiple_phases_in_closing_order(self):
        events = [
            _alloc(0x10, 10),
            _mark(0x10),
            _alloc(0x20, 20),
            _mark(0x20),
            _mark(0x20),
            _alloc(0x30, 30),
        ]
        replay = reconstruct(events)
        assert replay.phases == [GcPhase(1, 2, 0), GcPhase(3, 5, 10)]
        assert replay.live_bytes == 50

    def test_phase_callback(self):
        seen = []
        replay = reconstruct([_alloc(0x10, 8), _mark(0x10), _alloc(0x20, 8)], on_phase=seen.append)
        assert seen == replay.phases

    def test_degenerate_phase_flag(self):
        assert GcPhase(3, 3, 0).is_degenerate
        assert not GcPhase(3, 4, 0).is_degenerate
        assert GcPhase(3, 7, 0).width == 4


class TestBaseAddress:
    def test_positions_are_offset_by_base(self):
        events = [_base(0x4000), _alloc(0x10, 8), _mark(0x10)]
        timeline, _ = reconstruct(events)
        assert [p.position for p in timeline] == [0x4000, 0x4010, 0x4010]

    def test_implicit_zero_base(self):
        timeline, _ = reconstruct([_alloc(0x10, 8)])
        assert timeline[0].position == 0x10

    def test_base_does_not_change_size_or_phase(self):
        events = [_alloc(0x10, 8), _mark(0x10), _base(0x4000), _mark(0x4000)]
        replay = reconstruct(events)
        assert [p.size for p in replay.timeline] == [8, 8, 8, 8]
        assert replay.phases == [GcPhase(1, 4, 0)]

    def test_marks_match_allocations_under_same_base(self):
        events = [_base(0x4000), _alloc(0x10, 8), _alloc(0x20, 4), _mark(0x10), _alloc(0x30, 1)]
        replay = reconstruct(events)
        assert replay.phases[0].freed_bytes == 4


class TestEmptyTrace:
    def test_empty_events(self):
        replay = reconstruct([])
        assert tuple(replay) == ([], [])
        assert replay.live_bytes == 0
        assert replay.peak_bytes == 0


class TestProperties:
    @pytest.mark.parametrize("seed", range(5))
    def test_conservation(self, seed):
        replay = reconstruct(_random_events(seed))
        allocated = sum(p.size for p in _random_events(seed) if p.kind is EventKind.ALLOCATE)
        assert replay.allocated_bytes == allocated
        assert replay.freed_bytes + replay.live_bytes == allocated

    @pytest.mark.parametrize("seed", range(3))
    def test_idempotent(self, seed):
        events = _random_events(seed)
        first = reconstruct(events)
        second = reconstruct(events)
        assert first.timeline == second.timeline
        assert first.phases == second.phases

    @pytest.mark.parametrize("seed", range(5))
    def test_size_changes_only_on_allocate_or_close(self, seed):
        events = _random_events(seed)
        replay = reconstruct(events)
        closes = {phase.end_index: phase.freed_bytes for phase in replay.phases}
        previous = 0
        for index, (event, point) in enumerate(zip(events, replay.timeline)):
            if event.kind is EventKind.ALLOCATE:
                assert point.size == previous - closes.get(index, 0) + event.size
            else:
                assert point.size == previous
            previous = point.size

    def test_final_size_matches_live_set_without_open_phase(self):
        events = _random_events(7) + [_alloc(0xFFFF00, 1)]
        replay = reconstruct(events)
        assert replay.timeline[-1].size == replay.live_bytes

    def test_kind_counts(self):
        events = [_base(0), _alloc(0x10, 1), _mark(0x10), _mark(0x10)]
        counts = reconstruct(events).kind_counts
        assert counts[EventKind.BASE_ADDRESS] == 1
        assert counts[EventKind.ALLOCATE] == 1
        assert counts[EventKind.GC_MARK] == 2
