"""
Tests for the event batching pipeline
"""

import asyncio
import time
from datetime import timedelta

import pytest

from conftest import make_event
from proctoring_service.proctor.events import EventBatcher
from proctoring_service.proctor.utils.clock import AsyncioScheduler


class FakeRepository:
    """Records batches; optionally fails"""

    def __init__(self):
        self.batches = []
        self.fail = False
        self.delay = 0.0

    def insert_event_batch(self, session_id, items):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("database unavailable")
        self.batches.append((session_id, [item.event.type for item in items]))
        return len(items)


@pytest.fixture
def fake_repository():
    return FakeRepository()


@pytest.fixture
def batcher(fake_repository, scheduler):
    return EventBatcher(fake_repository, scheduler)


class TestEventBatcher:
    """Tests for EventBatcher"""

    def test_flushes_at_batch_size(self, batcher, fake_repository, scheduler):
        for _ in range(4):
            batcher.add("s1", make_event())
        assert fake_repository.batches == []

        batcher.add("s1", make_event())

        assert len(fake_repository.batches) == 1
        assert len(fake_repository.batches[0][1]) == 5
        assert batcher.pending_count("s1") == 0
        assert scheduler.pending == 0

    def test_flushes_after_timeout(self, batcher, fake_repository, scheduler):
        batcher.add("s1", make_event())

        scheduler.advance(9.9)
        assert fake_repository.batches == []

        scheduler.advance(0.1)
        assert fake_repository.batches == [("s1", ["looking_away"])]

    def test_timer_is_reset_by_new_events(self, batcher, fake_repository, scheduler):
        """The timeout counts from the latest insertion, one timer per session"""
        batcher.add("s1", make_event())
        scheduler.advance(6)
        batcher.add("s1", make_event("tab_switch"))

        assert scheduler.pending == 1

        scheduler.advance(6)
        assert fake_repository.batches == []

        scheduler.advance(4)
        assert fake_repository.batches == [("s1", ["looking_away", "tab_switch"])]

    def test_sessions_do_not_share_buffers(self, batcher, fake_repository):
        for _ in range(3):
            batcher.add("s1", make_event())
            batcher.add("s2", make_event("no_face"))

        assert batcher.pending_count("s1") == 3
        assert batcher.pending_count("s2") == 3

        batcher.flush("s2")
        assert fake_repository.batches == [("s2", ["no_face"] * 3)]
        assert batcher.pending_count("s1") == 3

    def test_non_violations_are_ignored(self, batcher):
        assert batcher.add("s1", make_event("face_detected")) is False
        assert batcher.pending_count("s1") == 0

    def test_failed_flush_is_swallowed(self, batcher, fake_repository, scheduler):
        """A failed write is logged, the buffer is cleared and nothing raises"""
        fake_repository.fail = True
        for _ in range(5):
            batcher.add("s1", make_event())

        buffer = batcher.buffer_for("s1")
        assert buffer.dropped_events == 5
        assert len(buffer) == 0

        fake_repository.fail = False
        batcher.add("s1", make_event())
        scheduler.advance(10)
        assert fake_repository.batches == [("s1", ["looking_away"])]

    def test_discard_flushes_and_drops(self, batcher, fake_repository, scheduler):
        batcher.add("s1", make_event())

        assert batcher.discard("s1") == 1
        assert "s1" not in batcher.sessions
        assert scheduler.pending == 0

        # Nothing left for the old timer to do
        scheduler.advance(20)
        assert len(fake_repository.batches) == 1

    def test_flush_of_empty_buffer(self, batcher, fake_repository):
        assert batcher.flush("unknown") == 0
        batcher.open("s1")
        assert batcher.flush("s1") == 0
        assert fake_repository.batches == []


class TestOffloadedWrites:
    """Size and timer flushes write from a worker thread"""

    async def test_size_flush_does_not_block_the_caller(self, fake_repository):
        fake_repository.delay = 0.3
        batcher = EventBatcher(fake_repository, AsyncioScheduler(), offload=True)

        started = time.perf_counter()
        for _ in range(5):
            batcher.add("s1", make_event())
        elapsed = time.perf_counter() - started

        assert elapsed < 0.1
        assert batcher.pending_count("s1") == 0
        assert fake_repository.batches == []

        await batcher.wait_writes()
        assert fake_repository.batches == [("s1", ["looking_away"] * 5)]

    async def test_timer_flush_is_offloaded(self, fake_repository):
        batcher = EventBatcher(fake_repository, AsyncioScheduler(), batch_timeout=0.05, offload=True)
        batcher.add("s1", make_event("no_face"))

        await asyncio.sleep(0.1)
        await batcher.wait_writes()

        assert fake_repository.batches == [("s1", ["no_face"])]

    async def test_flush_async_waits_for_inflight_batch(self, fake_repository):
        """A forced flush lands after the batch already being written"""
        fake_repository.delay = 0.1
        batcher = EventBatcher(fake_repository, AsyncioScheduler(), offload=True)
        for _ in range(6):
            batcher.add("s1", make_event())

        assert await batcher.flush_async("s1", trigger="discard") == 1
        assert [len(types) for _, types in fake_repository.batches] == [5, 1]


class TestBatchPersistence:
    """EventBatcher against the SQL repository"""

    def test_batch_increments_session_counters(self, service, repository, interview, clock):
        session = service.initialize(interview.id)
        start = clock.utcnow()

        kinds = ["looking_away", "looking_away", "no_face", "multiple_faces", "tab_switch"]
        for i, kind in enumerate(kinds):
            service.store_event(session.id, make_event(kind, start + timedelta(seconds=i)), question_index=i)

        stored = repository.get_session(session.id)
        assert stored.total_violations == 5
        assert stored.looking_away_count == 2
        assert stored.no_face_detected_seconds == 1
        assert stored.multiple_faces_count == 1
        assert stored.tab_switch_count == 1

        events = repository.list_events(session.id)
        assert [e.type for e in events] == kinds
        assert [e.question_index for e in events] == [0, 1, 2, 3, 4]

    def test_unknown_session_write_is_dropped(self, repository, scheduler):
        """Counter update that matches no session rolls back the whole batch"""
        batcher = EventBatcher(repository, scheduler)
        batcher.add("missing", make_event())

        assert batcher.flush("missing") == 0
        assert repository.count_events("missing") == 0
