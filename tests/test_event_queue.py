"""Tests for the priority event queue."""

from pacusim.core.entities import EventType
from pacusim.model.event_queue import Event, PriorityEventQueue


class TestPriorityEventQueue:
    """Test ordering and FIFO tie-breaking."""

    def test_empty_dequeue_returns_none(self):
        queue = PriorityEventQueue()
        assert queue.is_empty()
        assert queue.dequeue() is None
        assert queue.peek() is None

    def test_lowest_priority_first(self):
        """Items leave in ascending priority order."""
        queue = PriorityEventQueue()
        for item, priority in [("c", 30.0), ("a", 10.0), ("b", 20.0)]:
            queue.enqueue(item, priority)
        assert [queue.dequeue() for _ in range(3)] == ["a", "b", "c"]

    def test_ties_are_fifo(self):
        """Equal priorities leave in insertion order."""
        queue = PriorityEventQueue()
        for item in ["first", "second", "third"]:
            queue.enqueue(item, 5.0)
        assert [queue.dequeue() for _ in range(3)] == ["first", "second", "third"]

    def test_interleaved_enqueue_dequeue(self):
        """Later insertions with equal priority still queue behind earlier ones."""
        queue = PriorityEventQueue()
        queue.enqueue("a", 1.0)
        queue.enqueue("b", 1.0)
        assert queue.dequeue() == "a"
        queue.enqueue("c", 1.0)
        queue.enqueue("urgent", 0.0)
        assert [queue.dequeue() for _ in range(3)] == ["urgent", "b", "c"]

    def test_peek_does_not_remove(self):
        queue = PriorityEventQueue()
        queue.enqueue("x", 2.0)
        assert queue.peek() == "x"
        assert queue.peek_priority() == 2.0
        assert len(queue) == 1

    def test_length_and_contains(self):
        queue = PriorityEventQueue()
        queue.enqueue("x", 1.0)
        queue.enqueue("y", 2.0)
        assert queue.length == 2
        assert "y" in queue
        assert "z" not in queue

    def test_items_snapshot_in_order(self):
        queue = PriorityEventQueue()
        queue.enqueue("late", 9.0)
        queue.enqueue("early", 1.0)
        assert queue.items() == ["early", "late"]
        assert len(queue) == 2

    def test_holds_events(self):
        """Events keyed by time come out chronologically."""
        queue = PriorityEventQueue()
        queue.enqueue(Event(50.0, EventType.SURGERY_END, "case-1"), 50.0)
        queue.enqueue(Event(10.0, EventType.PATIENT_ARRIVAL, "case-2"), 10.0)
        event = queue.dequeue()
        assert event.time == 10.0
        assert event.event_type == EventType.PATIENT_ARRIVAL
        assert event.payload == {}
