"""Priority queue used for the event list and the patient waiting lines."""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from pacusim.core.entities import EventType

T = TypeVar("T")


class EventOrderError(ValueError):
    """Raised when an event is scheduled before the current simulated time."""


@dataclass
class Event:
    """A pending engine event.

    Attributes:
        time: Simulation time (minutes) at which the event fires.
        event_type: What happens.
        case_id: Surgery case the event concerns, if any.
        payload: Extra handler arguments (e.g. shift id, recovery phase).
    """

    time: float
    event_type: EventType
    case_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class PriorityEventQueue(Generic[T]):
    """Min-priority queue with first-in-first-out ties.

    Backed by a binary heap keyed by ``(priority, insertion sequence)`` so
    that items of equal priority leave in the order they were enqueued.
    Enqueue and dequeue may be freely interleaved.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, T]] = []
        self._counter = itertools.count()

    def enqueue(self, item: T, priority: float) -> None:
        """Insert ``item``; lower priority values leave first."""
        heapq.heappush(self._heap, (priority, next(self._counter), item))

    def dequeue(self) -> Optional[T]:
        """Remove and return the lowest-priority item, or None if empty."""
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[T]:
        """Return the next item without removing it, or None if empty."""
        if not self._heap:
            return None
        return self._heap[0][2]

    def peek_priority(self) -> Optional[float]:
        if not self._heap:
            return None
        return self._heap[0][0]

    def is_empty(self) -> bool:
        return not self._heap

    @property
    def length(self) -> int:
        return len(self._heap)

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, item: object) -> bool:
        return any(entry[2] == item for entry in self._heap)

    def items(self) -> List[T]:
        """Snapshot of queued items in dequeue order."""
        return [entry[2] for entry in sorted(self._heap)]
