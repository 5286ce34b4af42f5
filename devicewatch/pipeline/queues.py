"""
Bounded ingestion queues with backpressure.

Producers never block: when a queue is full the oldest unconsumed item is
dropped and counted (``drop_oldest``), or the new item is refused with
QueueOverflow (``reject``).
"""

import threading
from collections import deque
from typing import Generic, TypeVar

import structlog

from .errors import QueueOverflow

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BoundedQueue(Generic[T]):
    """Thread-safe bounded FIFO shared by producer threads and the pipeline worker

    Usage:
        queue = BoundedQueue[Snapshot]("snapshots", capacity=1000)

        # Producer
        queue.put(snapshot)

        # Consumer
        for snapshot in queue.drain():
            ...
    """

    def __init__(
        self,
        name: str,
        capacity: int,
        policy: str = "drop_oldest",
        wakeup: threading.Event | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if policy not in ("drop_oldest", "reject"):
            raise ValueError(f"Unknown overflow policy '{policy}'")

        self.name = name
        self.capacity = capacity
        self.policy = policy
        self._wakeup = wakeup

        self._queue: deque[T] = deque()
        self._lock = threading.Lock()

        self._enqueued = 0
        self._dequeued = 0
        self._dropped = 0

    def put(self, item: T) -> None:
        """Enqueue an item without blocking

        Raises:
            QueueOverflow: If the queue is full and the policy is ``reject``
        """
        with self._lock:
            if len(self._queue) >= self.capacity:
                self._dropped += 1
                if self.policy == "reject":
                    raise QueueOverflow(f"Queue '{self.name}' is full ({self.capacity} items)")
                self._queue.popleft()
                logger.debug("Backpressure: dropped oldest item", queue=self.name)

            self._queue.append(item)
            self._enqueued += 1

        if self._wakeup is not None:
            self._wakeup.set()

    def drain(self, max_items: int | None = None) -> list[T]:
        """Remove and return pending items in FIFO order"""
        with self._lock:
            count = len(self._queue) if max_items is None else min(max_items, len(self._queue))
            items = [self._queue.popleft() for _ in range(count)]
            self._dequeued += len(items)
            return items

    def clear(self) -> int:
        """Discard pending items, returning how many were discarded"""
        with self._lock:
            count = len(self._queue)
            self._queue.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "enqueued": self._enqueued,
                "dequeued": self._dequeued,
                "dropped": self._dropped,
                "current_size": len(self._queue),
                "max_size": self.capacity,
            }
