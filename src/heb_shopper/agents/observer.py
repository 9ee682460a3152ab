"""
Observer channel - publish/subscribe boundary for UIs watching a run.

Observers attach with a full snapshot and then receive incremental events.
They are read-only; attaching or detaching never touches the run.
"""

import queue
import logging
import threading
from typing import List, Optional

from heb_shopper.models.state import RunState

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10000


class Subscription:
    """One attached observer."""

    def __init__(self, snapshot: RunState, run_id: Optional[str] = None, maxsize: int = DEFAULT_QUEUE_SIZE):
        self.snapshot = snapshot
        self.run_id = run_id
        self.closed = False
        self.overflowed = False
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)

    def accepts(self, event) -> bool:
        return self.run_id is None or event.run_id == self.run_id

    def _offer(self, event) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            self.overflowed = True
            return False

    def get(self, timeout: Optional[float] = None):
        """Next event, or None when nothing arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


class ObserverChannel:
    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self.maxsize = maxsize
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def attach(self, snapshot: RunState, run_id: Optional[str] = None) -> Subscription:
        """
        Register an observer. The caller must hold whatever lock orders its
        publishes so that no event falls between snapshot and subscription.
        """
        subscription = Subscription(snapshot, run_id=run_id, maxsize=self.maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.info(f"[OBSERVER] Attached (run filter: {run_id}); {self.observer_count} observer(s)")
        return subscription

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.closed = True

    def publish(self, event) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.accepts(event)]
        for subscription in targets:
            if not subscription._offer(event):
                # a gap would break ordering, so a stalled observer is dropped
                logger.warning("[OBSERVER] Observer queue full; detaching it")
                self.detach(subscription)
