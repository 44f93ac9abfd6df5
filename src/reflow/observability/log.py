"""Ring buffer of runtime events, queried by kind, variable and logical time.

``TickCollector`` and ``TickProfiler`` append here; hosts and tests read
back what the scheduler did::

    log.query(event_type=CellEvaluated, name="total", since=50.0)

Thread Safety:
    Appends and queries take one ``threading.Lock``.  Async completion
    callbacks never write here directly, but hosts may query the log from
    other threads while ticks are running.

"""

import threading
from collections import Counter, deque

from reflow.observability.events import RuntimeEvent


def _subject(event: RuntimeEvent) -> str | None:
    """Variable or cell an event is about."""
    return getattr(event, "name", None) or getattr(event, "cell_id", None)


class EventLog:
    """The last *max_events* runtime events, oldest dropped first."""

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[RuntimeEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: RuntimeEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        name: str | None = None,
        since: float | None = None,
        limit: int = 100,
    ) -> list[RuntimeEvent]:
        """Return matching events, newest first.

        Args:
            event_type: Keep only instances of this event class.
            name: Keep only events about this variable or cell id.
            since: Keep only events stamped with a logical ``time`` at or
                after this value.  Events without one (merges, async
                completions) are left out when it is given.
            limit: Maximum number of events returned.

        """
        with self._lock:
            events = list(self._events)

        found: list[RuntimeEvent] = []
        for event in reversed(events):
            if len(found) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if name is not None and _subject(event) != name:
                continue
            if since is not None and getattr(event, "time", -1.0) < since:
                continue
            found.append(event)
        return found

    def recent(self, n: int = 20) -> list[RuntimeEvent]:
        """The *n* newest events, oldest first."""
        with self._lock:
            return list(self._events)[-n:]

    def counts(self) -> dict[str, int]:
        """Number of retained events per event class name."""
        with self._lock:
            return dict(Counter(type(event).__name__ for event in self._events))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
