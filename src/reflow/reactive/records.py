"""Value records shared by the scheduler and the stream catalog.

``ResolveRecord`` is the authoritative current value of a variable.  The
remaining records live in the scheduler's scratch map, one per variable,
and carry state private to a stream kind across ticks.

Scratch records are plain mutable dataclasses.  They are only mutated
during a tick (single writer); async callbacks never touch them directly
but deposit closures that the next tick applies.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

_ATOMIC_TYPES: tuple[type, ...] = (bool, int, float, complex, str, bytes)


def same_value(a: Any, b: Any) -> bool:
    """Return True when two sampled values count as unchanged.

    Identity for containers and arbitrary objects; equality for atomic
    immutable values of the same type (two equal ints computed separately
    are the same sample, two equal lists built separately are not).

    """
    if a is b:
        return True
    if type(a) is not type(b) or not isinstance(a, _ATOMIC_TYPES):
        return False
    return a == b


def same_values(current: list[Any], last: list[Any] | None) -> bool:
    """Compare two input snapshots element-wise with ``same_value``."""
    if last is None or len(current) != len(last):
        return False
    return all(same_value(a, b) for a, b in zip(current, last, strict=True))


@dataclass(frozen=True, slots=True)
class ResolveRecord:
    """Current value of a variable and the logical time it was produced.

    Attributes:
        value: The resolved value.  ``None`` counts as undefined.
        time: Logical time of the tick (or completion) that wrote it.

    """

    value: Any
    time: float


@dataclass(frozen=True, slots=True)
class IndexedValue:
    """A value tagged with the position of the input that produced it.

    Produced by ``Events.or_index()`` and consumed by Select streams.
    """

    index: int
    value: Any


# ---------------------------------------------------------------------------
# Scratch records
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class QueueRecord:
    """Pending values plus an optional cleanup for an external producer.

    Used by UserEvent (external deposits) and Delay (release-time queue).
    The deque is appended to from producer threads; only the tick drains it.

    """

    queue: deque[ResolveRecord] = field(default_factory=deque)
    cleanup: Callable[[], Any] | None = None

    def run_cleanup(self) -> None:
        """Invoke and forget the registered cleanup callback, if any."""
        cleanup, self.cleanup = self.cleanup, None
        if callable(cleanup):
            cleanup()


@dataclass(slots=True)
class CollectRecord:
    """Accumulator of a Collect/Select stream.

    Attributes:
        current: Current accumulated value.
        pending: Live async handle (initial value or updater result).
            Only a completion of this exact handle may write ``current``.

    """

    current: Any = None
    pending: Any = None


@dataclass(slots=True)
class FutureRecord:
    """Live handle of a Future stream and whether it already resolved."""

    handle: Any
    resolved: bool = False
    failed: BaseException | None = None


@dataclass(slots=True)
class ReceiverRecord:
    """Slot of a Receiver stream, filled by senders between observations."""

    queued: bool = False
    values: list[Any] = field(default_factory=list)

    def put(self, value: Any) -> None:
        if self.queued:
            self.values.append(value)
        else:
            self.values[:] = [value]

    def take(self) -> Any:
        """Return the slot content (or None) and empty the slot."""
        if not self.values:
            return None
        taken = list(self.values) if self.queued else self.values[-1]
        self.values.clear()
        return taken


@dataclass(slots=True)
class JoinRecord:
    """Generation token for Gather and ResolvePart joins.

    A join completion is applied only while this very record is still the
    variable's scratch entry.  ``emitted`` marks a concrete (non-pending)
    result that has already been surfaced.

    """

    pending: int = 0
    emitted: bool = False


@dataclass(slots=True)
class GeneratorRecord:
    """Iteration state of a GeneratorNext stream.

    ``surfaced`` is set when an element was applied this tick; conclusion
    then requests the following element.
    """

    generator: Any
    handle: Any = None
    done: bool = False
    surfaced: bool = False
