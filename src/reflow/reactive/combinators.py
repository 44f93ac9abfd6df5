"""Stream factories used inside cell bodies.

``Events`` builds event-flavored streams (visible for one tick),
``Behaviors`` builds behavior-flavored ones (persisting)::

    @cell
    def clicks():
        return Events.observe(lambda notify: button.subscribe(notify))

    @cell
    def count(clicks):
        return Behaviors.collect(0, "clicks", lambda n, _: n + 1)

Factories take variable *names* where they track an input; the tracked
name must also be a parameter of the cell so the scheduler samples it.
Names tracked by ``Behaviors.collect`` and the or-family are forced, so
``count`` above is ``0`` before the first click.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeAlias

from reflow._types import VarName
from reflow.reactive.async_streams import (
    CollectStream,
    FutureStream,
    GatherStream,
    GeneratorNextStream,
    ResolvePartStream,
    SelectStream,
)
from reflow.reactive._futures import as_handle
from reflow.reactive.records import QueueRecord
from reflow.reactive.streams import (
    ChangeStream,
    DelayStream,
    OnceStream,
    OrStream,
    ReceiverStream,
    SendStream,
    TimerStream,
    UserEventStream,
)

Updater: TypeAlias = Callable[[Any, Any], Any]


class Events:
    """Factories for event-flavored streams."""

    @staticmethod
    def delay(var_name: VarName, latency: float) -> DelayStream:
        return DelayStream(var_name, latency, is_behavior=False)

    @staticmethod
    def timer(interval: float) -> TimerStream:
        return TimerStream(interval, is_behavior=False)

    @staticmethod
    def change(value: Any) -> ChangeStream:
        """Fire with *value* whenever it differs from the previous sample."""
        return ChangeStream(value)

    @staticmethod
    def once(value: Any) -> OnceStream:
        return OnceStream(value)

    @staticmethod
    def next(generator: Any) -> GeneratorNextStream:
        """Fire with each element of a (sync or async) generator in turn."""
        return GeneratorNextStream(generator)

    @staticmethod
    def or_(*var_names: VarName) -> OrStream:
        """Fire with the first defined of *var_names* (all inputs when empty)."""
        return OrStream(var_names)

    @staticmethod
    def some(*var_names: VarName) -> OrStream:
        """Fire with the list of every defined input of *var_names*."""
        return OrStream(var_names, collect=True)

    @staticmethod
    def or_index(*var_names: VarName) -> OrStream:
        """Like ``or_`` but the value is an ``IndexedValue`` (for ``select``)."""
        return OrStream(var_names, use_index=True)

    @staticmethod
    def collect(init: Any, var_name: VarName, updater: Updater) -> CollectStream:
        return CollectStream(init, var_name, updater, is_behavior=False)

    @staticmethod
    def select(init: Any, var_name: VarName, *updaters: Updater) -> SelectStream:
        return SelectStream(init, var_name, updaters, is_behavior=False)

    @staticmethod
    def send(receiver: VarName, value: Any) -> SendStream:
        return SendStream(receiver, value)

    @staticmethod
    def receiver(*, queued: bool = False) -> ReceiverStream:
        return ReceiverStream(queued=queued, is_behavior=False)

    @staticmethod
    def observe(
        callback: Callable[[Callable[[Any], None]], Any],
        *,
        queued: bool = False,
    ) -> UserEventStream:
        """Subscribe an external producer.

        ``callback(notify)`` runs once when the stream is installed and may
        return a cleanup callable, invoked when the stream is replaced.
        ``notify`` is safe to call from any thread.

        """
        return UserEventStream(QueueRecord(), queued=queued, callback=callback)

    @staticmethod
    def resolve_part(container: Any) -> ResolvePartStream:
        return ResolvePartStream(container, is_behavior=False)


class Behaviors:
    """Factories for behavior-flavored streams."""

    @staticmethod
    def keep(value: Any) -> Any:
        """Return *value* unchanged; ``return Behaviors.keep(x)`` makes the cell a behavior."""
        return value

    @staticmethod
    def timer(interval: float) -> TimerStream:
        return TimerStream(interval, is_behavior=True)

    @staticmethod
    def delay(var_name: VarName, latency: float) -> DelayStream:
        return DelayStream(var_name, latency, is_behavior=True)

    @staticmethod
    def collect(init: Any, var_name: VarName, updater: Updater) -> CollectStream:
        return CollectStream(init, var_name, updater, is_behavior=True)

    @staticmethod
    def select(init: Any, var_name: VarName, *updaters: Updater) -> SelectStream:
        return SelectStream(init, var_name, updaters, is_behavior=True)

    @staticmethod
    def or_(*var_names: VarName) -> OrStream:
        return OrStream(var_names, is_behavior=True)

    @staticmethod
    def resolve_part(container: Any) -> ResolvePartStream:
        return ResolvePartStream(container, is_behavior=True)

    @staticmethod
    def gather() -> GatherStream:
        """Emit a mapping of every defined input (use with ``@cell(gather=...)``)."""
        return GatherStream()

    @staticmethod
    def receiver(*, queued: bool = False, initial: Any = None) -> ReceiverStream:
        return ReceiverStream(queued=queued, is_behavior=True, initial=initial)

    @staticmethod
    def future(awaitable: Any, loop: Any = None) -> FutureStream:
        """Wrap an awaitable explicitly (returning it bare does the same)."""
        return FutureStream(as_handle(awaitable, loop))

