"""Stream kinds whose values complete asynchronously.

Completion callbacks may fire on any thread (asyncio callbacks, worker
threads completing ``concurrent.futures.Future`` objects).  They never
touch program state: each one deposits an ``apply(state)`` closure with
``ProgramState.deposit()`` and the next tick applies it before any cell
runs.

Every apply closure checks a generation token first (the scratch record
created for that handle).  A completion whose record was replaced by a
newer handle, or discarded by a hot reload, is dropped.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from reflow._errors import ReactiveError
from reflow.reactive._futures import as_handle, is_pending, on_complete, outcome, when_all
from reflow.reactive.records import (
    CollectRecord,
    FutureRecord,
    GeneratorRecord,
    IndexedValue,
    JoinRecord,
    same_value,
    same_values,
)
from reflow.reactive.streams import Stream, StreamKind, input_index

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reflow._types import VarName
    from reflow.reactive.cell import Cell
    from reflow.reactive.state import ProgramState


class FutureStream(Stream):
    """Behavior resolved once with the handle's successful result."""

    kind = StreamKind.FUTURE
    __slots__ = ("handle",)

    def __init__(self, handle: Any) -> None:
        super().__init__(is_behavior=True)
        self.handle = handle

    def created(self, state: ProgramState, name: VarName) -> Stream:
        previous = state.scratch.get(name)
        if isinstance(previous, FutureRecord):
            if previous.handle is self.handle:
                return self
            state.resolved.pop(name, None)

        record = FutureRecord(handle=self.handle)
        state.scratch[name] = record

        def _complete(handle: Any) -> None:
            def apply(st: ProgramState) -> None:
                if st.scratch.get(name) is not record:
                    st.note_async(name, "superseded")
                    return
                ok, value = outcome(handle)
                if not ok:
                    record.failed = value
                    st.note_async(name, "failed", value)
                    return
                if record.resolved:
                    return
                record.resolved = True
                st.set_resolved(name, value)
                st.note_async(name, "resolved")

            state.deposit(apply)

        on_complete(self.handle, _complete)
        return self


class CollectStream(Stream):
    """Fold the tracked input into an accumulator.

    ``updater(current, value)`` may return a plain value (applied this
    tick), an awaitable (applied on completion), or None (no change).
    While an async update is pending, further input changes are skipped.

    """

    kind = StreamKind.COLLECT
    __slots__ = ("init", "updater", "var_name")

    def __init__(
        self,
        init: Any,
        var_name: VarName,
        updater: Callable[[Any, Any], Any],
        *,
        is_behavior: bool,
    ) -> None:
        super().__init__(is_behavior=is_behavior)
        self.init = init
        self.var_name = var_name
        self.updater = updater

    def created(self, state: ProgramState, name: VarName) -> Stream:
        if isinstance(state.scratch.get(name), CollectRecord):
            return self
        record = CollectRecord()
        state.scratch[name] = record
        if is_pending(self.init):
            self._await(state, name, record, as_handle(self.init, state.loop))
        else:
            record.current = self.init
            state.set_resolved(name, self.init)
        return self

    def apply(self, current: Any, value: Any) -> Any:
        return self.updater(current, value)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        record = state.scratch.get(name)
        if not isinstance(record, CollectRecord) or record.pending is not None:
            return
        index = input_index(cell, self.var_name)
        if index is None:
            return
        value = inputs[index]
        if value is None:
            return
        if last_inputs is not None and index < len(last_inputs) and same_value(value, last_inputs[index]):
            return

        updated = self.apply(record.current, value)
        if updated is None:
            return
        if is_pending(updated):
            self._await(state, name, record, as_handle(updated, state.loop))
            return
        record.current = updated
        state.set_resolved(name, updated)

    def _await(self, state: ProgramState, name: VarName, record: CollectRecord, handle: Any) -> None:
        record.pending = handle

        def _complete(done: Any) -> None:
            def apply(st: ProgramState) -> None:
                if st.scratch.get(name) is not record or record.pending is not done:
                    st.note_async(name, "superseded")
                    return
                record.pending = None
                ok, value = outcome(done)
                if not ok:
                    st.note_async(name, "failed", value)
                    return
                if value is None:
                    return
                record.current = value
                st.set_resolved(name, value)
                st.note_async(name, "resolved")

            state.deposit(apply)

        on_complete(handle, _complete)


class SelectStream(CollectStream):
    """Collect driven by an indexed input: ``updaters[index](current, value)``."""

    kind = StreamKind.SELECT
    __slots__ = ("updaters",)

    def __init__(
        self,
        init: Any,
        var_name: VarName,
        updaters: Sequence[Callable[[Any, Any], Any]],
        *,
        is_behavior: bool,
    ) -> None:
        super().__init__(init, var_name, self._dispatch, is_behavior=is_behavior)
        self.updaters = tuple(updaters)

    def _dispatch(self, current: Any, value: Any) -> Any:
        if not isinstance(value, IndexedValue):
            msg = f"select expects an indexed input (Events.or_index), got {type(value).__name__}"
            raise ReactiveError(msg)
        if not 0 <= value.index < len(self.updaters):
            msg = f"select has no updater for input {value.index}"
            raise ReactiveError(msg)
        return self.updaters[value.index](current, value.value)


class GatherStream(Stream):
    """Emit a mapping of every currently-defined input, joined when pending.

    Ready as soon as any input is defined.  Each change starts a new join;
    only the latest join may resolve.

    """

    kind = StreamKind.GATHER
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__(is_behavior=True)

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        return any(state.resolved_value(var) is not None for var in cell.input_vars)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        if same_values(inputs, last_inputs):
            return
        values = {var: value for var, value in zip(cell.input_vars, inputs, strict=True) if value is not None}
        if not values:
            return

        waiting = [var for var, value in values.items() if is_pending(value)]
        record = JoinRecord(pending=len(waiting))
        state.scratch[name] = record
        if not waiting:
            record.emitted = True
            state.set_resolved(name, values)
            return

        handles = [as_handle(values[var], state.loop) for var in waiting]
        _join(state, name, record, handles, lambda results: {**values, **dict(zip(waiting, results, strict=True))})


class ResolvePartStream(Stream):
    """Resolve a dict or sequence once every awaitable element completes."""

    kind = StreamKind.RESOLVE_PART
    __slots__ = ("container",)

    def __init__(self, container: Any, *, is_behavior: bool) -> None:
        if not isinstance(container, (Mapping, list, tuple)):
            msg = f"resolve_part expects a dict, list or tuple, got {type(container).__name__}"
            raise ReactiveError(msg)
        super().__init__(is_behavior=is_behavior)
        self.container = container

    def _slots(self) -> list[Any]:
        items = self.container.items() if isinstance(self.container, Mapping) else enumerate(self.container)
        return [key for key, value in items if is_pending(value)]

    def _substitute(self, results: dict[Any, Any]) -> Any:
        if isinstance(self.container, Mapping):
            return {key: results.get(key, value) for key, value in self.container.items()}
        parts = [results.get(i, value) for i, value in enumerate(self.container)]
        return tuple(parts) if isinstance(self.container, tuple) else parts

    def created(self, state: ProgramState, name: VarName) -> Stream:
        slots = self._slots()
        record = JoinRecord(pending=len(slots))
        state.scratch[name] = record
        if slots:
            handles = [as_handle(self.container[key], state.loop) for key in slots]
            _join(state, name, record, handles, lambda results: self._substitute(dict(zip(slots, results, strict=True))))
        return self

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        record = state.scratch.get(name)
        if isinstance(record, JoinRecord) and record.pending == 0 and not record.emitted:
            record.emitted = True
            state.set_resolved(name, self.container)


def _join(
    state: ProgramState,
    name: VarName,
    record: JoinRecord,
    handles: list[Any],
    build: Callable[[list[Any]], Any],
) -> None:
    """Resolve ``build(results)`` once every handle succeeds, if still current."""

    def _success(results: list[Any]) -> None:
        def apply(st: ProgramState) -> None:
            if st.scratch.get(name) is not record:
                st.note_async(name, "superseded")
                return
            record.pending = 0
            record.emitted = True
            st.set_resolved(name, build(results))
            st.note_async(name, "resolved")

        state.deposit(apply)

    def _failure(exc: BaseException) -> None:
        def apply(st: ProgramState) -> None:
            st.note_async(name, "failed", exc)

        state.deposit(apply)

    when_all(handles, _success, _failure)


class GeneratorNextStream(Stream):
    """Surface successive elements of a sync or async generator.

    One element is requested at a time; the next request is issued when
    the tick that surfaced the previous element concludes.  Exhaustion
    (or a failure) marks the stream done.

    """

    kind = StreamKind.GENERATOR_NEXT
    __slots__ = ("generator",)

    def __init__(self, generator: Any) -> None:
        super().__init__(is_behavior=False)
        self.generator = generator

    def created(self, state: ProgramState, name: VarName) -> Stream:
        record = state.scratch.get(name)
        if isinstance(record, GeneratorRecord) and record.generator is self.generator:
            return self
        record = GeneratorRecord(generator=self.generator)
        state.scratch[name] = record
        self._request(state, name, record)
        return self

    def _request(self, state: ProgramState, name: VarName, record: GeneratorRecord) -> None:
        if record.done:
            return
        handle = _next_element(record.generator, state.loop)
        record.handle = handle

        def _complete(done: Any) -> None:
            def apply(st: ProgramState) -> None:
                if st.scratch.get(name) is not record or record.handle is not done:
                    st.note_async(name, "superseded")
                    return
                record.handle = None
                ok, value = outcome(done)
                if not ok or value is _EXHAUSTED:
                    record.done = True
                    if not ok:
                        st.note_async(name, "failed", value)
                    return
                record.surfaced = True
                st.set_resolved(name, value)
                st.note_async(name, "resolved")

            state.deposit(apply)

        on_complete(handle, _complete)

    def conclude(self, state: ProgramState, name: VarName) -> VarName | None:
        record = state.scratch.get(name)
        if isinstance(record, GeneratorRecord) and record.surfaced:
            record.surfaced = False
            self._request(state, name, record)
        return super().conclude(state, name)


_EXHAUSTED = object()


async def _anext(generator: Any) -> Any:
    try:
        return await generator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


def _next_element(generator: Any, loop: Any) -> Any:
    """Return a handle for the generator's next element.

    Exhaustion of either kind of generator completes the handle with the
    ``_EXHAUSTED`` marker.
    """
    if hasattr(generator, "__anext__"):
        return as_handle(_anext(generator), loop)
    future: concurrent.futures.Future[Any] = concurrent.futures.Future()
    try:
        future.set_result(next(generator, _EXHAUSTED))
    except Exception as exc:
        future.set_exception(exc)
    return future
