"""Tests for reflow.reactive.records and the async handle helpers."""

from __future__ import annotations

import asyncio
import concurrent.futures

import pytest

from reflow._errors import ReactiveError
from reflow.reactive._futures import as_handle, is_pending, outcome, when_all
from reflow.reactive.records import (
    IndexedValue,
    QueueRecord,
    ReceiverRecord,
    ResolveRecord,
    same_value,
    same_values,
)


# ---------------------------------------------------------------------------
# Sample comparison
# ---------------------------------------------------------------------------


class TestSameValue:
    """same_value: identity for objects, equality for atomic values."""

    def test_identity(self) -> None:
        items = [1, 2]
        assert same_value(items, items)

    def test_equal_lists_built_separately_differ(self) -> None:
        assert not same_value([], [])

    def test_equal_ints(self) -> None:
        assert same_value(10 ** 20, 10 ** 20 + 0)

    def test_equal_strings(self) -> None:
        assert same_value("".join(["a", "b"]), "ab")

    def test_int_and_float_differ(self) -> None:
        assert not same_value(1, 1.0)

    def test_bool_and_int_differ(self) -> None:
        assert not same_value(True, 1)

    def test_none(self) -> None:
        assert same_value(None, None)
        assert not same_value(None, 0)


class TestSameValues:
    """same_values: element-wise snapshot comparison."""

    def test_no_previous_snapshot(self) -> None:
        assert not same_values([], None)

    def test_empty_snapshots_match(self) -> None:
        assert same_values([], [])

    def test_length_mismatch(self) -> None:
        assert not same_values([1], [1, 2])

    def test_element_change(self) -> None:
        assert same_values([1, "a"], [1, "a"])
        assert not same_values([1, "a"], [1, "b"])


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestValueRecords:
    """Frozen value records."""

    def test_resolve_record_frozen(self) -> None:
        record = ResolveRecord(value=1, time=0.0)
        with pytest.raises(AttributeError):
            record.value = 2  # type: ignore[misc]

    def test_indexed_value_equality(self) -> None:
        assert IndexedValue(index=1, value="x") == IndexedValue(index=1, value="x")


class TestQueueRecord:
    """QueueRecord cleanup runs at most once."""

    def test_cleanup_runs_once(self) -> None:
        calls: list[int] = []
        record = QueueRecord(cleanup=lambda: calls.append(1))
        record.run_cleanup()
        record.run_cleanup()
        assert calls == [1]
        assert record.cleanup is None

    def test_no_cleanup(self) -> None:
        QueueRecord().run_cleanup()

    def test_non_callable_cleanup_ignored(self) -> None:
        record = QueueRecord(cleanup="not callable")  # type: ignore[arg-type]
        record.run_cleanup()
        assert record.cleanup is None


class TestReceiverRecord:
    """ReceiverRecord slot semantics."""

    def test_latest_value_wins(self) -> None:
        record = ReceiverRecord()
        record.put(1)
        record.put(2)
        assert record.take() == 2
        assert record.take() is None

    def test_queued_keeps_all(self) -> None:
        record = ReceiverRecord(queued=True)
        record.put(1)
        record.put(2)
        assert record.take() == [1, 2]
        assert record.values == []

    def test_empty_take(self) -> None:
        assert ReceiverRecord(queued=True).take() is None


# ---------------------------------------------------------------------------
# Async handles
# ---------------------------------------------------------------------------


class TestHandles:
    """is_pending / as_handle / outcome."""

    def test_is_pending(self) -> None:
        assert is_pending(concurrent.futures.Future())
        assert not is_pending(5)
        assert not is_pending([1])

    def test_coroutine_is_pending(self) -> None:
        async def work() -> int:
            return 1

        coro = work()
        try:
            assert is_pending(coro)
        finally:
            coro.close()

    def test_future_passes_through(self) -> None:
        future: concurrent.futures.Future[int] = concurrent.futures.Future()
        assert as_handle(future) is future

    def test_coroutine_without_loop(self) -> None:
        async def work() -> int:
            return 1

        with pytest.raises(ReactiveError, match="no running event loop"):
            as_handle(work())

    @pytest.mark.asyncio
    async def test_coroutine_on_running_loop(self) -> None:
        async def work() -> int:
            return 7

        handle = as_handle(work())
        assert isinstance(handle, asyncio.Future)
        assert await handle == 7

    def test_outcome_success(self) -> None:
        future: concurrent.futures.Future[str] = concurrent.futures.Future()
        future.set_result("done")
        assert outcome(future) == (True, "done")

    def test_outcome_failure(self) -> None:
        future: concurrent.futures.Future[int] = concurrent.futures.Future()
        error = ValueError("bad")
        future.set_exception(error)
        assert outcome(future) == (False, error)

    def test_outcome_cancelled(self) -> None:
        future: concurrent.futures.Future[int] = concurrent.futures.Future()
        future.cancel()
        ok, value = outcome(future)
        assert not ok
        assert isinstance(value, asyncio.CancelledError)


class TestWhenAll:
    """when_all joins handles in order and reports the first failure."""

    def test_empty(self) -> None:
        results: list[list[object]] = []
        when_all([], results.append, lambda exc: None)
        assert results == [[]]

    def test_results_in_handle_order(self) -> None:
        first: concurrent.futures.Future[int] = concurrent.futures.Future()
        second: concurrent.futures.Future[int] = concurrent.futures.Future()
        results: list[list[int]] = []
        when_all([first, second], results.append, lambda exc: None)
        second.set_result(2)
        assert results == []
        first.set_result(1)
        assert results == [[1, 2]]

    def test_failure_reported_once(self) -> None:
        handles = [concurrent.futures.Future() for _ in range(3)]
        results: list[object] = []
        failures: list[BaseException] = []
        when_all(handles, results.append, failures.append)
        handles[0].set_exception(RuntimeError("first"))
        handles[1].set_exception(RuntimeError("second"))
        handles[2].set_result(3)
        assert results == []
        assert [str(exc) for exc in failures] == ["first"]
