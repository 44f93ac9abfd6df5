"""Tests for nested programs: components, renkonify and evaluate_subprogram."""

from __future__ import annotations

import concurrent.futures

import pytest

from reflow._errors import ReactiveError
from reflow.reactive.cell import cell
from reflow.reactive.combinators import Behaviors, Events
from reflow.reactive.state import ProgramState, current_program
from reflow.reactive.streams import BehaviorStream
from tests.conftest import peek


@cell
def total(step):
    return Behaviors.collect(0, "step", lambda acc, v: acc + v)


@cell
def clock():
    return Behaviors.timer(10)


# ---------------------------------------------------------------------------
# current_program
# ---------------------------------------------------------------------------


class TestCurrentProgram:
    """Cell bodies reach the program evaluating them."""

    def test_inside_body(self, state: ProgramState) -> None:
        @cell
        def me():
            return current_program() is state

        state.setup_program([me])
        state.evaluate(0)
        assert state.resolved_value("me") is True

    def test_outside_tick(self) -> None:
        with pytest.raises(ReactiveError, match="only available while a program is evaluating"):
            current_program()

    def test_reset_after_body_error(self, state: ProgramState) -> None:
        @cell
        def broken():
            raise ValueError("boom")

        state.setup_program([broken])
        with pytest.raises(ValueError, match="boom"):
            state.evaluate(0)
        with pytest.raises(ReactiveError):
            current_program()

    def test_child_body_sees_child(self, state: ProgramState) -> None:
        seen: list[ProgramState] = []

        @cell
        def inner_value():
            seen.append(current_program())
            return 1

        @cell
        def host():
            runner = current_program().component([inner_value], outputs=("inner_value",))
            result = runner({}, "inner")
            seen.append(current_program())
            return result.get("inner_value")

        state.setup_program([host])
        state.evaluate(0)
        child = state.subprograms["inner"].state
        assert seen == [child, state]
        assert child.parent is state


# ---------------------------------------------------------------------------
# set_resolved_for_subgraph / merge
# ---------------------------------------------------------------------------


class TestSubgraphInputs:
    """Fed values stand in for a receiver cell that never runs."""

    def test_receiver_body_skipped(self, state: ProgramState) -> None:
        runs: list[int] = []

        @cell
        def x():
            runs.append(1)
            return Behaviors.receiver()

        @cell
        def doubled(x):
            return x * 2

        state.setup_program([x, doubled])
        state.set_resolved_for_subgraph("x", 4)
        state.evaluate(0)
        assert runs == []
        assert state.resolved_value("doubled") == 8
        assert isinstance(state.streams["x"], BehaviorStream)

        state.set_resolved_for_subgraph("x", 5)
        state.evaluate(1)
        assert runs == []
        assert state.resolved_value("doubled") == 10


class TestMerge:
    """merge adds cells to the live program."""

    def test_adds_and_replaces(self, state: ProgramState) -> None:
        @cell
        def a():
            return 1

        @cell
        def b(a):
            return a + 1

        @cell(name="a")
        def five():
            return 5

        state.setup_program([a])
        state.evaluate(0)
        state.merge(b)
        assert state.order == ("a", "b")
        assert state.next_alarm == 0
        state.evaluate(0)
        assert state.resolved_value("b") == 2

        state.merge(five)
        state.evaluate(1)
        assert state.resolved_value("b") == 6

    def test_no_duplicate_warning(self, state: ProgramState, messages: list[str]) -> None:
        @cell
        def a():
            return 1

        @cell(name="a")
        def again():
            return 2

        state.setup_program([a])
        state.merge(again)
        assert not any("more than once" in line for line in messages)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class TestComponent:
    """Keyed child programs driven from a cell body."""

    @staticmethod
    def _panel():
        @cell
        def panel(step):
            counter = current_program().component([total], inputs=("step",), outputs=("total",))
            left = counter({"step": step}, "left").get("total")
            right = counter({"step": step * 10}, "right").get("total")
            return (left, right)

        return panel

    def test_outputs_per_key(self, state: ProgramState) -> None:
        state.inject("step", 2)
        state.setup_program([self._panel()])
        state.evaluate(0)
        assert state.resolved_value("panel") == (2, 20)
        assert set(state.subprograms) == {"left", "right"}
        assert {sub.host for sub in state.subprograms.values()} == {"panel"}

    def test_child_state_persists(self, state: ProgramState) -> None:
        state.inject("step", 2)
        state.setup_program([self._panel()])
        state.evaluate(0)
        child = state.subprograms["left"].state

        state.evaluate(1)
        assert state.resolved_value("panel") == (2, 20)
        state.inject("step", 3)
        state.evaluate(2)
        assert state.resolved_value("panel") == (5, 50)
        assert state.subprograms["left"].state is child

    def test_child_alarm_forwarded(self, state: ProgramState) -> None:
        @cell
        def elapsed():
            runner = current_program().component([clock], outputs={"now": "clock"})
            return runner({}, "clock").get("now")

        state.setup_program([elapsed])
        state.evaluate(0)
        assert state.resolved_value("elapsed") == 0
        assert state.next_alarm == 10

        state.evaluate(10)
        assert state.resolved_value("elapsed") == 10
        assert state.next_alarm == 20

    def test_child_async_reruns_host(self, state: ProgramState) -> None:
        future: concurrent.futures.Future[int] = concurrent.futures.Future()
        wakes: list[int] = []

        @cell
        def fetched():
            return future

        @cell
        def shown():
            runner = current_program().component([fetched], outputs={"value": "fetched"})
            return runner({}, "fetch").get("value")

        state.set_waker(lambda: wakes.append(1))
        state.setup_program([shown])
        state.evaluate(0)
        assert state.resolved_value("shown") is None

        future.set_result(7)
        assert wakes
        state.evaluate(0)
        assert state.resolved_value("shown") == 7

    def test_code_change_reinstalls(self, state: ProgramState) -> None:
        @cell(name="answer")
        def one():
            return 1

        @cell(name="answer")
        def two():
            return 2

        first = state.component([one], outputs=("answer",))
        assert first({}, "k") == {"answer": 1}
        child = state.subprograms["k"].state

        second = state.component([two], outputs=("answer",))
        assert second({}, "k") == {"answer": 2}
        assert state.subprograms["k"].state is child

    def test_used_outside_cell_logged(self, state: ProgramState, messages: list[str]) -> None:
        runner = state.component([total], inputs=("step",), outputs=("total",))
        assert runner({"step": 4}, "loose") == {"total": 4}
        assert "Component 'loose' used outside of a cell body" in messages

    def test_shared_key_logged(self, state: ProgramState, messages: list[str]) -> None:
        @cell
        def first(step):
            return current_program().component([total], inputs=("step",))({"step": step}, "k")

        @cell
        def second(step):
            return current_program().component([total], inputs=("step",))({"step": step}, "k")

        state.inject("step", 1)
        state.setup_program([first, second])
        state.evaluate(0)
        assert any("Component key 'k' is shared by cells" in line for line in messages)
        assert state.subprograms["k"].host == "first"

    def test_reload_drops_components(self, state: ProgramState) -> None:
        @cell(name="panel")
        def plain(step):
            return step

        state.inject("step", 1)
        state.setup_program([self._panel()])
        state.evaluate(0)
        assert "left" in state.subprograms

        state.setup_program([plain])
        assert state.subprograms == {}
        state.evaluate(1)
        assert state.resolved_value("panel") == 1


# ---------------------------------------------------------------------------
# renkonify / evaluate_subprogram
# ---------------------------------------------------------------------------


class TestRenkonify:
    """A nested program surfaced as a generator-driven event stream."""

    def test_emits_on_change(self, state: ProgramState) -> None:
        @cell
        def scaled(clock, factor):
            return clock * factor

        @cell
        def runs(factor):
            start = current_program().renkonify(
                [clock, scaled], inputs=("factor",), outputs={"value": "scaled"}
            )
            return start({"factor": factor})

        state.inject("factor", 2)
        state.setup_program([runs])
        assert peek(state, 0, "runs") is None
        assert peek(state, 1, "runs") == {"value": 0}
        assert peek(state, 2, "runs") is None
        assert peek(state, 10, "runs") is None
        assert peek(state, 11, "runs") == {"value": 20}
        assert peek(state, 12, "runs") is None


class TestEvaluateSubprogram:
    """Params go to the child's receivers; exports come back."""

    @staticmethod
    def _child() -> ProgramState:
        @cell
        def inbox():
            return Events.receiver()

        @cell
        def doubled(inbox):
            return inbox * 2

        child = ProgramState()
        child.setup_program([inbox, doubled])
        child.exports = ("doubled",)
        child.evaluate(0)
        return child

    def test_returns_exports(self, state: ProgramState) -> None:
        child = self._child()
        state.evaluate(5)
        assert state.evaluate_subprogram(child, {"inbox": 4}) == {"doubled": 8}
        assert child.resolved_value("doubled") is None

    def test_nothing_updated(self, state: ProgramState) -> None:
        child = self._child()
        assert state.evaluate_subprogram(child, {}) is None
