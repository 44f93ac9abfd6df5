"""Nested programs run by a cell body.

A cell body can embed a whole program and drive it from its own inputs::

    @cell
    def total(step):
        return Behaviors.collect(0, "step", lambda acc, v: acc + v)

    @cell
    def panel(step):
        counter = current_program().component([total], inputs=("step",), outputs=("total",))
        return counter({"step": step}, "left").get("total")

Each component key owns one child ``ProgramState``.  Its inputs are fed as
behaviors, it is evaluated at the parent's time, and its alarms and
wake-ups are forwarded to the parent.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from reflow.reactive.cell import Cell
from reflow.reactive.streams import ReceiverStream

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reflow._types import VarName
    from reflow.reactive.state import ProgramState


@dataclass(slots=True)
class Subprogram:
    """A child program owned by one component key.

    Attributes:
        state: The child program state.
        signature: ``code`` of every installed cell, to detect redefinition.
        outputs: Result key to child variable name.
        host: Id of the parent cell that created the instance.

    """

    state: ProgramState
    signature: tuple[str, ...]
    outputs: dict[str, VarName]
    host: str | None = None


def input_cells(names: Iterable[VarName]) -> list[Cell]:
    """Behavior receiver cells declaring the inputs of a sub-program."""
    return [
        Cell(id=name, code=f"{name} = Behaviors.receiver()", body=_receiver_body(name))
        for name in names
    ]


def _receiver_body(name: VarName) -> Any:
    def body() -> dict[VarName, Any]:
        return {name: ReceiverStream(is_behavior=True)}

    return body


def output_map(outputs: Mapping[str, VarName] | Iterable[VarName]) -> dict[str, VarName]:
    """Normalise ``outputs``: a mapping of result key to name, or bare names."""
    if isinstance(outputs, Mapping):
        return dict(outputs)
    return {name: name for name in outputs}


def read_outputs(state: ProgramState, outputs: Mapping[str, VarName]) -> dict[str, Any]:
    """Defined output values of *state*, keyed by result key."""
    result: dict[str, Any] = {}
    for key, name in outputs.items():
        value = state.resolved_value(name)
        if value is not None:
            result[key] = value
    return result
