"""Reflow: a tick-based reactive dataflow runtime.

Programs are sets of cells.  Each cell reads named variables and writes
one (or a few); the runtime evaluates cells in dependency order once per
tick and re-runs a body only when its inputs changed.

Quick start::

    from reflow import Behaviors, ProgramState, cell

    @cell
    def a():
        return Behaviors.timer(50)

    @cell
    def b(a):
        return a + 5

    state = ProgramState()
    state.setup_program([a, b])
    state.evaluate(60)
    state.resolved_value("b")   # 55

Two driver modes::

    reflow.run("program.py")      # Tick until max_ticks or Ctrl-C
    reflow.dev("program.py")      # Same, hot-reloading on every edit

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "Behaviors",
    "Cell",
    "Events",
    "ProgramState",
    "ReflowConfig",
    "TickRunner",
    "__version__",
    "cell",
    "current_program",
    "dev",
    "run",
]

_LAZY: dict[str, tuple[str, str]] = {
    "Behaviors": ("reflow.reactive.combinators", "Behaviors"),
    "Events": ("reflow.reactive.combinators", "Events"),
    "Cell": ("reflow.reactive.cell", "Cell"),
    "cell": ("reflow.reactive.cell", "cell"),
    "ProgramState": ("reflow.reactive.state", "ProgramState"),
    "current_program": ("reflow.reactive.state", "current_program"),
    "TickRunner": ("reflow.reactive.runner", "TickRunner"),
    "ReflowConfig": ("reflow.config", "ReflowConfig"),
    "run": ("reflow.app", "run"),
    "dev": ("reflow.app", "dev"),
}


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import reflow`` fast while providing a clean top-level API.
    """
    target = _LAZY.get(name)
    if target is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    module_name, attr = target
    return getattr(importlib.import_module(module_name), attr)
