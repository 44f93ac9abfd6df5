"""Reflow error hierarchy.

All reflow-specific errors inherit from ReflowError for easy catching.
Exceptions raised inside cell bodies are never wrapped: they reach the
caller of ``ProgramState.evaluate()`` unchanged.
"""


class ReflowError(Exception):
    """Base error for all reflow operations."""


class ConfigError(ReflowError):
    """Invalid program configuration or settings."""


class CycleError(ConfigError):
    """The cell dependency graph contains a cycle.

    Attributes:
        cells: Ids of the cells that could not be ordered.

    """

    def __init__(self, cells: tuple[str, ...]) -> None:
        self.cells = cells
        names = ", ".join(cells)
        super().__init__(f"Cyclic dependency between cells: {names}")


class ProgramError(ReflowError):
    """A program file could not be loaded into cells."""


class ReactiveError(ReflowError):
    """Misuse of the reactive runtime (streams, async handles, ticking)."""
