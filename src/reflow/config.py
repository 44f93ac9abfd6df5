"""Reflow configuration.

ReflowConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ReflowConfig:
    """Configuration for running a reactive program.

    Attributes:
        root: Project directory (holds the program and its config file).
              Always resolved to an absolute path on construction.
        program: Program file, relative to ``root`` unless absolute.
        start_time: Clock value subtracted from ``now`` to get logical time.
        tick_ms: Fixed pacing between ticks in milliseconds.  None means
            ticks happen only on alarms and async wake-ups.
        max_ticks: Stop after this many ticks (None = run until stopped).
        show: Variable names printed after every tick (all when empty).
        max_events: Capacity of the observability event log.
        profile: Print per-tick phase timing to stderr.
        watch_debounce_ms: Debounce for the program watcher in dev mode.

    """

    root: Path = field(default_factory=Path.cwd)
    program: Path = field(default_factory=lambda: Path("program.py"))
    start_time: float = 0.0
    tick_ms: float | None = None
    max_ticks: int | None = None
    show: tuple[str, ...] = ()
    max_events: int = 10_000
    profile: bool = False
    watch_debounce_ms: int = 100

    def __post_init__(self) -> None:
        # Resolve root to absolute so that watchfiles (which returns
        # absolute paths) can be compared via Path.relative_to().
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if not isinstance(self.program, Path):
            object.__setattr__(self, "program", Path(str(self.program)))
        if not isinstance(self.show, tuple):
            object.__setattr__(self, "show", tuple(self.show))

    @property
    def program_path(self) -> Path:
        """Absolute path to the program file."""
        if self.program.is_absolute():
            return self.program
        return self.root / self.program
