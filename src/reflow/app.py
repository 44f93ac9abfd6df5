"""Reflow application: run a program file, optionally with hot reload.

The two public functions (run, dev) are the primary entry points::

    reflow.run("counter.py", max_ticks=10)
    reflow.dev("counter.py")   # watch the file and merge every edit
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from reflow._errors import ConfigError, ProgramError
from reflow.config_loader import load_config
from reflow.observability.collector import TickCollector
from reflow.observability.log import EventLog
from reflow.observability.profiler import TickProfiler
from reflow.program.loader import load_program
from reflow.reactive.runner import TickRunner
from reflow.reactive.state import ProgramState

if TYPE_CHECKING:
    from reflow.config import ReflowConfig
    from reflow.program.watcher import ChangeEvent


def _format_value(value: Any) -> str:
    text = repr(value)
    return text if len(text) <= 60 else text[:57] + "..."


def format_tick(state: ProgramState, names: tuple[str, ...] = ()) -> str:
    """One status line: logical time followed by ``name=value`` pairs.

    Shows *names* in the given order (undefined ones as ``-``), or every
    resolved variable in evaluation order when *names* is empty.

    """
    if not names:
        names = tuple(
            name
            for cell_id in state.order
            for name in state.cells[cell_id].outputs
            if name in state.resolved
        )
    pairs = []
    for name in names:
        value = state.resolved_value(name)
        pairs.append(f"{name}={'-' if value is None else _format_value(value)}")
    return f"t={state.time:g}  " + " ".join(pairs)


def create_state(config: ReflowConfig) -> tuple[ProgramState, TickCollector]:
    """Build a ProgramState wired to a collector (and profiler if enabled)."""
    log = EventLog(max_events=config.max_events)
    collector = TickCollector(log)
    profiler = TickProfiler(log, verbose=True) if config.profile else None
    state = ProgramState(config.start_time, collector=collector, profiler=profiler)
    return state, collector


def _prepare(program: str | Path, kwargs: dict[str, object]) -> ReflowConfig:
    path = Path(program)
    return load_config(path.parent, program=Path(path.name), **kwargs)


def _load(config: ReflowConfig, mode: str) -> ProgramState:
    from reflow.banner import print_banner

    t0 = time.perf_counter()
    state, _collector = create_state(config)
    cells = load_program(config.program_path)
    state.setup_program(cells)
    load_ms = (time.perf_counter() - t0) * 1000
    print_banner(config, len(cells), mode, load_ms=load_ms)
    return state


def _printer(config: ReflowConfig) -> Any:
    def on_tick(state: ProgramState) -> None:
        if state.updated:
            print(f"  {format_tick(state, config.show)}", file=sys.stderr)

    return on_tick


def run(program: str | Path, **kwargs: object) -> ProgramState:
    """Load *program* and tick it until ``max_ticks`` or Ctrl-C.

    Args:
        program: Path to the program file.
        **kwargs: Override ReflowConfig fields.

    Returns:
        The final program state.

    """
    config = _prepare(program, kwargs)
    state = _load(config, "run")
    runner = TickRunner(state, config, on_tick=_printer(config))
    try:
        asyncio.run(runner.run())
    except KeyboardInterrupt:
        print(f"  Stopped after {runner.ticks} ticks", file=sys.stderr)
    return state


def dev(program: str | Path, **kwargs: object) -> ProgramState:
    """Run *program* and hot-reload it whenever its directory changes.

    Unchanged cells keep their values across edits.  A reload that fails
    to import or forms a cycle is reported and the running program is kept.

    """
    config = _prepare(program, kwargs)
    state = _load(config, "dev")
    try:
        asyncio.run(_dev_loop(state, config))
    except KeyboardInterrupt:
        print("  Stopped", file=sys.stderr)
    return state


async def _dev_loop(state: ProgramState, config: ReflowConfig) -> None:
    from reflow.program.watcher import ProgramWatcher

    runner = TickRunner(state, config, on_tick=_printer(config))
    watcher = ProgramWatcher(config)
    watcher.start()

    async def _consume_events() -> None:
        async for event in watcher.changes():
            apply_change(state, config, event)

    consumer = asyncio.create_task(_consume_events())
    try:
        await runner.run()
    finally:
        watcher.stop()
        consumer.cancel()


def apply_change(state: ProgramState, config: ReflowConfig, event: ChangeEvent) -> bool:
    """Handle one watcher event; return True if the program was replaced."""
    if event.category == "config":
        print(
            f"  Config changed: {event.path.name} (restart reflow dev to apply)",
            file=sys.stderr,
        )
        return False
    if event.kind == "deleted" and event.path == config.program_path:
        print(f"  Program deleted: {event.path.name}", file=sys.stderr)
        return False

    try:
        cells = load_program(config.program_path)
        state.update_program(cells)
    except (ProgramError, ConfigError) as exc:
        print(f"  Reload failed ({event.path.name}): {exc}", file=sys.stderr)
        return False
    print(f"  Reloaded {config.program_path.name} ({len(cells)} cells)", file=sys.stderr)
    return True
