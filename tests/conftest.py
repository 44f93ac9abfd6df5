"""Shared test fixtures for reflow."""

from __future__ import annotations

import asyncio
import concurrent.futures
from pathlib import Path
from typing import Any

import pytest

from reflow.reactive.state import ProgramState


@pytest.fixture
def messages() -> list[str]:
    """Diagnostics logged by the ``state`` fixture."""
    return []


@pytest.fixture
def state(messages: list[str]) -> ProgramState:
    """A fresh ProgramState whose log lines go to ``messages``."""
    return ProgramState(log=messages.append)


@pytest.fixture
def program_dir(tmp_path: Path) -> Path:
    """A project directory holding a two-cell ``program.py``."""
    (tmp_path / "program.py").write_text(PROGRAM_V1)
    return tmp_path


PROGRAM_V1 = '''\
from reflow import Behaviors, cell


@cell
def a():
    return Behaviors.timer(5)


@cell
def b(a):
    return a + 5
'''

PROGRAM_V2 = '''\
from reflow import Behaviors, cell


@cell
def a():
    return Behaviors.timer(5)


@cell
def b(a):
    return a * 1000 + 5
'''


def peek(state: ProgramState, now: float, *names: str) -> Any:
    """Evaluate at *now*, read *names* before conclusion, then conclude.

    Returns a single value for one name, a tuple otherwise.
    """
    state.evaluate(now, conclude=False)
    values = tuple(state.resolved_value(name) for name in names)
    state.conclude()
    return values[0] if len(values) == 1 else values


async def settle(state: ProgramState, *, timeout: float = 1.0) -> None:
    """Wait until an async completion has been deposited on *state*."""
    async with asyncio.timeout(timeout):
        while not state.has_deposits:
            await asyncio.sleep(0.001)


def completed(value: Any) -> concurrent.futures.Future[Any]:
    """Return an already-completed thread future holding *value*."""
    future: concurrent.futures.Future[Any] = concurrent.futures.Future()
    future.set_result(value)
    return future
