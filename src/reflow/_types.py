"""Shared type definitions for reflow."""

from collections.abc import Callable, Mapping
from typing import Any, Literal, TypeAlias

# Name of a reactive variable (a cell output)
VarName: TypeAlias = str

# Cell identifier (the cell's primary output name)
CellId: TypeAlias = str

# Logical time, supplied by the host per tick
Time: TypeAlias = float

# Flavor of a plain (non-stream) cell value
Flavor: TypeAlias = Literal["behavior", "event"]

# Compiled cell body: positional input values -> named outputs
CellBody: TypeAlias = Callable[..., Mapping[VarName, Any]]

# Human-facing diagnostic sink (defaults to stderr)
LogFunc: TypeAlias = Callable[[str], None]
