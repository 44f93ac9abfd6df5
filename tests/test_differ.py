"""Tests for reflow.program.differ: classifying cells between definitions."""

from __future__ import annotations

import pytest

from reflow.program.differ import CellChange, diff_cells
from reflow.reactive.cell import Cell


def _cell(cell_id: str, code: str) -> Cell:
    return Cell(id=cell_id, code=code, body=lambda: {})


class TestCellChange:
    """CellChange is an immutable record."""

    def test_frozen(self) -> None:
        change = CellChange(kind="added", cell_id="a", old_cell=None, new_cell=_cell("a", "1"))
        with pytest.raises(AttributeError):
            change.kind = "removed"  # type: ignore[misc]


class TestDiffCells:
    """diff_cells matches by id and compares code."""

    def test_identical(self) -> None:
        cells = {"a": _cell("a", "1"), "b": _cell("b", "2")}
        assert diff_cells(cells, dict(cells)) == ()

    def test_recompiled_body_is_unchanged(self) -> None:
        old = {"a": Cell(id="a", code="same", body=lambda: {"a": 1})}
        new = {"a": Cell(id="a", code="same", body=lambda: {"a": 2})}
        assert diff_cells(old, new) == ()

    def test_added(self) -> None:
        new_cell = _cell("b", "2")
        changes = diff_cells({}, {"b": new_cell})
        assert changes == (CellChange(kind="added", cell_id="b", old_cell=None, new_cell=new_cell),)

    def test_removed(self) -> None:
        old_cell = _cell("a", "1")
        changes = diff_cells({"a": old_cell}, {})
        assert changes == (CellChange(kind="removed", cell_id="a", old_cell=old_cell, new_cell=None),)

    def test_modified(self) -> None:
        old_cell, new_cell = _cell("a", "1"), _cell("a", "2")
        (change,) = diff_cells({"a": old_cell}, {"a": new_cell})
        assert change.kind == "modified"
        assert change.old_cell is old_cell
        assert change.new_cell is new_cell

    def test_ordering(self) -> None:
        old = {"x": _cell("x", "1"), "a": _cell("a", "1"), "y": _cell("y", "1")}
        new = {"n": _cell("n", "1"), "a": _cell("a", "2")}
        changes = diff_cells(old, new)
        assert [(c.kind, c.cell_id) for c in changes] == [
            ("removed", "x"),
            ("removed", "y"),
            ("added", "n"),
            ("modified", "a"),
        ]
