"""Tests for reflow.banner: startup banner output."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from unittest.mock import patch

from reflow.banner import format_banner, print_banner
from reflow.config import ReflowConfig


class TestPrintBanner:
    """Tests for the startup banner."""

    def _capture_banner(self, config: ReflowConfig | None = None, **kwargs: object) -> str:
        """Call print_banner and capture stderr output."""
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            config = config or ReflowConfig(root=Path("/tmp/test-program"))
            print_banner(config, 3, **kwargs)
        return buf.getvalue()

    def test_dev_mode_banner(self) -> None:
        output = self._capture_banner(mode="dev", load_ms=42.5)

        assert "reflow" in output
        assert "[dev]" in output
        assert "3 cells loaded" in output
        assert "42ms" in output
        assert "Watching for changes" in output

    def test_run_mode_banner(self) -> None:
        output = self._capture_banner(mode="run")

        assert "[run]" in output
        assert "program: /tmp/test-program/program.py" in output
        assert "ticks: on demand" in output
        assert "Watching" not in output

    def test_pacing_and_limit(self) -> None:
        config = ReflowConfig(root=Path("/tmp/test-program"), tick_ms=16, max_ticks=10)
        output = self._capture_banner(config, mode="run")

        assert "ticks: every 16ms" in output
        assert "stops after 10 ticks" in output

    def test_single_cell_label(self) -> None:
        output = format_banner(ReflowConfig(root=Path("/tmp/p")), 1, "run")
        assert "1 cell loaded" in output

    def test_warnings_listed(self) -> None:
        output = self._capture_banner(mode="run", warnings=["Cell 'b' depends on undeclared variable 'a'"])
        assert "undeclared variable 'a'" in output
