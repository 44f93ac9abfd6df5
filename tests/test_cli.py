"""Tests for reflow._cli: argument parsing and command dispatch."""

from __future__ import annotations

from pathlib import Path

import pytest

from reflow import __version__
from reflow._cli import _build_parser, main


class TestBuildParser:
    """_build_parser: CLI argument parsing."""

    def test_run_default_args(self) -> None:
        parser = _build_parser()
        args = parser.parse_args(["run", "program.py"])
        assert args.command == "run"
        assert args.program == "program.py"
        assert args.max_ticks is None
        assert args.tick_ms is None
        assert args.show is None
        assert args.profile is None

    def test_run_all_flags(self) -> None:
        parser = _build_parser()
        args = parser.parse_args([
            "run", "counter.py",
            "--ticks", "10",
            "--tick-ms", "16.5",
            "--show", "a, b,,c",
            "--profile",
        ])
        assert args.max_ticks == 10
        assert args.tick_ms == 16.5
        assert args.show == ("a", "b", "c")
        assert args.profile is True

    def test_dev_args(self) -> None:
        parser = _build_parser()
        args = parser.parse_args(["dev", "program.py", "--tick-ms", "100"])
        assert args.command == "dev"
        assert args.tick_ms == 100.0

    def test_program_required(self) -> None:
        parser = _build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["run"])

    def test_no_command_returns_none(self) -> None:
        parser = _build_parser()
        args = parser.parse_args([])
        assert args.command is None


class TestMain:
    """main(): dispatch and error reporting."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage: reflow" in capsys.readouterr().out

    def test_run_program(self, program_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["run", str(program_dir / "program.py"), "--ticks", "2"])
        err = capsys.readouterr().err
        assert "reflow" in err
        assert "2 cells loaded" in err
        assert "a=0 b=5" in err

    def test_run_with_show(self, program_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["run", str(program_dir / "program.py"), "--ticks", "1", "--show", "b"])
        assert "  b=5" in capsys.readouterr().err

    def test_missing_program_exits_1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run", str(tmp_path / "missing.py")])
        assert exc_info.value.code == 1
        assert "Program file not found" in capsys.readouterr().err

    def test_bad_config_exits_1(self, program_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (program_dir / "reflow.yaml").write_text("reflow:\n  nonsense: 1\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["run", str(program_dir / "program.py"), "--ticks", "1"])
        assert exc_info.value.code == 1
        assert "Unknown config keys: nonsense" in capsys.readouterr().err
