"""Tests for reflow.config and reflow.config_loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from reflow._errors import ConfigError
from reflow.config import ReflowConfig
from reflow.config_loader import load_config


# ---------------------------------------------------------------------------
# ReflowConfig
# ---------------------------------------------------------------------------


class TestReflowConfig:
    """ReflowConfig defaults and normalisation."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = ReflowConfig(root=tmp_path)
        assert config.program == Path("program.py")
        assert config.start_time == 0.0
        assert config.tick_ms is None
        assert config.max_ticks is None
        assert config.show == ()
        assert config.max_events == 10_000
        assert not config.profile
        assert config.watch_debounce_ms == 100

    def test_frozen(self, tmp_path: Path) -> None:
        config = ReflowConfig(root=tmp_path)
        with pytest.raises(AttributeError):
            config.tick_ms = 5  # type: ignore[misc]

    def test_relative_root_resolved(self) -> None:
        config = ReflowConfig(root=Path("."))
        assert config.root.is_absolute()

    def test_program_path(self, tmp_path: Path) -> None:
        config = ReflowConfig(root=tmp_path, program=Path("app/main.py"))
        assert config.program_path == tmp_path / "app" / "main.py"

    def test_absolute_program(self, tmp_path: Path) -> None:
        program = tmp_path / "elsewhere" / "prog.py"
        assert ReflowConfig(root=tmp_path, program=program).program_path == program

    def test_normalises_types(self, tmp_path: Path) -> None:
        config = ReflowConfig(root=tmp_path, program="x.py", show=["a", "b"])  # type: ignore[arg-type]
        assert config.program == Path("x.py")
        assert config.show == ("a", "b")


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Config files merged with overrides."""

    def test_no_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root == tmp_path
        assert config.tick_ms is None

    def test_yaml_section(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text(
            "reflow:\n  tick_ms: 20\n  program: main.py\n  show: [a, b]\n"
        )
        config = load_config(tmp_path)
        assert config.tick_ms == 20
        assert config.program == Path("main.py")
        assert config.show == ("a", "b")

    def test_yaml_top_level_keys(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yml").write_text("max_ticks: 7\nunrelated: true\n")
        assert load_config(tmp_path).max_ticks == 7

    def test_toml_section(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.toml").write_text('[reflow]\nprofile = true\nshow = "x, y"\n')
        config = load_config(tmp_path)
        assert config.profile
        assert config.show == ("x", "y")

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("reflow:\n  tick_ms: 20\n")
        assert load_config(tmp_path, tick_ms=5).tick_ms == 5

    def test_none_overrides_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("reflow:\n  tick_ms: 20\n")
        assert load_config(tmp_path, tick_ms=None).tick_ms == 20

    def test_empty_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("")
        assert load_config(tmp_path).max_ticks is None

    def test_unknown_key(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("reflow:\n  tick_rate: 5\n")
        with pytest.raises(ConfigError, match="Unknown config keys: tick_rate"):
            load_config(tmp_path)

    def test_unknown_override(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="bogus"):
            load_config(tmp_path, bogus=1)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("reflow: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(tmp_path)

    def test_yaml_not_mapping(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(tmp_path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.toml").write_text("[reflow\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(tmp_path)

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        (tmp_path / "reflow.yaml").write_text("reflow:\n  max_ticks: 1\n")
        (tmp_path / "reflow.toml").write_text("[reflow]\nmax_ticks = 2\n")
        assert load_config(tmp_path).max_ticks == 1
