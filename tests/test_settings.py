"""Tests for configuration loading and resolution."""

import json
import re
from pathlib import Path

import pytest

from kubestern.exceptions import ConfigError, InvalidPatternError
from kubestern.models import Color, LogOptions
from kubestern.settings import (
    DEFAULTS, config_file_path, generate_config_file, load_config_file, merge_values, resolve_settings
)


class TestResolveSettings:
    """Tests for resolve_settings."""

    def test_defaults(self) -> None:
        settings = resolve_settings()

        assert settings.pod_search.pattern == ".+"
        assert settings.namespaces == ()
        assert settings.log_options == LogOptions(previous=False, since_seconds=0, tail_lines=0, timestamps=False)
        assert settings.refresh is True
        assert settings.loop_pause == 2.0
        assert settings.hue_intervals == ((0, 359),)
        assert settings.color_cycle_len == 0
        assert settings.color_saturation == 100
        assert settings.color_lightness == 50
        assert settings.default_color == Color(0, 0, 100)
        assert settings.color_mode == "auto"
        assert settings.filter_rules.include is None
        assert settings.filter_rules.exclude is None
        assert settings.filter_rules.replace is None

    def test_file_overrides_defaults(self) -> None:
        settings = resolve_settings({"pod_search": "^api-", "loop_pause": 5, "namespaces": ["prod"]})

        assert settings.pod_search.pattern == "^api-"
        assert settings.loop_pause == 5.0
        assert settings.namespaces == ("prod",)

    def test_command_line_overrides_file(self) -> None:
        """Test precedence: command line > file > default."""
        settings = resolve_settings(
            {"pod_search": "^api-", "tail_lines": 20, "timestamps": True},
            {"pod_search": "^web-", "timestamps": False},
        )

        assert settings.pod_search.pattern == "^web-"
        assert settings.log_options.tail_lines == 20
        assert settings.log_options.timestamps is False

    def test_none_never_overrides(self) -> None:
        assert merge_values({"context": "prod"}, {"context": None})["context"] == "prod"

    def test_single_namespace_string(self) -> None:
        assert resolve_settings({"namespaces": "prod"}).namespaces == ("prod",)

    def test_duplicate_namespaces_are_removed(self) -> None:
        assert resolve_settings({}, {"namespaces": ["a", "b", "a"]}).namespaces == ("a", "b")

    def test_hue_intervals(self) -> None:
        settings = resolve_settings({}, {"hue_intervals": ["300-359", "0-30"]})

        assert settings.hue_intervals == ((300, 359), (0, 30))

    def test_negative_tail_lines_allowed(self) -> None:
        assert resolve_settings({}, {"tail_lines": -1}).log_options.tail_lines == -1

    def test_filter_rules_compiled(self) -> None:
        settings = resolve_settings({}, {"include": "ERROR", "exclude": "healthz",
                                         "replace": r"token=(\w+)", "replace_value": "token=***"})
        rules = settings.filter_rules

        assert rules.include == re.compile("ERROR")
        assert rules.exclude == re.compile("healthz")
        assert rules.replace == re.compile(r"token=(\w+)")
        assert rules.replacement == "token=***"

    def test_replace_without_value_removes_match(self) -> None:
        assert resolve_settings({}, {"replace": "x"}).filter_rules.replacement == ""


class TestInvalidSettings:
    """Tests for configuration errors."""

    @pytest.mark.parametrize("values", [
        {"pod_search": "["},
        {"pod_search": "  "},
        {"include": "(unclosed"},
    ])
    def test_invalid_patterns(self, values) -> None:
        with pytest.raises(InvalidPatternError):
            resolve_settings({}, values)

    @pytest.mark.parametrize("values", [
        {"hue_intervals": ["10-5"]},
        {"hue_intervals": ["0-400"]},
        {"hue_intervals": ["red"]},
        {"hue_intervals": []},
        {"color_saturation": 101},
        {"color_lightness": -1},
        {"default_color": "255,255,255"},
        {"default_color": "0,0"},
        {"since_seconds": -5},
        {"color_cycle_len": -1},
        {"loop_pause": 0},
        {"loop_pause": "soon"},
        {"timestamps": "yes"},
        {"color_mode": "sometimes"},
    ])
    def test_invalid_values(self, values) -> None:
        with pytest.raises(ConfigError):
            resolve_settings({}, values)

    def test_replacement_without_pattern_is_contradictory(self) -> None:
        with pytest.raises(ConfigError, match="replace pattern"):
            resolve_settings({}, {"replace_value": "***"})

    def test_identical_include_and_exclude_is_contradictory(self) -> None:
        with pytest.raises(ConfigError, match="identical"):
            resolve_settings({}, {"include": "ERROR", "exclude": "ERROR"})

    def test_bad_group_reference_in_replacement(self) -> None:
        with pytest.raises(ConfigError):
            resolve_settings({}, {"replace": "(a)", "replace_value": r"\2"})


class TestConfigFile:
    """Tests for the JSON config file."""

    def test_missing_file_yields_nothing(self, tmp_path: Path) -> None:
        assert load_config_file(tmp_path / "missing") == {}

    def test_generate_then_load(self, tmp_path: Path) -> None:
        path = generate_config_file(tmp_path / "nested" / "config")

        values = load_config_file(path)

        assert values == json.loads(json.dumps(DEFAULTS))
        assert resolve_settings(values) == resolve_settings()

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("{not json")

        with pytest.raises(ConfigError, match="parse"):
            load_config_file(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigError):
            load_config_file(path)

    def test_unknown_keys_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "config"
        path.write_text(json.dumps({"pod_search": "x", "colour": "red"}))

        with pytest.raises(ConfigError, match="colour"):
            load_config_file(path)

    def test_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESTERN_CONFIG", str(tmp_path / "custom.json"))

        assert config_file_path() == tmp_path / "custom.json"

    def test_default_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KUBESTERN_CONFIG", raising=False)

        assert config_file_path() == Path.home() / ".kubestern" / "config"
