"""
Configuration loading and resolution for Kubestern.

Settings come from three layers, later layers overriding earlier ones:

1. built-in defaults (``DEFAULTS``)
2. the optional JSON config file (``~/.kubestern/config`` by default)
3. options passed on the command line

``resolve_settings`` merges the layers, validates every value and returns an
immutable Settings snapshot with compiled patterns and parsed colors, ready
to be shared by the reconciliation loop and every stream worker.

Key Functions:
- config_file_path: Location of the config file (env: KUBESTERN_CONFIG)
- load_config_file: Read the raw values of the config file
- generate_config_file: Write the defaults to the config file
- resolve_settings: Merge, validate and freeze the configuration

Example:
    ```python
    file_values = load_config_file(config_file_path())
    settings = resolve_settings(file_values, {"pod_search": "^api-", "timestamps": True})
    ```
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import (
    CONFIG_DIR_NAME, CONFIG_FILE_NAME, CONFIG_PATH_ENV, COLOR_MODES, DEFAULT_COLOR_CYCLE_LEN,
    DEFAULT_COLOR_LIGHTNESS, DEFAULT_COLOR_MODE, DEFAULT_COLOR_SATURATION, DEFAULT_DEFAULT_COLOR,
    DEFAULT_HUE_INTERVALS, DEFAULT_LOOP_PAUSE_SECONDS, DEFAULT_POD_SEARCH, DEFAULT_SINCE_SECONDS,
    DEFAULT_TAIL_LINES
)
from .exceptions import ConfigError
from .models import Color, FilterRules, LogOptions
from .validation import (
    parse_hsl, parse_hue_interval, validate_int, validate_loop_pause, validate_non_negative,
    validate_optional_pattern, validate_percentage, validate_regex_pattern
)

log = logging.getLogger('kubestern.settings')

DEFAULTS: Dict[str, Any] = {
    'pod_search': DEFAULT_POD_SEARCH,
    'kubeconfig': None,
    'context': None,
    'namespaces': [],
    'previous': False,
    'since_seconds': DEFAULT_SINCE_SECONDS,
    'tail_lines': DEFAULT_TAIL_LINES,
    'timestamps': False,
    'refresh': True,
    'loop_pause': DEFAULT_LOOP_PAUSE_SECONDS,
    'verbose': False,
    'hue_intervals': list(DEFAULT_HUE_INTERVALS),
    'color_cycle_len': DEFAULT_COLOR_CYCLE_LEN,
    'color_saturation': DEFAULT_COLOR_SATURATION,
    'color_lightness': DEFAULT_COLOR_LIGHTNESS,
    'default_color': DEFAULT_DEFAULT_COLOR,
    'color_mode': DEFAULT_COLOR_MODE,
    'include': None,
    'exclude': None,
    'replace': None,
    'replace_value': None,
}


@dataclass(frozen=True)
class Settings:
    """
    Resolved, immutable configuration snapshot.

    Attributes:
        pod_search: Compiled pattern pod names are matched against
        kubeconfig: Path to the kubeconfig file, None for the default lookup
        context: Kubeconfig context override
        namespaces: Namespaces to search; empty means the context namespace
        log_options: Parameters of every following log read
        refresh: Keep discovering pods after startup
        loop_pause: Seconds between two discovery ticks
        verbose: Print instance lifecycle messages
        hue_intervals: Ordered (start, end) hue intervals of the palette
        color_cycle_len: Palette size; 0 sizes it from the first discovery
        color_saturation: Saturation of every palette color
        color_lightness: Lightness of every palette color
        default_color: Color of informational and error messages
        color_mode: auto, always or never
        filter_rules: Include/exclude/replace rules
    """
    pod_search: re.Pattern
    kubeconfig: Optional[str]
    context: Optional[str]
    namespaces: Tuple[str, ...]
    log_options: LogOptions
    refresh: bool
    loop_pause: float
    verbose: bool
    hue_intervals: Tuple[Tuple[int, int], ...]
    color_cycle_len: int
    color_saturation: int
    color_lightness: int
    default_color: Color
    color_mode: str
    filter_rules: FilterRules


def config_file_path() -> Path:
    """Path of the config file: $KUBESTERN_CONFIG, else ~/.kubestern/config."""
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read the raw values stored in the config file.

    A missing file is not an error and yields no values.

    Raises:
        ConfigError: If the file can't be read, isn't a JSON object, or holds unknown keys
    """
    if not path.exists():
        log.debug(f"[config] no config file at {path}")
        return {}
    try:
        values = json.loads(path.read_text(encoding='utf-8'))
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}")
    if not isinstance(values, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    unknown = sorted(set(values) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown keys in config file {path}: {', '.join(unknown)}")
    log.info(f"[config] loaded {len(values)} values from {path}")
    return values


def generate_config_file(path: Path) -> Path:
    """Write the default settings to ``path`` as JSON, creating its directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(DEFAULTS, indent=2) + "\n", encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}")
    return path


def merge_values(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge value layers over the defaults; later layers win, None never overrides."""
    merged = dict(DEFAULTS)
    for layer in layers:
        for key, value in layer.items():
            if value is not None:
                merged[key] = value
    return merged


def _as_list(value, name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    raise ConfigError(f"{name} must be a string or a list of strings, got: {value!r}")


def _as_bool(value, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got: {value!r}")
    return value


def _filter_rules(values: Mapping[str, Any]) -> FilterRules:
    include = validate_optional_pattern(values['include'], 'include')
    exclude = validate_optional_pattern(values['exclude'], 'exclude')
    replace = validate_optional_pattern(values['replace'], 'replace')
    replacement = values['replace_value']

    if replacement is not None and replace is None:
        raise ConfigError("A replacement value was given without a replace pattern")
    if include is not None and exclude is not None and include.pattern == exclude.pattern:
        raise ConfigError("Include and exclude patterns are identical: every line would be dropped")
    replacement = "" if replacement is None else str(replacement)
    if replace is not None:
        try:
            replace.sub(replacement, "")
        except (re.error, IndexError) as e:
            raise ConfigError(f"Invalid replacement value '{replacement}': {e}")
    return FilterRules(include=include, exclude=exclude, replace=replace, replacement=replacement)


def resolve_settings(file_values: Optional[Mapping[str, Any]] = None,
                     cli_values: Optional[Mapping[str, Any]] = None) -> Settings:
    """
    Merge defaults, file values and command-line values into a Settings snapshot.

    Args:
        file_values: Values read from the config file
        cli_values: Values given explicitly on the command line

    Returns:
        Settings: Validated, immutable configuration

    Raises:
        ConfigError: If any merged value is invalid or values contradict each other
    """
    values = merge_values(file_values or {}, cli_values or {})

    hue_intervals = tuple(parse_hue_interval(v) for v in _as_list(values['hue_intervals'], 'hue_intervals'))
    if not hue_intervals:
        raise ConfigError("At least one hue interval is required")

    color_mode = str(values['color_mode'])
    if color_mode not in COLOR_MODES:
        raise ConfigError(f"color_mode must be one of {', '.join(COLOR_MODES)}, got: {color_mode!r}")

    log_options = LogOptions(
        previous=_as_bool(values['previous'], 'previous'),
        since_seconds=validate_non_negative(values['since_seconds'], 'since_seconds'),
        tail_lines=validate_int(values['tail_lines'], 'tail_lines'),
        timestamps=_as_bool(values['timestamps'], 'timestamps'),
    )

    return Settings(
        pod_search=validate_regex_pattern(values['pod_search']),
        kubeconfig=values['kubeconfig'] or None,
        context=values['context'] or None,
        namespaces=tuple(dict.fromkeys(ns for ns in _as_list(values['namespaces'], 'namespaces') if ns)),
        log_options=log_options,
        refresh=_as_bool(values['refresh'], 'refresh'),
        loop_pause=validate_loop_pause(values['loop_pause']),
        verbose=_as_bool(values['verbose'], 'verbose'),
        hue_intervals=hue_intervals,
        color_cycle_len=validate_non_negative(values['color_cycle_len'], 'color_cycle_len'),
        color_saturation=validate_percentage(values['color_saturation'], 'color_saturation'),
        color_lightness=validate_percentage(values['color_lightness'], 'color_lightness'),
        default_color=parse_hsl(values['default_color']),
        color_mode=color_mode,
        filter_rules=_filter_rules(values),
    )
