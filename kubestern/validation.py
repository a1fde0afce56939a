"""
Input validation and parsing for Kubestern.

This module provides the validation functions for every configuration value
Kubestern accepts, whether it comes from the command line or the config file.
Each function either returns the parsed value or raises an exception with a
message that names the offending input.

Key Functions:
- validate_regex_pattern: Validates and compiles the pod search pattern
- validate_optional_pattern: Validates and compiles an optional filter pattern
- parse_hue_interval: Parses a "start-end" hue interval
- parse_hsl: Parses a "h,s,l" color triple
- validate_percentage: Validates saturation and lightness values
- validate_int, validate_non_negative: Validate integer settings
- validate_loop_pause: Validates the discovery interval

All validation functions raise ConfigError (or its InvalidPatternError
subclass) with descriptive error messages when validation fails.

Example:
    ```python
    try:
        pattern = validate_regex_pattern("^api-")
        interval = parse_hue_interval("180-270")
        color = parse_hsl("0,0,100")
    except ConfigError as e:
        print(f"Validation failed: {e}")
    ```
"""

import re
from typing import Optional, Tuple

from .constants import HUE_MAX, HUE_MIN, MIN_LOOP_PAUSE_SECONDS, PERCENT_MAX, PERCENT_MIN
from .exceptions import ConfigError, InvalidPatternError
from .models import Color


def validate_regex_pattern(pattern: str) -> re.Pattern:
    """
    Validate and compile a regex pattern for pod name matching.

    The pattern is trimmed of whitespace before validation and must not be
    empty, since an empty pod search would be ambiguous with "no pattern".

    Args:
        pattern: The regex pattern string to validate and compile

    Returns:
        re.Pattern: Compiled regex pattern ready for use

    Raises:
        InvalidPatternError: If the pattern is empty or invalid regex syntax
    """
    if not pattern or not pattern.strip():
        raise InvalidPatternError("Pattern cannot be empty")

    try:
        return re.compile(pattern.strip())
    except re.error as e:
        raise InvalidPatternError(f"Invalid regex pattern '{pattern}': {e}")


def validate_optional_pattern(pattern: Optional[str], name: str) -> Optional[re.Pattern]:
    """
    Validate and compile an optional line filter pattern.

    Unlike the pod search pattern, filter patterns are not trimmed: leading
    and trailing spaces can be significant when matching log content.

    Args:
        pattern: The regex pattern string, or None/empty when unset
        name: Setting name used in the error message

    Returns:
        Optional[re.Pattern]: Compiled pattern, or None when unset

    Raises:
        InvalidPatternError: If the pattern is invalid regex syntax
    """
    if pattern is None or pattern == "":
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(f"Invalid {name} pattern '{pattern}': {e}")


def validate_int(value, name: str) -> int:
    """Validate an integer value (ints and integer strings, not bools)."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got: {value!r}")
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got: {value!r}")


def validate_hue(value, name: str = "hue") -> int:
    """Validate a hue angle (0-359)."""
    hue = validate_int(value, name)
    if hue < HUE_MIN or hue > HUE_MAX:
        raise ConfigError(f"{name} must be between {HUE_MIN} and {HUE_MAX}, got: {hue}")
    return hue


def validate_percentage(value, name: str) -> int:
    """
    Validate a saturation or lightness percentage.

    Args:
        value: Integer (or integer string) to validate
        name: Setting name used in the error message

    Returns:
        int: The validated value

    Raises:
        ConfigError: If the value is not an integer between 0 and 100
    """
    pct = validate_int(value, name)
    if pct < PERCENT_MIN or pct > PERCENT_MAX:
        raise ConfigError(f"{name} must be between {PERCENT_MIN} and {PERCENT_MAX}, got: {pct}")
    return pct


def parse_hue_interval(text: str) -> Tuple[int, int]:
    """
    Parse a hue interval written as "start-end".

    Both bounds are inclusive. A single-hue interval ("120-120") is allowed.

    Args:
        text: Interval string, e.g. "0-359" or "180-270"

    Returns:
        Tuple[int, int]: The (start, end) pair

    Raises:
        ConfigError: If the format is wrong, a bound is outside 0-359, or start > end
    """
    parts = str(text).split("-")
    if len(parts) != 2:
        raise ConfigError(f"Hue interval must be written start-end, got: {text!r}")
    start = validate_hue(parts[0], "hue interval start")
    end = validate_hue(parts[1], "hue interval end")
    if start > end:
        raise ConfigError(f"Hue interval start must not be greater than end, got: {text!r}")
    return start, end


def parse_hsl(text: str) -> Color:
    """
    Parse a color written as "hue,saturation,lightness".

    Example:
        ```python
        parse_hsl("0,0,100")   # white
        parse_hsl("0,100,50")  # red
        ```
    """
    parts = str(text).split(",")
    if len(parts) != 3:
        raise ConfigError(f"Color must be written hue,saturation,lightness, got: {text!r}")
    return Color(
        hue=validate_hue(parts[0]),
        saturation=validate_percentage(parts[1], "saturation"),
        lightness=validate_percentage(parts[2], "lightness"),
    )


def validate_non_negative(value, name: str) -> int:
    """Validate an integer that must be zero or greater."""
    number = validate_int(value, name)
    if number < 0:
        raise ConfigError(f"{name} must not be negative, got: {number}")
    return number


def validate_loop_pause(interval) -> float:
    """
    Validate the pause between two discovery ticks.

    Raises:
        ConfigError: If interval is not a number or too small
    """
    if isinstance(interval, bool):
        raise ConfigError(f"Loop pause must be a positive number, got: {interval!r}")
    try:
        value = float(interval)
    except (TypeError, ValueError):
        raise ConfigError(f"Loop pause must be a positive number, got: {interval!r}")

    if value < MIN_LOOP_PAUSE_SECONDS:
        raise ConfigError(f"Loop pause should be at least {MIN_LOOP_PAUSE_SECONDS} seconds to avoid overwhelming the API")

    return value
