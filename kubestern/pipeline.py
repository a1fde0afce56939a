"""
Per-line filter and replace pipeline.

Every raw line read from a pod goes through ``transform_line`` before it is
printed. The rules are applied in a fixed order:

1. include: drop the line unless it matches
2. exclude: drop the line if it matches
3. replace: substitute every match with the replacement template

The function is pure; the same FilterRules instance is shared read-only by
all stream workers.
"""

from typing import Optional

from .models import FilterRules


def transform_line(line: str, rules: FilterRules) -> Optional[str]:
    """
    Apply filter rules to a line.

    Args:
        line: Raw line content
        rules: Include/exclude/replace rules

    Returns:
        Optional[str]: The transformed line, or None when the line is dropped

    Example:
        ```python
        rules = FilterRules(replace=re.compile(r"token=\\w+"), replacement="token=***")
        transform_line("GET /?token=abc", rules)  # "GET /?token=***"
        ```
    """
    if rules.include is not None and not rules.include.search(line):
        return None
    if rules.exclude is not None and rules.exclude.search(line):
        return None
    if rules.replace is not None:
        line = rules.replace.sub(rules.replacement, line)
    return line

