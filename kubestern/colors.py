"""
Color palette generation and assignment.

The palette is a fixed, ordered list of colors spread evenly over the
configured hue intervals. It is built once (either from the configured cycle
length or from the size of the first discovery result) and then only read.

Colors are assigned by hashing the instance identity into the palette, so an
instance keeps its color for the life of the process no matter which other
pods come and go between discovery ticks.

Key Functions:
- build_palette: Generate N evenly spaced colors over the hue intervals
- palette_size: Choose the palette size from the cycle length or first discovery
- Palette.assign: Deterministic instance -> color mapping

Example:
    ```python
    palette = build_palette([(0, 359)], saturation=100, lightness=50, size=6)
    color = palette.assign(InstanceKey("default", "web-1"))
    ```
"""

import hashlib
from typing import List, Sequence, Tuple

from .exceptions import ConfigError
from .models import Color, InstanceKey


class Palette:
    """
    Read-only ordered sequence of colors.

    Attributes:
        colors: The generated colors, in hue order
    """

    def __init__(self, colors: Sequence[Color]):
        if not colors:
            raise ConfigError("Palette must contain at least one color")
        self._colors: Tuple[Color, ...] = tuple(colors)

    @property
    def colors(self) -> Tuple[Color, ...]:
        return self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def index_for(self, key: InstanceKey) -> int:
        """Palette index of an instance, from a stable digest of its identity."""
        digest = hashlib.sha1(key.identity().encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % len(self._colors)

    def assign(self, key: InstanceKey) -> Color:
        """
        Return the color of an instance.

        The result only depends on the key and the palette, never on the order
        in which instances were discovered.
        """
        return self._colors[self.index_for(key)]


def hue_values(hue_intervals: Sequence[Tuple[int, int]]) -> List[int]:
    """Concatenate the integer hues of every interval, bounds included."""
    values: List[int] = []
    for start, end in hue_intervals:
        values.extend(range(start, end + 1))
    return values


def build_palette(hue_intervals: Sequence[Tuple[int, int]], saturation: int, lightness: int, size: int) -> Palette:
    """
    Generate a palette of evenly spaced colors.

    The hue intervals are concatenated in order into a single sequence of
    hues (so "300-359" followed by "0-30" wraps around red), and ``size``
    colors are picked at equal steps along it. Colors are distinct as long as
    ``size`` does not exceed the number of hues available.

    Args:
        hue_intervals: Ordered (start, end) pairs, 0 <= start <= end <= 359
        saturation: Saturation shared by every color (0-100)
        lightness: Lightness shared by every color (0-100)
        size: Number of colors to generate

    Returns:
        Palette: The generated palette

    Raises:
        ConfigError: If there is no hue interval, an interval is invalid, or size < 1
    """
    if not hue_intervals:
        raise ConfigError("At least one hue interval is required to build the color palette")
    for start, end in hue_intervals:
        if not (0 <= start <= end <= 359):
            raise ConfigError(f"Invalid hue interval {start}-{end}: expected 0 <= start <= end <= 359")
    if size < 1:
        raise ConfigError(f"Color palette size must be at least 1, got: {size}")

    hues = hue_values(hue_intervals)
    count = len(hues)
    colors = [
        Color(hue=hues[step * count // size], saturation=saturation, lightness=lightness)
        for step in range(size)
    ]
    return Palette(colors)


def palette_size(cycle_len: int, discovered: int) -> int:
    """
    Choose the palette size.

    An explicit cycle length wins; otherwise the palette is sized to the
    number of instances returned by the first discovery (at least one).
    """
    if cycle_len > 0:
        return cycle_len
    return max(discovered, 1)
