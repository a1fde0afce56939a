"""Tests for palette generation and color assignment."""

import pytest

from kubestern.colors import Palette, build_palette, hue_values, palette_size
from kubestern.exceptions import ConfigError
from kubestern.models import Color, InstanceKey


class TestBuildPalette:
    """Tests for build_palette."""

    @pytest.mark.parametrize("size", [1, 2, 7, 100, 360])
    def test_returns_requested_number_of_distinct_colors(self, size: int) -> None:
        """Test that N colors are generated and all of them are distinct."""
        palette = build_palette([(0, 359)], saturation=100, lightness=50, size=size)

        assert len(palette) == size
        assert len(set(palette.colors)) == size

    def test_colors_stay_within_hue_intervals(self) -> None:
        """Test that every hue comes from the configured intervals."""
        intervals = [(300, 359), (0, 30)]
        palette = build_palette(intervals, saturation=80, lightness=40, size=20)

        for color in palette.colors:
            assert any(start <= color.hue <= end for start, end in intervals)
            assert color.saturation == 80
            assert color.lightness == 40

    def test_hues_are_evenly_spaced(self) -> None:
        """Test that colors are spread along the whole hue range."""
        palette = build_palette([(0, 359)], saturation=100, lightness=50, size=4)

        assert [c.hue for c in palette.colors] == [0, 90, 180, 270]

    def test_wrapped_intervals_are_concatenated_in_order(self) -> None:
        """Test that the second interval continues after the first one."""
        palette = build_palette([(300, 359), (0, 59)], saturation=100, lightness=50, size=2)

        assert [c.hue for c in palette.colors] == [300, 0]

    def test_single_hue_interval(self) -> None:
        """Test that a one-hue interval is accepted."""
        palette = build_palette([(120, 120)], saturation=100, lightness=50, size=3)

        assert {c.hue for c in palette.colors} == {120}

    def test_empty_intervals_raise(self) -> None:
        with pytest.raises(ConfigError):
            build_palette([], saturation=100, lightness=50, size=3)

    def test_zero_size_raises(self) -> None:
        with pytest.raises(ConfigError):
            build_palette([(0, 359)], saturation=100, lightness=50, size=0)

    @pytest.mark.parametrize("interval", [(10, 5), (-1, 20), (0, 360)])
    def test_invalid_interval_raises(self, interval) -> None:
        with pytest.raises(ConfigError):
            build_palette([interval], saturation=100, lightness=50, size=3)

    def test_hue_values_include_bounds(self) -> None:
        assert hue_values([(0, 2), (358, 359)]) == [0, 1, 2, 358, 359]


class TestAssign:
    """Tests for Palette.assign."""

    def test_same_key_always_gets_same_color(self) -> None:
        """Test that repeated assignments are stable."""
        palette = build_palette([(0, 359)], saturation=100, lightness=50, size=8)
        key = InstanceKey("default", "web-1")

        assert len({palette.assign(key) for _ in range(50)}) == 1

    def test_assignment_does_not_depend_on_order(self) -> None:
        """Test that the discovery order of instances doesn't change their colors."""
        keys = [InstanceKey("default", f"web-{i}") for i in range(10)]
        first = build_palette([(0, 359)], saturation=100, lightness=50, size=6)
        second = build_palette([(0, 359)], saturation=100, lightness=50, size=6)

        forward = {k: first.assign(k) for k in keys}
        backward = {k: second.assign(k) for k in reversed(keys)}

        assert forward == backward

    def test_assignment_is_one_of_the_palette_colors(self) -> None:
        palette = build_palette([(0, 359)], saturation=100, lightness=50, size=5)

        for i in range(20):
            assert palette.assign(InstanceKey("prod", f"api-{i}", "app")) in palette.colors

    def test_container_is_part_of_identity(self) -> None:
        """Test that index_for hashes the full identity, container included."""
        palette = build_palette([(0, 359)], saturation=100, lightness=50, size=360)
        indexes = {palette.index_for(InstanceKey("default", "web-1", c)) for c in ("app", "sidecar", "proxy", None)}

        assert len(indexes) >= 2

    def test_empty_palette_rejected(self) -> None:
        with pytest.raises(ConfigError):
            Palette([])


class TestPaletteSize:
    """Tests for palette sizing."""

    def test_explicit_cycle_length_wins(self) -> None:
        assert palette_size(5, 12) == 5

    def test_deferred_size_uses_discovery_count(self) -> None:
        assert palette_size(0, 12) == 12

    def test_deferred_size_is_at_least_one(self) -> None:
        assert palette_size(0, 0) == 1


class TestColor:
    """Tests for HSL to RGB conversion."""

    @pytest.mark.parametrize("color, rgb", [
        (Color(0, 100, 50), (255, 0, 0)),
        (Color(120, 100, 50), (0, 255, 0)),
        (Color(240, 100, 50), (0, 0, 255)),
        (Color(0, 0, 100), (255, 255, 255)),
        (Color(0, 0, 0), (0, 0, 0)),
    ])
    def test_to_rgb(self, color: Color, rgb) -> None:
        assert color.to_rgb() == rgb

    def test_str(self) -> None:
        assert str(Color(210, 80, 40)) == "210,80,40"
