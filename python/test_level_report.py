"""Tests for level_report module and the demo layouts."""

import pytest
import simple_chalk as chalk  # type: ignore[import-untyped]
from rich.panel import Panel

from demo import LAYOUTS, generate_display, make_source
from hypertree import GridTopology, HyperTreeGridSource, decode_forest, parse_descriptor
from level_report import (
    colorize_level,
    depth_histogram,
    describe_source,
    format_error,
    format_level_table,
    summarize_grid,
)

QUAD = GridTopology(dimension=2, branch_factor=2)
TERNARY_2X2 = GridTopology(dimension=2, branch_factor=3, lattice_size=(2, 2, 1))


class TestLevelTable:
    """Tests for the level table dump."""

    def test_plain_level_table(self) -> None:
        """One header line, then one line per level with its counter."""
        table = parse_descriptor("R|R...|....", QUAD, max_depth=3)
        decode_forest(table, QUAD)

        assert format_level_table(table, color=False).splitlines() == [
            "3 levels, maximum depth 3",
            "Level 0 (1 refined, 0 leaves, counter 1): R",
            "Level 1 (1 refined, 3 leaves, counter 1): R...",
            "Level 2 (0 refined, 4 leaves, counter 0): ....",
        ]

    def test_levels_beyond_max_depth_are_marked(self) -> None:
        """Levels the decoder never reaches are flagged."""
        table = parse_descriptor("R|R...|....", QUAD, max_depth=2)
        lines = format_level_table(table, color=False).splitlines()

        assert lines[2].endswith("counter 0): R...")
        assert lines[3] == "Level 2 (0 refined, 4 leaves, counter 0) (beyond maximum depth): ...."

    def test_mask_shown_in_header(self) -> None:
        """Masked tables say so."""
        table = parse_descriptor(".R.. | ..R......", TERNARY_2X2, "1101 | 101111011", max_depth=2)
        text = format_level_table(table, color=False)

        assert text.splitlines()[0] == "2 levels, maximum depth 2, material mask"
        assert "..__" not in text
        assert ".R_." in text

    def test_colorize_without_color_marks_empty_leaves(self) -> None:
        """Empty leaves show as '_' in plain output."""
        assert colorize_level("..R", "101", color=False) == "._R"
        assert colorize_level("..R", None, color=False) == "..R"

    def test_colorize_palette(self) -> None:
        """Refined is yellow, leaves green, empty leaves blue."""
        assert colorize_level("R", "1") == chalk.yellow("R")
        assert colorize_level(".", "1") == chalk.green(".")
        assert colorize_level(".", "0") == chalk.blue(".")

    def test_colorize_keeps_characters(self) -> None:
        """Coloured output still contains every descriptor character."""
        text = colorize_level("R.", "10")
        assert "R" in text
        assert "." in text


class TestGridSummary:
    """Tests for the decoded grid summary."""

    def test_depth_histogram(self) -> None:
        """Refined and leaf counts per depth across all trees."""
        table = parse_descriptor("R|R...|....", QUAD, max_depth=3)
        internal, leaves = depth_histogram(decode_forest(table, QUAD))

        assert dict(internal) == {0: 1, 1: 1}
        assert dict(leaves) == {1: 3, 2: 4}

    def test_plain_summary(self) -> None:
        """Summary lists topology, leaves and the per-depth breakdown."""
        table = parse_descriptor("R|R...|....", QUAD, max_depth=3)
        text = summarize_grid(decode_forest(table, QUAD), color=False)

        assert text.splitlines() == [
            "1 trees (1x1x1), dimension 2, branch factor 2",
            "Leaves: 7, maximum depth 3",
            "  Depth 0: 1 refined, 0 leaves",
            "  Depth 1: 1 refined, 3 leaves",
            "  Depth 2: 0 refined, 4 leaves",
        ]

    def test_blanked_count(self) -> None:
        """Masked grids report how many leaves are blanked."""
        table = parse_descriptor(".R.. | ..R......", TERNARY_2X2, "1101 | 101111011", max_depth=2)
        text = summarize_grid(decode_forest(table, TERNARY_2X2), color=False)
        assert "Blanked leaves: 3" in text


class TestDescribeSource:
    """Tests for the source description."""

    def test_before_build(self) -> None:
        """An unbuilt source has no levels and no output."""
        text = describe_source(HyperTreeGridSource())

        assert "BlockSize: 8" in text
        assert "Descriptor: ." in text
        assert "MaterialMask: 0" in text
        assert "LevelDescriptors: 0" in text
        assert "Output: (none)" in text

    def test_after_build(self) -> None:
        """A built source reports its parsed levels and leaves."""
        source = make_source(LAYOUTS["quadtree"])
        source.build()
        text = describe_source(source)

        assert "LevelDescriptors: 3" in text
        assert "LevelMaterialMasks: 0" in text
        assert "LevelCounters: 3" in text
        assert "Output: 7 leaves" in text

    def test_format_error(self) -> None:
        """Errors are labelled with their type."""
        source = make_source(LAYOUTS["bad"])
        with pytest.raises(ValueError) as exc:
            source.build()

        text = format_error(exc.value, color=False)
        assert text.startswith("Build failed: LevelCardinalityMismatch")
        assert "root cells" in text


class TestDemoLayouts:
    """Every demo layout builds, except the one meant to fail."""

    @pytest.mark.parametrize("name", [n for n in LAYOUTS if n != "bad"])
    def test_layout_builds(self, name: str) -> None:
        assert make_source(LAYOUTS[name]).update() is True

    def test_bad_layout_fails(self) -> None:
        assert make_source(LAYOUTS["bad"]).update() is False

    @pytest.mark.parametrize("name", list(LAYOUTS))
    def test_display_is_a_panel(self, name: str) -> None:
        assert isinstance(generate_display(name, make_source(LAYOUTS[name])), Panel)
