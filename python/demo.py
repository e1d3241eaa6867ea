"""
Demonstration of hypertree grid builds.
Builds a named layout and shows its level table and leaf summary.
"""

import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from hypertree import DescriptorError, HyperTreeGridSource
from level_report import describe_source, format_error, format_level_table, summarize_grid


LAYOUTS = dict(
    quadtree = dict(
        dimension = 2,
        max_depth = 3,
        descriptor = 'R|R...|....',
    ),
    binary = dict(
        dimension = 1,
        lattice_size = (3, 1, 1),
        max_depth = 4,
        descriptor = 'R.R|R...|R.|..',
    ),
    octree = dict(
        dimension = 3,
        lattice_size = (2, 1, 1),
        max_depth = 3,
        descriptor = 'R. |.R...... |........',
    ),
    ternary_masked = dict(
        dimension = 2,
        branch_factor = 3,
        lattice_size = (2, 2, 1),
        max_depth = 2,
        descriptor = '.R.. | ..R......',
        material_mask = '1101 | 101111011',
        use_material_mask = True,
    ),
    clamped = dict(
        dimension = 2,
        max_depth = 10,
        descriptor = 'R|....',
    ),
    bad = dict(
        dimension = 2,
        lattice_size = (2, 1, 1),
        max_depth = 2,
        descriptor = 'R|....',
    ),
)


def make_source(layout: dict) -> HyperTreeGridSource:
    """Create a source configured from a LAYOUTS entry."""
    source = HyperTreeGridSource()
    for key, value in layout.items():
        setattr(source, key, value)
    return source


def generate_display(name: str, source: HyperTreeGridSource) -> Panel:
    """Build the source and lay the reports out in a panel."""
    body = Text()
    try:
        grid = source.build()
    except DescriptorError as e:
        body.append(Text.from_ansi(format_error(e)))
        body.append("\n\n")
        body.append(describe_source(source))
        return Panel(body, title=f"Hypertree - {name}", border_style="red", width=100)

    body.append("Levels\n", style="bold cyan")
    body.append(Text.from_ansi(format_level_table(source.level_table)))
    body.append("\n\n")
    body.append("Grid\n", style="bold cyan")
    body.append(Text.from_ansi(summarize_grid(grid)))
    body.append("\n\n")
    body.append("Scalars: ", style="bold")
    body.append(" ".join(f"{v:g}" for v in grid.scalars))
    if grid.material_blank is not None:
        body.append("\nBlanked: ", style="bold")
        body.append(" ".join("1" if b else "0" for b in grid.material_blank))
    return Panel(body, title=f"Hypertree - {name}", border_style="green", width=100)


def main(names: list[str]) -> None:
    """Build and show each named layout."""
    console = Console()
    for name in names:
        if name not in LAYOUTS:
            console.print(f"[red]Unknown layout: {name!r}[/red] (choose from {', '.join(LAYOUTS)})")
            continue
        console.print(generate_display(name, make_source(LAYOUTS[name])))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    main(sys.argv[1:] or list(LAYOUTS))
