"""
Text reports for hypertree builds.

Provides three views:
1. Level table dump - each depth's descriptor, coloured by node kind
2. Grid summary - node and leaf counts per depth for a decoded grid
3. Source description - every setting of a HyperTreeGridSource
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable

import simple_chalk as chalk  # type: ignore[import-untyped]

from hypertree import HyperTreeGrid, HyperTreeGridSource, LevelTable
from hypertree_types import NO_MATERIAL, REFINED

logger = logging.getLogger(__name__)


def _plain(s: str) -> str:
    return s


# =============================================================================
# Level Table
# =============================================================================


def colorize_level(descriptor: str, mask: str | None = None, color: bool = True) -> str:
    """
    Colour one depth's descriptor: refined yellow, leaves green, empty leaves blue.

    Without colour, empty leaves are shown as '_' so they stay visible.
    """
    parts: list[str] = []
    for pos, char in enumerate(descriptor):
        blanked = mask is not None and mask[pos] == NO_MATERIAL
        if not color:
            parts.append("_" if blanked else char)
        elif char == REFINED:
            parts.append(chalk.yellow(char))
        elif blanked:
            parts.append(chalk.blue(char))
        else:
            parts.append(chalk.green(char))
    return "".join(parts)


def format_level_table(table: LevelTable, color: bool = True) -> str:
    """
    One line per depth: index, refined/leaf counts, counter and the descriptor.

    Example:
        Level 0 (1 refined, 0 leaves, counter 1): R
        Level 1 (1 refined, 3 leaves, counter 1): R...
        Level 2 (0 refined, 4 leaves, counter 0): ....
    """
    header = chalk.cyan if color else _plain
    lines = [
        header(
            f"{len(table)} levels, maximum depth {table.max_depth}"
            + (", material mask" if table.use_material_mask else "")
        )
    ]
    for depth, level in enumerate(table.levels):
        refined = level.descriptor.count(REFINED)
        leaves = len(level.descriptor) - refined
        marker = "" if depth < table.max_depth else " (beyond maximum depth)"
        lines.append(
            f"Level {depth} ({refined} refined, {leaves} leaves, counter {level.counter}){marker}: "
            + colorize_level(level.descriptor, level.mask, color)
        )
    return "\n".join(lines)


# =============================================================================
# Grid Summary
# =============================================================================


def depth_histogram(grid: HyperTreeGrid) -> tuple[Counter[int], Counter[int]]:
    """
    Count internal nodes and leaves per depth over all trees.

    Returns:
        Tuple of (internal_by_depth, leaves_by_depth)
    """
    internal: Counter[int] = Counter()
    leaves: Counter[int] = Counter()
    for tree in grid.trees:
        for node in tree.nodes:
            if node.is_leaf:
                leaves[node.depth] += 1
            else:
                internal[node.depth] += 1
    return (internal, leaves)


def summarize_grid(grid: HyperTreeGrid, color: bool = True) -> str:
    """Describe a decoded grid: tree count, leaves, and a per-depth breakdown."""
    header: Callable[[str], str] = chalk.cyan if color else _plain
    warn: Callable[[str], str] = chalk.blue if color else _plain

    internal, leaves = depth_histogram(grid)
    topo = grid.topology
    lines = [
        header(
            f"{len(grid.trees)} trees ({topo.lattice_size[0]}x{topo.lattice_size[1]}x{topo.lattice_size[2]}), "
            f"dimension {topo.dimension}, branch factor {topo.branch_factor}"
        ),
        f"Leaves: {grid.leaf_count}, maximum depth {grid.max_depth}",
    ]
    if grid.material_blank is not None:
        blanked = sum(1 for b in grid.material_blank if b)
        lines.append(warn(f"Blanked leaves: {blanked}"))

    for depth in range(max(list(internal) + list(leaves), default=-1) + 1):
        lines.append(f"  Depth {depth}: {internal[depth]} refined, {leaves[depth]} leaves")
    return "\n".join(lines)


# =============================================================================
# Source Description
# =============================================================================


def describe_source(source: HyperTreeGridSource) -> str:
    """List every setting of a source and the size of its last parse."""
    table = source.level_table
    n_levels = len(table) if table is not None else 0
    lines = [
        f"LatticeSize: {','.join(str(n) for n in source.lattice_size)}",
        f"GridScale: {','.join(str(s) for s in source.grid_scale)}",
        f"MaximumDepth: {source.max_depth}",
        f"Dimension: {source.dimension}",
        f"BranchFactor: {source.branch_factor}",
        f"BlockSize: {source.block_size}",
        f"UseMaterialMask: {source.use_material_mask}",
        f"Descriptor: {source.descriptor}",
        f"MaterialMask: {source.material_mask}",
        f"LevelDescriptors: {n_levels}",
        f"LevelMaterialMasks: {len(table.masks) if table is not None else 0}",
        f"LevelCounters: {n_levels}",
        f"Output: {'(none)' if source.output is None else f'{source.output.leaf_count} leaves'}",
    ]
    return "\n".join(lines)


def format_error(error: Exception, color: bool = True) -> str:
    """Render a build error for the terminal."""
    text = f"Build failed: {type(error).__name__}\n{error}"
    return chalk.red(text) if color else text
