"""
Hypertree grid construction from a level-ordered descriptor.
Two-phase algorithm: parse (builds LevelTable) -> decode (builds HyperTreeGrid).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from descriptor_parser import parse_descriptor, split_levels
from hypertree_types import (
    NO_MATERIAL,
    REFINED,
    SCALARS_NAME,
    DecoderInvariantError,
    DescriptorError,
    GridTopology,
    HyperTree,
    HyperTreeGrid,
    LevelCardinalityMismatch,
    LevelEntry,
    LevelTable,
    MaskAlignmentMismatch,
    MaskLengthMismatch,
    RefinedWithoutMaterial,
    TreeNode,
    UnrecognizedCharacter,
)

__all__ = [
    "DecoderInvariantError",
    "DescriptorError",
    "GridTopology",
    "HyperTree",
    "HyperTreeGrid",
    "HyperTreeGridSource",
    "LevelCardinalityMismatch",
    "LevelEntry",
    "LevelTable",
    "MaskAlignmentMismatch",
    "MaskLengthMismatch",
    "RefinedWithoutMaterial",
    "SourceInformation",
    "TreeNode",
    "TreeStart",
    "UnrecognizedCharacter",
    "decode_forest",
    "decode_tree",
    "parse_descriptor",
    "partition_level_counters",
    "split_levels",
    "uniform_coordinates",
]

logger = logging.getLogger(__name__)


# =============================================================================
# Phase 2: Decode
# =============================================================================


def _level_char(level_table: LevelTable, depth: int, pointer: int, *, mask: bool = False) -> str:
    """Read one node's character, treating any overrun as a broken level table."""
    if depth >= len(level_table):
        raise DecoderInvariantError(
            f"Depth {depth} is beyond the {len(level_table)} parsed levels"
        )
    entry = level_table[depth]
    text = entry.mask if mask else entry.descriptor
    if text is None or not 0 <= pointer < len(text):
        raise DecoderInvariantError(
            f"Pointer {pointer} is outside level {depth} "
            f"{'mask' if mask else 'descriptor'} {text!r}"
        )
    return text[pointer]


def decode_tree(
    level_table: LevelTable,
    topology: GridTopology,
    tree_index: int,
    grid: HyperTreeGrid,
    max_depth: int | None = None,
    leaf_id_base: int | None = None,
) -> HyperTree:
    """
    Build one root tree by DFS over the level descriptors.

    Refined nodes take the next rank at their depth once all their children
    are done; that rank locates their children's block in the next depth.
    Leaves get consecutive ids starting at leaf_id_base and store their depth
    as scalar value. Ids follow depth-first order, not breadth-first: for
    "R|R...|...." the deeper leaves come first, giving [2, 2, 2, 2, 1, 1, 1].

    Args:
        level_table: Parsed levels; counters are advanced in place
        topology: Forest shape
        tree_index: Root position in the level-0 descriptor
        grid: Receives leaf scalars and blank flags
        max_depth: Depth limit (defaults to level_table.max_depth)
        leaf_id_base: First leaf id (defaults to grid.leaf_count)
    """
    if max_depth is None:
        max_depth = level_table.max_depth
    if leaf_id_base is None:
        leaf_id_base = grid.leaf_count

    block_size = topology.block_size
    x_dim, y_dim, z_dim = topology.child_extents
    tree = HyperTree(tree_index, block_size, [TreeNode(0, (0, 0, 0))])
    next_leaf = 0

    def visit(node_idx: int, depth: int, child_slot: int, parent_rank: int) -> None:
        nonlocal next_leaf
        node = tree.nodes[node_idx]
        pointer = tree_index if depth == 0 else child_slot + parent_rank * block_size

        refine = _level_char(level_table, depth, pointer) == REFINED and depth + 1 < max_depth

        if refine:
            node.first_child = len(tree.nodes)
            ix, iy, iz = node.index
            for z in range(z_dim):
                for y in range(y_dim):
                    for x in range(x_dim):
                        tree.nodes.append(
                            TreeNode(depth + 1, (ix * x_dim + x, iy * y_dim + y, iz * z_dim + z))
                        )

            # Shared by all children of this node
            rank = level_table[depth].counter
            for slot in range(block_size):
                visit(node.first_child + slot, depth + 1, slot, rank)
            level_table[depth].counter += 1
        else:
            node.leaf_id = leaf_id_base + next_leaf
            next_leaf += 1
            blanked = None
            if level_table.use_material_mask:
                blanked = _level_char(level_table, depth, pointer, mask=True) == NO_MATERIAL
            grid.set_leaf(node.leaf_id, float(depth), blanked)

    visit(0, 0, 0, 0)
    logger.debug(
        "Tree %d: %d nodes, %d leaves from id %d",
        tree_index,
        len(tree.nodes),
        next_leaf,
        leaf_id_base,
    )
    return tree


def decode_forest(
    level_table: LevelTable,
    topology: GridTopology,
    max_depth: int | None = None,
) -> HyperTreeGrid:
    """
    Decode every root tree in lattice order (i inner, j middle, k outer).

    Counters are reset first, so decoding the same table twice gives the same
    grid. Trees share the counters and must run one after another.
    """
    if max_depth is None:
        max_depth = level_table.max_depth

    level_table.reset_counters()
    grid = HyperTreeGrid(topology, max_depth)
    if level_table.use_material_mask:
        grid.material_blank = []

    for i, j, k in topology.iter_lattice():
        grid.trees.append(decode_tree(level_table, topology, topology.tree_index(i, j, k), grid, max_depth))

    logger.info(
        "Decoded %d trees: %d leaves, maximum depth %d",
        len(grid.trees),
        grid.leaf_count,
        max_depth,
    )
    return grid


# =============================================================================
# Per-Tree Partition
# =============================================================================


@dataclass(frozen=True)
class TreeStart:
    """Where a root tree's walk begins in the shared counters and leaf ids."""

    tree_index: int
    ranks: tuple[int, ...]  # Counter value at each depth before this tree
    leaf_id_base: int


def partition_level_counters(
    level_table: LevelTable,
    topology: GridTopology,
    max_depth: int | None = None,
) -> list[TreeStart]:
    """
    Compute each tree's starting counters and first leaf id.

    Decoding a tree from a copy of the level table reset to its ranks, with
    its leaf_id_base, reproduces what the sequential forest walk would give
    that tree. This only counts, it builds no nodes. Results are in lattice
    order.
    """
    if max_depth is None:
        max_depth = level_table.max_depth

    block_size = topology.block_size
    ranks = [0] * len(level_table)
    leaves = 0
    starts: list[TreeStart] = []

    def count(tree_index: int, depth: int, child_slot: int, parent_rank: int) -> None:
        nonlocal leaves
        pointer = tree_index if depth == 0 else child_slot + parent_rank * block_size
        if _level_char(level_table, depth, pointer) == REFINED and depth + 1 < max_depth:
            rank = ranks[depth]
            for slot in range(block_size):
                count(tree_index, depth + 1, slot, rank)
            ranks[depth] += 1
        else:
            leaves += 1

    for i, j, k in topology.iter_lattice():
        tree_index = topology.tree_index(i, j, k)
        starts.append(TreeStart(tree_index, tuple(ranks), leaves))
        count(tree_index, 0, 0, 0)

    return starts


# =============================================================================
# Geometry
# =============================================================================


def uniform_coordinates(count: int, scale: float = 1.0, origin: float = 0.0) -> list[float]:
    """count + 1 evenly spaced coordinates along one axis."""
    return [origin + scale * j for j in range(count + 1)]


# =============================================================================
# Source
# =============================================================================


@dataclass(frozen=True)
class SourceInformation:
    """What a source can report before it builds anything."""

    levels: int  # Upper bound; the descriptor may describe fewer
    dimension: int
    origin: tuple[float, float, float]


class HyperTreeGridSource:
    """
    Builds a HyperTreeGrid from a descriptor and its settings.

    Usage:
        source = HyperTreeGridSource()
        source.dimension = 2
        source.max_depth = 3
        source.descriptor = "R|R...|...."
        if source.update():
            print(source.output.leaf_count)
    """

    def __init__(self) -> None:
        self.branch_factor = 2
        self._max_depth = 1
        self.dimension = 3
        self.lattice_size = (1, 1, 1)
        self.grid_scale: tuple[float, float, float] = (1.0, 1.0, 1.0)
        self.use_material_mask = False
        self.descriptor = "."
        self.material_mask = "0"

        self.level_table: LevelTable | None = None
        self.output: HyperTreeGrid | None = None

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @max_depth.setter
    def max_depth(self, levels: int) -> None:
        self._max_depth = max(1, levels)

    @property
    def dimension(self) -> int:
        return self._dimension

    @dimension.setter
    def dimension(self, dimension: int) -> None:
        self._dimension = min(3, max(1, dimension))

    @property
    def branch_factor(self) -> int:
        return self._branch_factor

    @branch_factor.setter
    def branch_factor(self, branch_factor: int) -> None:
        self._branch_factor = max(2, branch_factor)

    @property
    def lattice_size(self) -> tuple[int, int, int]:
        return self._lattice_size

    @lattice_size.setter
    def lattice_size(self, size: tuple[int, int, int]) -> None:
        nx, ny, nz = size
        self._lattice_size = (max(1, nx), max(1, ny), max(1, nz))

    @property
    def topology(self) -> GridTopology:
        return GridTopology(self.dimension, self.branch_factor, self.lattice_size)

    @property
    def block_size(self) -> int:
        return self.topology.block_size

    def information(self) -> SourceInformation:
        """Report level bound, dimension and origin without parsing."""
        return SourceInformation(self._max_depth, self.dimension, (0.0, 0.0, 0.0))

    def build(self) -> HyperTreeGrid:
        """
        Parse the descriptor and decode the whole forest.

        Raises:
            DescriptorError: The descriptor or mask is inconsistent
        """
        self.level_table = None
        self.output = None

        topology = self.topology
        table = parse_descriptor(
            self.descriptor,
            topology,
            self.material_mask if self.use_material_mask else None,
            self._max_depth,
        )
        self.level_table = table

        grid = decode_forest(table, topology)
        grid.scalars_name = SCALARS_NAME
        grid.x_coordinates = uniform_coordinates(topology.lattice_size[0], self.grid_scale[0])
        grid.y_coordinates = uniform_coordinates(topology.lattice_size[1], self.grid_scale[1])
        grid.z_coordinates = uniform_coordinates(topology.lattice_size[2], self.grid_scale[2])

        self.output = grid
        return grid

    def update(self) -> bool:
        """Build and report success. Descriptor errors are logged, not raised."""
        try:
            self.build()
        except DescriptorError as e:
            logger.error("%s", e)
            return False
        return True
