"""
Shared type definitions for the hypertree system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

# =============================================================================
# Descriptor Alphabet
# =============================================================================

REFINED = "R"
LEAF = "."
SPACE = " "
LEVEL_SEPARATOR = "|"

MATERIAL = "1"
NO_MATERIAL = "0"

SCALARS_NAME = "Cell Value"


# =============================================================================
# Errors
# =============================================================================


class DescriptorError(ValueError):
    """A descriptor or material mask that cannot be decoded."""


class MaskLengthMismatch(DescriptorError):
    """Material mask and descriptor have different lengths."""

    def __init__(self, descriptor: str, mask: str) -> None:
        self.descriptor = descriptor
        self.mask = mask
        self.expected = len(descriptor)
        self.actual = len(mask)
        super().__init__(
            f"Material mask is used but has length {self.actual}\n"
            f"  Expected: {self.expected} (length of the descriptor)\n"
            f"  Descriptor: \"{descriptor}\"\n"
            f"  Mask: \"{mask}\""
        )


class MaskAlignmentMismatch(DescriptorError):
    """A separator in one string does not line up with the same separator in the other."""

    def __init__(self, descriptor: str, mask: str, position: int) -> None:
        self.descriptor = descriptor
        self.mask = mask
        self.position = position
        self.expected = descriptor[position]
        self.actual = mask[position]
        kind = "Level" if LEVEL_SEPARATOR in (self.expected, self.actual) else "Space"
        super().__init__(
            f"{kind} separators do not match between descriptor and material mask\n"
            f"  Position: {position}\n"
            f"  Descriptor has '{self.expected}', mask has '{self.actual}'\n"
            f"  Descriptor: \"{descriptor}\"\n"
            f"  Mask: \"{mask}\""
        )


class LevelCardinalityMismatch(DescriptorError):
    """A level describes a different number of cells than the previous level predicts."""

    def __init__(self, descriptor: str, level: int, level_descriptor: str, expected: int, actual: int) -> None:
        self.descriptor = descriptor
        self.level = level
        self.level_descriptor = level_descriptor
        self.expected = expected
        self.actual = actual
        if level == 0:
            detail = f"  String \"{descriptor}\" describes {actual} root cells != {expected}"
        else:
            detail = (
                f"  Level {level} descriptor \"{level_descriptor}\" has cardinality {actual}"
                f" which is not expected value of {expected}"
            )
        super().__init__(f"Level cardinality mismatch\n{detail}")


class RefinedWithoutMaterial(DescriptorError):
    """A refined cell is marked as empty in the material mask."""

    def __init__(self, descriptor: str, mask: str, position: int) -> None:
        self.descriptor = descriptor
        self.mask = mask
        self.position = position
        super().__init__(
            f"A refined branch must contain material\n"
            f"  Position: {position}\n"
            f"  Descriptor: \"{descriptor}\"\n"
            f"  Mask: \"{mask}\""
        )


class UnrecognizedCharacter(DescriptorError):
    """A character outside the descriptor (or mask) alphabet."""

    def __init__(self, character: str, source: str, position: int, valid: str) -> None:
        self.character = character
        self.source = source
        self.position = position
        self.valid = valid
        super().__init__(
            f"Unrecognized character: '{character}'\n"
            f"  In string: \"{source}\"\n"
            f"  Position: {position}\n"
            f"  Valid characters: {valid}"
        )


class DecoderInvariantError(AssertionError):
    """The decoder stepped outside a level descriptor; the level table is malformed."""


# =============================================================================
# Grid Topology
# =============================================================================


@dataclass(frozen=True)
class GridTopology:
    """Shape of the forest: how many root trees, and how each node subdivides."""

    dimension: int = 3
    branch_factor: int = 2
    lattice_size: tuple[int, int, int] = (1, 1, 1)

    def __post_init__(self) -> None:
        if self.dimension not in (1, 2, 3):
            raise ValueError(f"Dimension must be 1, 2 or 3, got {self.dimension}")
        if self.branch_factor < 2:
            raise ValueError(f"Branch factor must be at least 2, got {self.branch_factor}")
        if len(self.lattice_size) != 3 or any(n < 1 for n in self.lattice_size):
            raise ValueError(
                f"Lattice size must be three positive integers, got {self.lattice_size}"
            )

    @property
    def block_size(self) -> int:
        """Children per refined node."""
        return self.branch_factor**self.dimension

    @property
    def tree_count(self) -> int:
        nx, ny, nz = self.lattice_size
        return nx * ny * nz

    @property
    def child_extents(self) -> tuple[int, int, int]:
        """Per-axis child counts; inactive axes have extent 1."""
        bf = self.branch_factor
        return (
            bf,
            bf if self.dimension >= 2 else 1,
            bf if self.dimension == 3 else 1,
        )

    def tree_index(self, i: int, j: int, k: int) -> int:
        nx, ny, _ = self.lattice_size
        return (k * ny + j) * nx + i

    def iter_lattice(self) -> Iterator[tuple[int, int, int]]:
        """Root positions in decoding order: i inner, j middle, k outer."""
        nx, ny, nz = self.lattice_size
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    yield (i, j, k)


# =============================================================================
# Level Table (parser output)
# =============================================================================


@dataclass
class LevelEntry:
    """One depth of the descriptor with separators stripped."""

    descriptor: str
    mask: str | None = None
    counter: int = 0  # Refined nodes consumed so far at this depth


@dataclass
class LevelTable:
    """Per-depth descriptors plus the running rank counters shared by the whole forest."""

    levels: list[LevelEntry]
    max_depth: int
    use_material_mask: bool = False

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, depth: int) -> LevelEntry:
        return self.levels[depth]

    @property
    def descriptors(self) -> list[str]:
        return [level.descriptor for level in self.levels]

    @property
    def masks(self) -> list[str]:
        return [level.mask or "" for level in self.levels] if self.use_material_mask else []

    @property
    def counters(self) -> list[int]:
        return [level.counter for level in self.levels]

    def reset_counters(self, start: list[int] | None = None) -> None:
        if start is None:
            start = [0] * len(self.levels)
        for level, value in zip(self.levels, start):
            level.counter = value

    def copy(self) -> LevelTable:
        """Independent copy, counters included."""
        return LevelTable(
            [LevelEntry(lvl.descriptor, lvl.mask, lvl.counter) for lvl in self.levels],
            self.max_depth,
            self.use_material_mask,
        )


# =============================================================================
# Output Grid (decoder output)
# =============================================================================


@dataclass
class TreeNode:
    """Arena entry. Internal nodes have first_child set, leaves have leaf_id set."""

    depth: int
    index: tuple[int, int, int]  # Position among all nodes of this depth in the tree
    first_child: int = -1
    leaf_id: int = -1

    @property
    def is_leaf(self) -> bool:
        return self.first_child < 0


@dataclass
class HyperTree:
    """
    One root tree stored as a flat node table.

    Children of an internal node occupy block_size consecutive slots starting
    at its first_child, enumerated with x varying fastest.
    """

    tree_index: int
    block_size: int
    nodes: list[TreeNode] = field(default_factory=list)

    @property
    def root(self) -> TreeNode:
        return self.nodes[0]

    def children(self, node: int) -> range:
        first = self.nodes[node].first_child
        if first < 0:
            return range(0)
        return range(first, first + self.block_size)

    def leaves(self) -> Iterator[TreeNode]:
        """Leaves in leaf-id order."""
        return iter(sorted((n for n in self.nodes if n.is_leaf), key=lambda n: n.leaf_id))

    @property
    def leaf_count(self) -> int:
        return sum(1 for n in self.nodes if n.is_leaf)

    @property
    def internal_count(self) -> int:
        return len(self.nodes) - self.leaf_count

    @property
    def depth(self) -> int:
        """Number of levels actually present."""
        return max(n.depth for n in self.nodes) + 1 if self.nodes else 0


@dataclass
class HyperTreeGrid:
    """The decoded forest plus per-leaf data indexed by global leaf id."""

    topology: GridTopology
    max_depth: int
    trees: list[HyperTree] = field(default_factory=list)
    scalars: list[float] = field(default_factory=list)
    material_blank: list[bool] | None = None
    scalars_name: str = SCALARS_NAME
    x_coordinates: list[float] = field(default_factory=list)
    y_coordinates: list[float] = field(default_factory=list)
    z_coordinates: list[float] = field(default_factory=list)

    @property
    def leaf_count(self) -> int:
        return len(self.scalars)

    def set_leaf(self, leaf_id: int, value: float, blanked: bool | None = None) -> None:
        """Store leaf data at leaf_id, growing the arrays as needed."""
        if leaf_id >= len(self.scalars):
            self.scalars.extend([0.0] * (leaf_id + 1 - len(self.scalars)))
        self.scalars[leaf_id] = value
        if blanked is not None:
            if self.material_blank is None:
                self.material_blank = []
            if leaf_id >= len(self.material_blank):
                self.material_blank.extend([False] * (leaf_id + 1 - len(self.material_blank)))
            self.material_blank[leaf_id] = blanked

    def tree(self, tree_index: int) -> HyperTree:
        for tree in self.trees:
            if tree.tree_index == tree_index:
                return tree
        raise KeyError(f"No tree with index {tree_index}")
