"""
Descriptor parsing for hypertree grids.

A descriptor lists every node of the forest one depth at a time:
- 'R' refines the node (it gets branch_factor**dimension children)
- '.' makes the node a leaf
- ' ' is ignored
- '|' closes the current depth

The first depth holds one character per root tree. Every later depth holds
block_size characters for each 'R' of the depth before it, in the order
those 'R's appear.

An optional material mask has the same length and the same separators, with
'1' (material) or '0' (empty) at each node position.
"""

from __future__ import annotations

import logging

from hypertree_types import (
    LEAF,
    LEVEL_SEPARATOR,
    MATERIAL,
    NO_MATERIAL,
    REFINED,
    SPACE,
    GridTopology,
    LevelCardinalityMismatch,
    LevelEntry,
    LevelTable,
    MaskAlignmentMismatch,
    MaskLengthMismatch,
    RefinedWithoutMaterial,
    UnrecognizedCharacter,
)

__all__ = ["parse_descriptor", "split_levels"]

logger = logging.getLogger(__name__)

_DESCRIPTOR_ALPHABET = "'R' (refined), '.' (leaf), ' ' (space), '|' (level separator)"
_MASK_ALPHABET = "'1' (material), '0' (empty), ' ' (space), '|' (level separator)"


def parse_descriptor(
    descriptor: str,
    topology: GridTopology,
    material_mask: str | None = None,
    max_depth: int = 1,
) -> LevelTable:
    """
    Split a descriptor into per-depth strings and check that they are consistent.

    Example (2D, branch factor 2, one root tree):
        parse_descriptor("R|R...|....", GridTopology(2, 2), max_depth=3)
        -> levels "R", "R...", "...."

    Args:
        descriptor: Level-ordered refinement string
        topology: Dimension, branch factor and lattice of root trees
        material_mask: Parallel mask string, or None to disable masking
        max_depth: Requested depth limit; clamped to the number of parsed levels

    Returns:
        LevelTable with all counters at zero

    Raises:
        MaskLengthMismatch: Mask and descriptor lengths differ
        MaskAlignmentMismatch: A ' ' or '|' is not matched in the other string
        LevelCardinalityMismatch: A depth has the wrong number of cells
        RefinedWithoutMaterial: An 'R' is paired with '0'
        UnrecognizedCharacter: Character outside the alphabet
    """
    if max_depth < 1:
        raise ValueError(f"Maximum depth must be at least 1, got {max_depth}")

    use_mask = material_mask is not None
    if use_mask and len(material_mask) != len(descriptor):
        raise MaskLengthMismatch(descriptor, material_mask)

    block_size = topology.block_size
    levels: list[LevelEntry] = []

    n_refined = 0
    n_leaves = 0
    n_next_level = topology.tree_count
    root_level = True
    level_chars: list[str] = []
    mask_chars: list[str] = []

    for pos, char in enumerate(descriptor):
        mask_char = material_mask[pos] if use_mask else None

        if use_mask and mask_char not in (MATERIAL, NO_MATERIAL, SPACE, LEVEL_SEPARATOR):
            raise UnrecognizedCharacter(mask_char, material_mask, pos, _MASK_ALPHABET)

        if char == SPACE:
            if use_mask and mask_char != SPACE:
                raise MaskAlignmentMismatch(descriptor, material_mask, pos)
            continue

        if char == LEVEL_SEPARATOR:
            if use_mask and mask_char != LEVEL_SEPARATOR:
                raise MaskAlignmentMismatch(descriptor, material_mask, pos)

            level_str = "".join(level_chars)
            if root_level:
                root_level = False
                if n_refined + n_leaves != topology.tree_count:
                    raise LevelCardinalityMismatch(
                        descriptor, 0, level_str, topology.tree_count, n_refined + n_leaves
                    )
            elif len(level_str) != n_next_level:
                raise LevelCardinalityMismatch(
                    descriptor, len(levels), level_str, n_next_level, len(level_str)
                )

            levels.append(LevelEntry(level_str, "".join(mask_chars) if use_mask else None))
            logger.debug(
                "Level %d: %d refined, %d leaves", len(levels) - 1, n_refined, n_leaves
            )

            # Predict the next depth from this one's refinements
            n_next_level = n_refined * block_size

            level_chars = []
            mask_chars = []
            n_refined = 0
            n_leaves = 0
            continue

        if char == REFINED:
            if use_mask and mask_char == NO_MATERIAL:
                raise RefinedWithoutMaterial(descriptor, material_mask, pos)
            n_refined += 1
        elif char == LEAF:
            n_leaves += 1
        else:
            raise UnrecognizedCharacter(char, descriptor, pos, _DESCRIPTOR_ALPHABET)

        if use_mask and mask_char in (SPACE, LEVEL_SEPARATOR):
            raise MaskAlignmentMismatch(descriptor, material_mask, pos)

        level_chars.append(char)
        if use_mask:
            mask_chars.append(mask_char)

    # The trailing depth needs no '|'
    level_str = "".join(level_chars)
    if len(level_str) != n_next_level:
        raise LevelCardinalityMismatch(
            descriptor, len(levels), level_str, n_next_level, len(level_str)
        )
    levels.append(LevelEntry(level_str, "".join(mask_chars) if use_mask else None))

    if len(levels) < max_depth:
        logger.info(
            "Descriptor describes %d levels, clamping maximum depth from %d",
            len(levels),
            max_depth,
        )
        max_depth = len(levels)

    logger.info(
        "Parsed descriptor: %d levels, %d root trees, maximum depth %d",
        len(levels),
        topology.tree_count,
        max_depth,
    )
    return LevelTable(levels, max_depth, use_mask)


def split_levels(descriptor: str) -> list[str]:
    """
    Split a descriptor on '|' and drop spaces, without any validation.

    Useful for showing a rejected descriptor level by level.
    """
    return [segment.replace(SPACE, "") for segment in descriptor.split(LEVEL_SEPARATOR)]
