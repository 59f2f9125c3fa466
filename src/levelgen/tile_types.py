"""Tile types and their properties."""

from enum import IntEnum

import numpy as np
from numpy.typing import NDArray


class TileType(IntEnum):
    """Closed set of tile types. Values are stored in uint8 grids."""

    WALL = 0
    FLOOR = 1
    DOOR = 2
    CORRIDOR = 3
    WATER_SHALLOW = 4
    WATER_DEEP = 5
    BRIDGE = 6
    STAIRS_UP = 7
    STAIRS_DOWN = 8
    TREE = 9
    STRUCTURE = 10

    @property
    def walkable(self) -> bool:
        """Whether entities can move through this tile."""
        return self in _WALKABLE_TYPES

    @property
    def opaque(self) -> bool:
        """Whether this tile blocks line of sight."""
        return self in _OPAQUE_TYPES

    @property
    def is_water(self) -> bool:
        return self in WATER_TYPES

    @property
    def glyph(self) -> str:
        """ASCII glyph used by visualization tooling."""
        return GLYPHS[self]


# Define sets for O(1) lookup
_WALKABLE_TYPES = frozenset({
    TileType.FLOOR,
    TileType.DOOR,
    TileType.CORRIDOR,
    TileType.WATER_SHALLOW,
    TileType.BRIDGE,
})

_OPAQUE_TYPES = frozenset({
    TileType.WALL,
    TileType.TREE,
    TileType.STRUCTURE,
})

WATER_TYPES = frozenset({TileType.WATER_SHALLOW, TileType.WATER_DEEP})

STAIR_TYPES = frozenset({TileType.STAIRS_UP, TileType.STAIRS_DOWN})

# Fixed mapping other tools rely on
GLYPHS: dict[TileType, str] = {
    TileType.WALL: "#",
    TileType.FLOOR: ".",
    TileType.DOOR: "+",
    TileType.CORRIDOR: ":",
    TileType.WATER_SHALLOW: "W",
    TileType.WATER_DEEP: "~",
    TileType.BRIDGE: "=",
    TileType.STAIRS_UP: "^",
    TileType.STAIRS_DOWN: "v",
    TileType.TREE: "T",
    TileType.STRUCTURE: "@",
}

# Tile value -> walkable, for vectorized masks over uint8 grids
WALKABLE_LOOKUP: NDArray[np.bool_] = np.zeros(256, dtype=bool)
WALKABLE_LOOKUP[[int(t) for t in _WALKABLE_TYPES]] = True

GLYPH_LOOKUP: NDArray[np.str_] = np.full(256, "?", dtype="<U1")
GLYPH_LOOKUP[[int(t) for t in GLYPHS]] = list(GLYPHS.values())


def is_walkable(tile: int) -> bool:
    """Check whether a tile value is walkable."""
    return bool(WALKABLE_LOOKUP[int(tile)])
