"""Terrain grid: bounds-safe tile storage plus rooms and stairs."""

from typing import Any

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, Field, PrivateAttr

from .exceptions import InvalidDimensionsError
from .tile_types import GLYPH_LOOKUP, WALKABLE_LOOKUP, TileType
from .types import CARDINAL_DELTAS, Point, Room

# Guards against runaway allocations from bad parameters
MAX_DIMENSION = 10000


class Terrain(BaseModel):
    """
    Generated level.

    Width and height are fixed at construction. The tile grid has shape
    (height, width), dtype uint8, values from TileType, and starts as all WALL.
    """

    width: int = Field(frozen=True)
    height: int = Field(frozen=True)
    seed: int = 0
    level: int = 0
    kind: str = ""
    rooms: list[Room] = Field(default_factory=list)
    stairs_up: list[Point] = Field(default_factory=list)
    stairs_down: list[Point] = Field(default_factory=list)

    _tiles: NDArray[np.uint8] = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionsError(
                f"width and height must be positive (got {self.width}x{self.height})"
            )
        if self.width > MAX_DIMENSION or self.height > MAX_DIMENSION:
            raise InvalidDimensionsError(
                f"dimensions exceed {MAX_DIMENSION} (got {self.width}x{self.height})"
            )
        self._tiles = np.full((self.height, self.width), TileType.WALL, dtype=np.uint8)

    # --- Tile operations ---

    @property
    def grid(self) -> NDArray[np.uint8]:
        """Underlying (height, width) tile array. Writes go straight to the terrain."""
        return self._tiles

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile(self, x: int, y: int) -> TileType:
        """Get tile at (x, y). Out-of-bounds coordinates read as WALL."""
        if not self.in_bounds(x, y):
            return TileType.WALL
        return TileType(int(self._tiles[y, x]))

    def set_tile(self, x: int, y: int, tile: TileType) -> None:
        """Set tile at (x, y). Out-of-bounds writes are ignored."""
        if self.in_bounds(x, y):
            self._tiles[y, x] = tile

    def is_walkable(self, x: int, y: int) -> bool:
        if not self.in_bounds(x, y):
            return False
        return bool(WALKABLE_LOOKUP[self._tiles[y, x]])

    def fill(self, tile: TileType) -> None:
        self._tiles[:, :] = tile

    def fill_rect(self, x: int, y: int, width: int, height: int, tile: TileType) -> None:
        """Fill a rectangle, clipped to the grid."""
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + width, self.width), min(y + height, self.height)
        if x0 < x1 and y0 < y1:
            self._tiles[y0:y1, x0:x1] = tile

    def walkable_mask(self) -> NDArray[np.bool_]:
        return WALKABLE_LOOKUP[self._tiles]

    def count(self, tile: TileType) -> int:
        return int(np.count_nonzero(self._tiles == tile))

    def walkable_ratio(self) -> float:
        """Fraction of all tiles that are walkable."""
        return float(np.count_nonzero(self.walkable_mask())) / (self.width * self.height)

    def walkable_neighbor_count(self, x: int, y: int) -> int:
        return sum(self.is_walkable(x + dx, y + dy) for dx, dy in CARDINAL_DELTAS)

    # --- Rooms and stairs ---

    def add_room(self, room: Room) -> None:
        self.rooms.append(room)

    def add_stairs(self, x: int, y: int, up: bool) -> Point:
        """Place a staircase tile and record it."""
        point = Point(x=x, y=y)
        if up:
            self.set_tile(x, y, TileType.STAIRS_UP)
            self.stairs_up.append(point)
        else:
            self.set_tile(x, y, TileType.STAIRS_DOWN)
            self.stairs_down.append(point)
        return point

    def remove_stairs(self, point: Point, replacement: TileType = TileType.FLOOR) -> None:
        """Remove a recorded staircase, restoring the tile underneath."""
        if point in self.stairs_up:
            self.stairs_up.remove(point)
        elif point in self.stairs_down:
            self.stairs_down.remove(point)
        else:
            raise ValueError(f"No stairs at {point}")
        self.set_tile(point.x, point.y, replacement)

    def validate_stair_placement(self) -> bool:
        """Check every recorded stair is in bounds, tagged, and has a walkable neighbor."""
        for points, expected in (
            (self.stairs_up, TileType.STAIRS_UP),
            (self.stairs_down, TileType.STAIRS_DOWN),
        ):
            for p in points:
                if not self.in_bounds(p.x, p.y):
                    return False
                if self.get_tile(p.x, p.y) != expected:
                    return False
                if self.walkable_neighbor_count(p.x, p.y) == 0:
                    return False
        return True

    # --- Export ---

    def copy(self) -> "Terrain":
        """Deep copy including the tile grid."""
        clone = Terrain(
            width=self.width,
            height=self.height,
            seed=self.seed,
            level=self.level,
            kind=self.kind,
            rooms=list(self.rooms),
            stairs_up=list(self.stairs_up),
            stairs_down=list(self.stairs_down),
        )
        clone._tiles[:, :] = self._tiles
        return clone

    def tile_bytes(self) -> bytes:
        """Raw row-major grid bytes, for determinism comparisons."""
        return self._tiles.tobytes()

    def to_ascii(self) -> str:
        """Render the grid with the fixed glyph mapping, one line per row."""
        rows = GLYPH_LOOKUP[self._tiles]
        return "\n".join("".join(row) for row in rows)
