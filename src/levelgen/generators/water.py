"""Water features: lakes, rivers, moats, flood fills and bridges.

These mutate an existing terrain in place. Callers that carve water across
a path which must stay traversable call `place_bridges` right afterwards;
nothing here tracks global connectivity.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import structlog

from ..terrain import Terrain
from ..tile_types import STAIR_TYPES, WATER_TYPES, TileType
from ..types import CARDINAL_DELTAS, Point, Room

logger = structlog.get_logger()

# Lakes and rivers never replace these
_PROTECTED_TILES = frozenset({TileType.WALL, TileType.DOOR, TileType.BRIDGE}) | STAIR_TYPES

# Tiles counted as path ends when detecting bridge sites
_PATH_TILES = frozenset({TileType.FLOOR, TileType.CORRIDOR, TileType.BRIDGE, TileType.DOOR})

LAKE_SECTORS = 16
DEEP_FRACTION = 0.6
MAX_RIVER_WIDTH = 5
MAX_MOAT_WIDTH = 3
MEANDER_STEP = 0.2


class WaterKind(str, Enum):
    """Kind of water feature."""

    LAKE = "lake"
    RIVER = "river"
    MOAT = "moat"


@dataclass
class WaterFeature:
    """Descriptor of carved water. Does not own the terrain."""

    kind: WaterKind
    tiles: list[Point] = field(default_factory=list)
    bridges: list[Point] = field(default_factory=list)


def _set_water(
    terrain: Terrain, x: int, y: int, deep: bool, protected: frozenset[TileType]
) -> bool:
    """Write water unless protected. Deep water is never downgraded to shallow."""
    if not terrain.in_bounds(x, y):
        return False
    current = terrain.get_tile(x, y)
    if current in protected:
        return False
    if current == TileType.WATER_DEEP and not deep:
        return True
    terrain.set_tile(x, y, TileType.WATER_DEEP if deep else TileType.WATER_SHALLOW)
    return True


def generate_lake(
    terrain: Terrain, center: Point, radius: float, rng: np.random.Generator
) -> WaterFeature:
    """Carve an organic lake.

    The radius is jittered by 10-30% up or down per angular sector and
    interpolated between sectors. Tiles within 60% of the local radius are
    deep, the rest of the disc shallow.

    Args:
        terrain: Terrain to mutate.
        center: Lake center.
        radius: Nominal radius in tiles.
        rng: Random stream.

    Returns:
        WaterFeature listing carved tiles in row-major order.
    """
    feature = WaterFeature(kind=WaterKind.LAKE)
    if radius <= 0:
        return feature

    magnitude = rng.uniform(0.1, 0.3, size=LAKE_SECTORS)
    sign = np.where(rng.random(LAKE_SECTORS) < 0.5, -1.0, 1.0)
    sector_radii = radius * (1.0 + sign * magnitude)

    reach = int(math.ceil(radius * 1.3)) + 1
    x0, x1 = max(center.x - reach, 0), min(center.x + reach + 1, terrain.width)
    y0, y1 = max(center.y - reach, 0), min(center.y + reach + 1, terrain.height)
    if x0 >= x1 or y0 >= y1:
        return feature

    ys, xs = np.mgrid[y0:y1, x0:x1]
    dx = xs - center.x
    dy = ys - center.y
    angle = np.mod(np.arctan2(dy, dx), 2 * np.pi)
    sector_angles = np.arange(LAKE_SECTORS + 1) * (2 * np.pi / LAKE_SECTORS)
    local_radius = np.interp(angle, sector_angles, np.append(sector_radii, sector_radii[0]))
    normalized = np.hypot(dx, dy) / local_radius

    for y, x, dist in zip(ys.ravel(), xs.ravel(), normalized.ravel()):
        if dist > 1.0:
            continue
        if _set_water(terrain, int(x), int(y), dist <= DEEP_FRACTION, _PROTECTED_TILES):
            feature.tiles.append(Point(x=int(x), y=int(y)))

    logger.debug("lake_carved", center=str(center), radius=radius, tiles=len(feature.tiles))
    return feature


def river_path(
    start: Point, end: Point, rng: np.random.Generator
) -> list[Point]:
    """Center line from start to end with bounded perpendicular meander.

    One sample per unit step; the drift changes by at most 20% of a step
    per sample and never exceeds 20% of the total length.
    """
    dx, dy = end.x - start.x, end.y - start.y
    steps = max(abs(dx), abs(dy), 1)
    length = math.hypot(dx, dy) or 1.0
    perp_x, perp_y = -dy / length, dx / length
    max_offset = MEANDER_STEP * length

    path: list[Point] = []
    offset = 0.0
    for i in range(steps + 1):
        t = i / steps
        if 0 < i < steps:
            offset += rng.uniform(-MEANDER_STEP, MEANDER_STEP)
            # Shrinking bound walks the drift back to zero at the end point
            bound = min(max_offset, MEANDER_STEP * (steps - i))
            offset = min(max(offset, -bound), bound)
        else:
            offset = 0.0
        point = Point(
            x=int(round(start.x + dx * t + perp_x * offset)),
            y=int(round(start.y + dy * t + perp_y * offset)),
        )
        if not path or path[-1] != point:
            path.append(point)
    return path


def generate_river(
    terrain: Terrain,
    start: Point,
    end: Point,
    width: int,
    rng: np.random.Generator,
) -> WaterFeature:
    """Carve a meandering river.

    Width is clamped to 1-5. Rivers 3 or more tiles wide get a deep center
    with shallow banks.
    """
    width = min(max(width, 1), MAX_RIVER_WIDTH)
    radius = width / 2
    deep_radius = radius - 1 if width >= 3 else -1.0
    reach = int(math.ceil(radius))

    carved: dict[tuple[int, int], None] = {}
    for p in river_path(start, end, rng):
        for oy in range(-reach, reach + 1):
            for ox in range(-reach, reach + 1):
                dist = math.hypot(ox, oy)
                if dist > radius:
                    continue
                x, y = p.x + ox, p.y + oy
                if _set_water(terrain, x, y, dist <= deep_radius, _PROTECTED_TILES):
                    carved[(x, y)] = None

    feature = WaterFeature(
        kind=WaterKind.RIVER,
        tiles=[Point(x=x, y=y) for x, y in sorted(carved, key=lambda t: (t[1], t[0]))],
    )
    logger.debug("river_carved", start=str(start), end=str(end), width=width, tiles=len(carved))
    return feature


def generate_moat(terrain: Terrain, room: Room, width: int) -> WaterFeature:
    """Surround a room with a water band.

    Width is clamped to 1-3. Band tiles within width/2 of the room edge are
    deep, the rest shallow. The room interior and stairs are never touched.
    """
    width = min(max(width, 1), MAX_MOAT_WIDTH)
    feature = WaterFeature(kind=WaterKind.MOAT)
    for y in range(room.y - width, room.bottom + width):
        for x in range(room.x - width, room.right + width):
            if room.contains(x, y):
                continue
            # Chebyshev distance to the room rectangle
            dist = max(room.x - x, x - (room.right - 1), room.y - y, y - (room.bottom - 1))
            if _set_water(terrain, x, y, dist <= width / 2, STAIR_TYPES):
                feature.tiles.append(Point(x=x, y=y))
    return feature


def flood_fill(terrain: Terrain, start: Point, max_tiles: int) -> list[Point]:
    """Breadth-first walk over walkable tiles from start, up to max_tiles.

    Returns:
        Visited tiles in visit order; empty when start isn't walkable.
    """
    if max_tiles <= 0 or not terrain.is_walkable(start.x, start.y):
        return []
    seen = {(start.x, start.y)}
    queue = deque([(start.x, start.y)])
    result: list[Point] = []
    while queue and len(result) < max_tiles:
        x, y = queue.popleft()
        result.append(Point(x=x, y=y))
        for dx, dy in CARDINAL_DELTAS:
            nx, ny = x + dx, y + dy
            if (nx, ny) not in seen and terrain.is_walkable(nx, ny):
                seen.add((nx, ny))
                queue.append((nx, ny))
    return result


def flood_fill_water(
    terrain: Terrain,
    tiles: list[Point],
    deep_ratio: float,
    rng: np.random.Generator,
) -> WaterFeature:
    """Turn a tile set into water, each tile deep with probability `deep_ratio`."""
    feature = WaterFeature(kind=WaterKind.LAKE)
    rolls = rng.random(len(tiles))
    for p, roll in zip(tiles, rolls):
        if _set_water(terrain, p.x, p.y, bool(roll < deep_ratio), STAIR_TYPES):
            feature.tiles.append(p)
    return feature


def place_bridges(
    terrain: Terrain,
    feature: WaterFeature,
    path: list[Point] | None = None,
) -> list[Point]:
    """Retag water as BRIDGE where a path must stay traversable.

    With a path, every path tile that is now water becomes a bridge when it
    is deep or has water on both transverse sides, so the whole path stays
    walkable. Without a path, feature tiles lying between two path tiles
    (floor, corridor, door or bridge on opposite sides) become bridges.

    Returns:
        Newly placed bridge tiles, also appended to `feature.bridges`.
    """
    placed: list[Point] = []
    if path is not None:
        for i, p in enumerate(path):
            tile = terrain.get_tile(p.x, p.y)
            if tile not in WATER_TYPES:
                continue
            if tile == TileType.WATER_DEEP or _water_on_both_sides(terrain, path, i):
                terrain.set_tile(p.x, p.y, TileType.BRIDGE)
                placed.append(p)
    else:
        for p in feature.tiles:
            if terrain.get_tile(p.x, p.y) not in WATER_TYPES:
                continue
            for dx, dy in ((1, 0), (0, 1)):
                a = terrain.get_tile(p.x - dx, p.y - dy)
                b = terrain.get_tile(p.x + dx, p.y + dy)
                if a in _PATH_TILES and b in _PATH_TILES:
                    terrain.set_tile(p.x, p.y, TileType.BRIDGE)
                    placed.append(p)
                    break
    feature.bridges.extend(placed)
    if placed:
        logger.debug("bridges_placed", kind=feature.kind.value, bridges=len(placed))
    return placed


def _water_on_both_sides(terrain: Terrain, path: list[Point], index: int) -> bool:
    """Check the two tiles perpendicular to the path direction at `index`."""
    p = path[index]
    neighbors = [path[j] for j in (index - 1, index + 1) if 0 <= j < len(path)]
    horizontal = any(n.y == p.y and n.x != p.x for n in neighbors)
    vertical = any(n.x == p.x and n.y != p.y for n in neighbors)
    axes = []
    if horizontal or not neighbors:
        axes.append((0, 1))
    if vertical or not neighbors:
        axes.append((1, 0))
    for dx, dy in axes:
        if (
            terrain.get_tile(p.x - dx, p.y - dy) in WATER_TYPES
            and terrain.get_tile(p.x + dx, p.y + dy) in WATER_TYPES
        ):
            return True
    return False
