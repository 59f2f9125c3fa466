"""Connectivity: component labeling, corridor carving, safe stair placement."""

from typing import Iterable

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..terrain import Terrain
from ..tile_types import STAIR_TYPES, WATER_TYPES, TileType
from ..types import CARDINAL_DELTAS, Point

logger = structlog.get_logger()

# 4-connected structuring element: movement is along cardinal directions only
CROSS = ndimage.generate_binary_structure(2, 1)

# Tiles a stair may replace
_STAIR_BASE_TILES = frozenset({TileType.FLOOR, TileType.CORRIDOR})


def label_components(mask: NDArray[np.bool_]) -> tuple[NDArray[np.int32], int]:
    """Label 4-connected components of a mask. Label 0 is background."""
    labeled, num_features = ndimage.label(mask, structure=CROSS)
    return labeled.astype(np.int32), int(num_features)


def component_sizes(labeled: NDArray[np.int32], num_features: int) -> NDArray[np.int64]:
    """Tile count per label, index 0 being background."""
    return np.bincount(labeled.ravel(), minlength=num_features + 1)


def largest_component(mask: NDArray[np.bool_]) -> NDArray[np.bool_]:
    """Mask of the largest 4-connected component (ties go to the lowest label)."""
    labeled, num_features = label_components(mask)
    if num_features == 0:
        return np.zeros_like(mask, dtype=bool)
    sizes = component_sizes(labeled, num_features)
    sizes[0] = 0
    return labeled == int(np.argmax(sizes))


def connected_ratio(terrain: Terrain) -> float:
    """Share of walkable tiles inside the largest walkable component.

    A terrain with no walkable tiles counts as fully connected.
    """
    mask = terrain.walkable_mask()
    total = int(np.count_nonzero(mask))
    if total == 0:
        return 1.0
    return float(np.count_nonzero(largest_component(mask))) / total


def flood_fill_mask(terrain: Terrain, start: Point) -> NDArray[np.bool_]:
    """All walkable tiles reachable from `start` (empty if start isn't walkable)."""
    mask = terrain.walkable_mask()
    if not terrain.is_walkable(start.x, start.y):
        return np.zeros_like(mask, dtype=bool)
    labeled, _ = label_components(mask)
    return labeled == labeled[start.y, start.x]


def l_path(start: Point, end: Point, horizontal_first: bool) -> list[Point]:
    """Tiles of an L-shaped path from start to end, inclusive, 4-connected."""
    path: list[Point] = []
    x, y = start.x, start.y
    path.append(Point(x=x, y=y))

    def walk_x(target: int) -> None:
        nonlocal x
        step = 1 if target > x else -1
        while x != target:
            x += step
            path.append(Point(x=x, y=y))

    def walk_y(target: int) -> None:
        nonlocal y
        step = 1 if target > y else -1
        while y != target:
            y += step
            path.append(Point(x=x, y=y))

    if horizontal_first:
        walk_x(end.x)
        walk_y(end.y)
    else:
        walk_y(end.y)
        walk_x(end.x)
    return path


def carve_tile(terrain: Terrain, x: int, y: int) -> None:
    """Make a tile passable for a connecting corridor.

    Walkable tiles and stairs are left alone, water becomes BRIDGE, and
    anything else becomes CORRIDOR.
    """
    tile = terrain.get_tile(x, y)
    if tile.walkable or tile in STAIR_TYPES or not terrain.in_bounds(x, y):
        return
    if tile in WATER_TYPES:
        terrain.set_tile(x, y, TileType.BRIDGE)
    else:
        terrain.set_tile(x, y, TileType.CORRIDOR)


def carve_corridor(
    terrain: Terrain,
    start: Point,
    end: Point,
    horizontal_first: bool | None = None,
) -> list[Point]:
    """Carve an L-shaped corridor between two points.

    Args:
        terrain: Terrain to carve into.
        start: First endpoint.
        end: Second endpoint.
        horizontal_first: Leg order. Defaults to horizontal first when the
            horizontal offset is at least the vertical one.

    Returns:
        Path tiles, start to end.
    """
    if horizontal_first is None:
        horizontal_first = abs(end.x - start.x) >= abs(end.y - start.y)
    path = l_path(start, end, horizontal_first)
    for p in path:
        carve_tile(terrain, p.x, p.y)
    return path


def nearest_tile_in(mask: NDArray[np.bool_], target: NDArray[np.bool_]) -> tuple[Point, Point]:
    """Closest (Manhattan) pair of tiles with the first in `mask`, second in `target`.

    Ties go to the first `mask` tile in row-major order.
    """
    distance, indices = ndimage.distance_transform_cdt(
        ~target, metric="taxicab", return_indices=True
    )
    masked = np.where(mask, distance, np.iinfo(np.int32).max)
    flat = int(np.argmin(masked))
    y, x = divmod(flat, mask.shape[1])
    ty, tx = int(indices[0, y, x]), int(indices[1, y, x])
    return Point(x=x, y=y), Point(x=tx, y=ty)


def join_components(terrain: Terrain, max_joins: int | None = None) -> int:
    """Connect stray walkable components to the largest one with corridors.

    Each pass joins the largest stray component to its nearest main tile.

    Returns:
        Number of corridors carved.
    """
    joins = 0
    previous = None
    while max_joins is None or joins < max_joins:
        labeled, num_features = label_components(terrain.walkable_mask())
        if num_features <= 1:
            break
        if previous is not None and num_features >= previous:
            # Blocked by stairs on the only route; leave the rest to validation
            logger.warning("join_components_stalled", components=num_features)
            break
        previous = num_features
        sizes = component_sizes(labeled, num_features)
        sizes[0] = 0
        order = np.argsort(-sizes, kind="stable")
        main = labeled == int(order[0])
        stray = labeled == int(order[1])
        start, end = nearest_tile_in(stray, main)
        carve_corridor(terrain, start, end)
        joins += 1
    if joins:
        logger.debug("components_joined", corridors=joins)
    return joins


def removal_keeps_connected(mask: NDArray[np.bool_], x: int, y: int) -> bool:
    """Check that blocking (x, y) leaves its walkable neighbors mutually reachable."""
    height, width = mask.shape
    trial = mask.copy()
    trial[y, x] = False
    labeled, _ = label_components(trial)
    labels = {
        int(labeled[y + dy, x + dx])
        for dx, dy in CARDINAL_DELTAS
        if 0 <= x + dx < width and 0 <= y + dy < height and trial[y + dy, x + dx]
    }
    return len(labels) <= 1


def place_stairs_safely(
    terrain: Terrain,
    candidates: Iterable[tuple[int, int]],
    up: bool,
) -> Point | None:
    """Place stairs on the first candidate that keeps the level connected.

    Stairs block movement, so a candidate must be a floor or corridor tile
    with at least one walkable neighbor whose removal does not split the
    walkable area.

    Returns:
        The stair position, or None if no candidate qualified.
    """
    mask = terrain.walkable_mask()
    stairs = {p.as_tuple() for p in terrain.stairs_up + terrain.stairs_down}
    for x, y in candidates:
        if terrain.get_tile(x, y) not in _STAIR_BASE_TILES:
            continue
        if terrain.walkable_neighbor_count(x, y) == 0:
            continue
        if _last_exit_of_stairs(terrain, stairs, x, y):
            continue
        if not removal_keeps_connected(mask, x, y):
            continue
        return terrain.add_stairs(x, y, up)
    return None


def _last_exit_of_stairs(terrain: Terrain, stairs: set[tuple[int, int]], x: int, y: int) -> bool:
    """Check whether (x, y) is the only walkable neighbor of an existing stair."""
    for dx, dy in CARDINAL_DELTAS:
        if (x + dx, y + dy) in stairs and terrain.walkable_neighbor_count(x + dx, y + dy) <= 1:
            return True
    return False


def tiles_by_distance(
    mask: NDArray[np.bool_],
    origin: tuple[float, float],
    farthest_first: bool = False,
) -> list[tuple[int, int]]:
    """Tiles of a mask as (x, y), ordered by Manhattan distance from origin (x, y).

    Ties keep row-major order.
    """
    ys, xs = np.nonzero(mask)
    distance = np.abs(xs - origin[0]) + np.abs(ys - origin[1])
    if farthest_first:
        distance = -distance
    order = np.argsort(distance, kind="stable")
    return [(int(xs[i]), int(ys[i])) for i in order]
