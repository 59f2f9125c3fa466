"""Forest: clearings, Poisson-disc trees, optional water, paths and bridges."""

import math

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import ForestConfig, GenerationParams
from ..rng import make_rng
from ..terrain import Terrain
from ..tile_types import WATER_TYPES, TileType
from ..types import Point, Room
from .base import GeneratorKind, resolve_dimensions
from .connectivity import (
    CROSS,
    join_components,
    l_path,
    place_stairs_safely,
    tiles_by_distance,
)
from .validation import (
    require_connected,
    require_kind,
    require_rooms,
    require_stairs,
    require_walkable_ratio,
)
from .water import WaterFeature, generate_lake, generate_river, place_bridges

logger = structlog.get_logger()

POISSON_ATTEMPTS = 30


def poisson_disc_sample(
    width: int,
    height: int,
    min_distance: float,
    rng: np.random.Generator,
    attempts: int = POISSON_ATTEMPTS,
) -> list[tuple[int, int]]:
    """Bridson's Poisson disc sampling over a width x height area.

    Returns integer (x, y) sample positions, all at least roughly
    `min_distance` apart.
    """
    cell = min_distance / math.sqrt(2)
    grid_w = int(math.ceil(width / cell))
    grid_h = int(math.ceil(height / cell))
    grid = np.full((grid_h, grid_w), -1, dtype=np.int64)
    points: list[tuple[float, float]] = []
    active: list[int] = []

    def fits(px: float, py: float) -> bool:
        if not (0 <= px < width and 0 <= py < height):
            return False
        gx, gy = int(px / cell), int(py / cell)
        for ny in range(max(gy - 2, 0), min(gy + 3, grid_h)):
            for nx in range(max(gx - 2, 0), min(gx + 3, grid_w)):
                index = grid[ny, nx]
                if index >= 0:
                    qx, qy = points[index]
                    if (qx - px) ** 2 + (qy - py) ** 2 < min_distance**2:
                        return False
        return True

    def add(px: float, py: float) -> None:
        grid[int(py / cell), int(px / cell)] = len(points)
        active.append(len(points))
        points.append((px, py))

    add(float(rng.uniform(0, width)), float(rng.uniform(0, height)))
    while active:
        slot = int(rng.integers(0, len(active)))
        ox, oy = points[active[slot]]
        for _ in range(attempts):
            angle = rng.uniform(0, 2 * math.pi)
            distance = rng.uniform(min_distance, 2 * min_distance)
            px, py = ox + math.cos(angle) * distance, oy + math.sin(angle) * distance
            if fits(px, py):
                add(px, py)
                break
        else:
            active.pop(slot)

    return [(int(px), int(py)) for px, py in points]


def _ellipse_mask(room: Room) -> NDArray[np.bool_]:
    """Boolean ellipse inscribed in the room rectangle, shape (height, width)."""
    ys, xs = np.mgrid[0 : room.height, 0 : room.width]
    rx, ry = room.width / 2, room.height / 2
    return ((xs + 0.5 - rx) / rx) ** 2 + ((ys + 0.5 - ry) / ry) ** 2 <= 1.0


class ForestGenerator:
    """Forest generator.

    The ground is open floor ringed by trees. Elliptical clearings are
    registered as rooms and linked by paths; trees are scattered by
    Poisson disc sampling outside clearings and paths.
    """

    kind = GeneratorKind.FOREST

    def __init__(self, config: ForestConfig | None = None) -> None:
        self.config = config or ForestConfig()

    def resolve_config(self, params: GenerationParams) -> ForestConfig:
        return self.config.model_copy(
            update={
                "tree_density": params.get_float("treeDensity", self.config.tree_density),
                "clearing_count": params.get_int("clearingCount", self.config.clearing_count),
                "water_chance": params.get_float("waterChance", self.config.water_chance),
            }
        )

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        params = params or GenerationParams()
        width, height = resolve_dimensions(params, min_width=20, min_height=20)
        config = self.resolve_config(params)
        rng = make_rng(seed)

        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        terrain.fill(TileType.FLOOR)
        terrain.grid[0, :] = terrain.grid[-1, :] = TileType.TREE
        terrain.grid[:, 0] = terrain.grid[:, -1] = TileType.TREE

        clearings = self._create_clearings(terrain, rng, config)
        features: list[WaterFeature] = []
        if rng.random() < config.water_chance:
            features.append(self._add_water(terrain, clearings, rng))

        paths = self._connect_clearings(terrain, clearings, rng)
        for feature in features:
            for path in paths:
                place_bridges(terrain, feature, path)

        trees = self._plant_trees(terrain, clearings, rng, config)
        join_components(terrain)

        for room in clearings:
            terrain.add_room(room)
        self._place_stairs(terrain, clearings)

        logger.debug(
            "forest_generated",
            seed=seed,
            width=width,
            height=height,
            clearings=len(clearings),
            trees=trees,
            water=[f.kind.value for f in features],
        )
        self.validate(terrain)
        return terrain

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        require_rooms(terrain)
        require_walkable_ratio(terrain, self.config.min_walkable_ratio)
        require_stairs(terrain)
        require_connected(terrain)

    @staticmethod
    def _create_clearings(
        terrain: Terrain, rng: np.random.Generator, config: ForestConfig
    ) -> list[Room]:
        """Non-overlapping elliptical clearings, up to `clearing_count`."""
        clearings: list[Room] = []
        max_w = min(config.clearing_max_size, terrain.width - 6)
        max_h = min(config.clearing_max_size, terrain.height - 6)
        min_w = min(config.clearing_min_size, max_w)
        min_h = min(config.clearing_min_size, max_h)
        for _ in range(config.clearing_count * 10):
            if len(clearings) >= config.clearing_count:
                break
            w = int(rng.integers(min_w, max_w + 1))
            h = int(rng.integers(min_h, max_h + 1))
            x = int(rng.integers(2, terrain.width - w - 2 + 1))
            y = int(rng.integers(2, terrain.height - h - 2 + 1))
            room = Room(x=x, y=y, width=w, height=h)
            if any(room.overlaps(other, padding=2) for other in clearings):
                continue
            clearings.append(room)
        return clearings

    @staticmethod
    def _add_water(
        terrain: Terrain, clearings: list[Room], rng: np.random.Generator
    ) -> WaterFeature:
        """A lake away from clearings, or a river crossing the map."""
        if rng.random() < 0.5:
            radius = float(rng.uniform(3.0, 6.0))
            for _ in range(50):
                center = Point(
                    x=int(rng.integers(2, terrain.width - 2)),
                    y=int(rng.integers(2, terrain.height - 2)),
                )
                if not any(
                    c.center().distance(center) < radius + max(c.width, c.height) / 2 + 2
                    for c in clearings
                ):
                    return generate_lake(terrain, center, radius, rng)
        if terrain.width >= terrain.height:
            start = Point(x=0, y=int(rng.integers(terrain.height // 4, 3 * terrain.height // 4)))
            end = Point(
                x=terrain.width - 1,
                y=int(rng.integers(terrain.height // 4, 3 * terrain.height // 4)),
            )
        else:
            start = Point(x=int(rng.integers(terrain.width // 4, 3 * terrain.width // 4)), y=0)
            end = Point(
                x=int(rng.integers(terrain.width // 4, 3 * terrain.width // 4)),
                y=terrain.height - 1,
            )
        return generate_river(terrain, start, end, int(rng.integers(2, 4)), rng)

    @staticmethod
    def _connect_clearings(
        terrain: Terrain, clearings: list[Room], rng: np.random.Generator
    ) -> list[list[Point]]:
        """Chain clearings with L-shaped dirt paths; water is left for bridging."""
        paths: list[list[Point]] = []
        for a, b in zip(clearings, clearings[1:]):
            path = l_path(a.center(), b.center(), bool(rng.random() < 0.5))
            for p in path:
                tile = terrain.get_tile(p.x, p.y)
                if tile not in WATER_TYPES and tile != TileType.FLOOR:
                    terrain.set_tile(p.x, p.y, TileType.CORRIDOR)
            paths.append(path)
        return paths

    @staticmethod
    def _plant_trees(
        terrain: Terrain,
        clearings: list[Room],
        rng: np.random.Generator,
        config: ForestConfig,
    ) -> int:
        """Scatter single trees on open floor outside clearings."""
        if config.tree_density <= 0:
            return 0
        min_distance = 3.0 / math.sqrt(min(config.tree_density, 1.0))
        open_ground = np.zeros((terrain.height, terrain.width), dtype=bool)
        for c in clearings:
            open_ground[c.y : c.bottom, c.x : c.right] |= _ellipse_mask(c)
        # Keep a one-tile margin of open ground around each clearing
        open_ground = ndimage.binary_dilation(open_ground, structure=CROSS)
        planted = 0
        for x, y in poisson_disc_sample(terrain.width, terrain.height, min_distance, rng):
            if terrain.get_tile(x, y) != TileType.FLOOR or open_ground[y, x]:
                continue
            terrain.set_tile(x, y, TileType.TREE)
            planted += 1
        return planted

    @staticmethod
    def _place_stairs(terrain: Terrain, clearings: list[Room]) -> None:
        """Stairs up in the largest clearing, down in the next largest."""
        ranked = sorted(clearings, key=lambda c: -c.area)
        mask = terrain.walkable_mask()
        up_origin = ranked[0].center() if ranked else Point(x=0, y=0)
        up = place_stairs_safely(
            terrain, tiles_by_distance(mask, (up_origin.x, up_origin.y)), up=True
        )
        if up is None:
            return
        mask = terrain.walkable_mask()
        if len(ranked) > 1:
            down_origin = ranked[1].center()
            candidates = tiles_by_distance(mask, (down_origin.x, down_origin.y))
        else:
            candidates = tiles_by_distance(mask, (up.x, up.y), farthest_first=True)
        place_stairs_safely(terrain, candidates, up=False)
