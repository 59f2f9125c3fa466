"""Cellular automata caves: random fill, smoothing, region cleanup."""

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import CellularConfig, GenerationParams
from ..rng import make_rng
from ..terrain import Terrain
from ..tile_types import TileType
from .base import GeneratorKind, resolve_dimensions
from .connectivity import (
    component_sizes,
    join_components,
    label_components,
    place_stairs_safely,
    tiles_by_distance,
)
from .validation import (
    require_connected,
    require_kind,
    require_stairs,
    require_walkable_ratio,
)

logger = structlog.get_logger()

# Moore neighborhood, center excluded
_NEIGHBOR_KERNEL = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int32)


def random_fill(
    width: int, height: int, fill_probability: float, rng: np.random.Generator
) -> NDArray[np.bool_]:
    """Initial wall mask. The outer ring is always wall."""
    walls = rng.random((height, width)) < fill_probability
    walls[0, :] = walls[-1, :] = True
    walls[:, 0] = walls[:, -1] = True
    return walls


def smooth(
    walls: NDArray[np.bool_],
    iterations: int,
    birth_limit: int,
    death_limit: int,
) -> NDArray[np.bool_]:
    """Apply the cave rule.

    A wall with fewer than `death_limit` wall neighbors becomes floor; a
    floor with more than `birth_limit` wall neighbors becomes wall.
    Out-of-bounds neighbors count as wall.

    Args:
        walls: Boolean mask where True = wall.
        iterations: Number of smoothing passes.
        birth_limit: Floor turns to wall above this many wall neighbors.
        death_limit: Wall turns to floor below this many wall neighbors.

    Returns:
        Smoothed wall mask with the outer ring kept as wall.
    """
    result = walls.copy()
    for _ in range(iterations):
        neighbor_walls = ndimage.convolve(
            result.astype(np.int32), _NEIGHBOR_KERNEL, mode="constant", cval=1
        )
        result = np.where(
            result, neighbor_walls >= death_limit, neighbor_walls > birth_limit
        )
        result[0, :] = result[-1, :] = True
        result[:, 0] = result[:, -1] = True
    return result


def remove_small_regions(floor: NDArray[np.bool_], min_size: int) -> NDArray[np.bool_]:
    """Drop floor regions smaller than `min_size` tiles."""
    labeled, num_features = label_components(floor)
    if num_features == 0:
        return floor.copy()
    sizes = component_sizes(labeled, num_features)
    keep = sizes >= min_size
    keep[0] = False
    return keep[labeled]


class CellularGenerator:
    """Cave generator.

    After smoothing, floor regions below the size threshold revert to wall
    and the remaining ones are tunneled into the largest, leaving one cave.
    """

    kind = GeneratorKind.CELLULAR

    def __init__(self, config: CellularConfig | None = None) -> None:
        self.config = config or CellularConfig()

    def resolve_config(self, params: GenerationParams) -> CellularConfig:
        """Apply per-call overrides from custom keys."""
        return self.config.model_copy(
            update={
                "fill_probability": params.get_float(
                    "fillProbability", self.config.fill_probability
                ),
                "iterations": params.get_int("iterations", self.config.iterations),
            }
        )

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        params = params or GenerationParams()
        width, height = resolve_dimensions(params, min_width=3, min_height=3)
        config = self.resolve_config(params)
        rng = make_rng(seed)

        walls = random_fill(width, height, config.fill_probability, rng)
        walls = smooth(walls, config.iterations, config.birth_limit, config.death_limit)
        floor = remove_small_regions(~walls, config.min_region_size)

        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        terrain.grid[floor] = TileType.FLOOR

        tunnels = join_components(terrain)
        self._place_stairs(terrain)

        logger.debug(
            "cellular_generated",
            seed=seed,
            width=width,
            height=height,
            tunnels=tunnels,
            walkable_ratio=round(terrain.walkable_ratio(), 3),
        )
        self.validate(terrain)
        return terrain

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        require_walkable_ratio(terrain, self.config.min_walkable_ratio)
        require_stairs(terrain)
        require_connected(terrain)

    @staticmethod
    def _place_stairs(terrain: Terrain) -> None:
        """Stairs up nearest the top-left corner, stairs down farthest from it."""
        mask = terrain.walkable_mask()
        up = place_stairs_safely(terrain, tiles_by_distance(mask, (0, 0)), up=True)
        if up is None:
            return
        mask = terrain.walkable_mask()
        place_stairs_safely(
            terrain,
            tiles_by_distance(mask, (up.x, up.y), farthest_first=True),
            up=False,
        )
