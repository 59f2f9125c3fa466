"""Transition blending between neighboring biome regions."""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import numpy as np
import structlog

from ..terrain import Terrain
from ..tile_types import STAIR_TYPES, TileType
from .base import GeneratorKind
from .voronoi import VoronoiDiagram

logger = structlog.get_logger()


class BiomeKind(str, Enum):
    """Biome styles that can meet at a region boundary."""

    DUNGEON = "dungeon"
    CAVE = "cave"
    FOREST = "forest"
    CITY = "city"
    MAZE = "maze"


BIOME_FOR_GENERATOR: Mapping[GeneratorKind, BiomeKind] = MappingProxyType({
    GeneratorKind.BSP: BiomeKind.DUNGEON,
    GeneratorKind.CELLULAR: BiomeKind.CAVE,
    GeneratorKind.FOREST: BiomeKind.FOREST,
    GeneratorKind.CITY: BiomeKind.CITY,
    GeneratorKind.MAZE: BiomeKind.MAZE,
})


@dataclass(frozen=True)
class BlendStyle:
    """Weighted tile mix used inside a transition zone."""

    name: str
    tiles: tuple[TileType, ...]
    weights: tuple[float, ...]

    def pick(self, rng: np.random.Generator, count: int) -> np.ndarray:
        """Draw `count` tiles in one call so the stream is consumed in a fixed way."""
        probabilities = np.asarray(self.weights, dtype=float)
        probabilities /= probabilities.sum()
        rolls = rng.random(count)
        indices = np.searchsorted(np.cumsum(probabilities), rolls, side="right")
        indices = np.minimum(indices, len(self.tiles) - 1)
        return np.asarray(self.tiles, dtype=np.uint8)[indices]


def _pair(a: BiomeKind, b: BiomeKind) -> tuple[BiomeKind, BiomeKind]:
    """Order-independent key for an unordered biome pair."""
    return (a, b) if a.value <= b.value else (b, a)


FALLBACK_STYLE = BlendStyle("mixed_ground", (TileType.FLOOR, TileType.WALL), (0.5, 0.5))

BLEND_STYLES: Mapping[tuple[BiomeKind, BiomeKind], BlendStyle] = MappingProxyType({
    _pair(BiomeKind.DUNGEON, BiomeKind.CAVE): BlendStyle(
        "rocky_passage",
        (TileType.FLOOR, TileType.WALL, TileType.CORRIDOR),
        (0.6, 0.2, 0.2),
    ),
    _pair(BiomeKind.DUNGEON, BiomeKind.FOREST): BlendStyle(
        "overgrown_ruins",
        (TileType.FLOOR, TileType.TREE, TileType.STRUCTURE),
        (0.5, 0.3, 0.2),
    ),
    _pair(BiomeKind.DUNGEON, BiomeKind.CITY): BlendStyle(
        "crumbling_foundations",
        (TileType.FLOOR, TileType.STRUCTURE, TileType.WALL),
        (0.5, 0.3, 0.2),
    ),
    _pair(BiomeKind.DUNGEON, BiomeKind.MAZE): BlendStyle(
        "labyrinth_gate",
        (TileType.CORRIDOR, TileType.FLOOR, TileType.WALL),
        (0.4, 0.4, 0.2),
    ),
    _pair(BiomeKind.CAVE, BiomeKind.FOREST): BlendStyle(
        "mossy_grotto",
        (TileType.FLOOR, TileType.TREE, TileType.WALL),
        (0.5, 0.3, 0.2),
    ),
    _pair(BiomeKind.CAVE, BiomeKind.CITY): BlendStyle(
        "excavation",
        (TileType.FLOOR, TileType.STRUCTURE, TileType.WALL),
        (0.5, 0.3, 0.2),
    ),
    _pair(BiomeKind.CAVE, BiomeKind.MAZE): BlendStyle(
        "twisting_tunnels",
        (TileType.CORRIDOR, TileType.FLOOR, TileType.WALL),
        (0.4, 0.3, 0.3),
    ),
    _pair(BiomeKind.FOREST, BiomeKind.CITY): BlendStyle(
        "city_outskirts",
        (TileType.FLOOR, TileType.TREE, TileType.STRUCTURE),
        (0.5, 0.25, 0.25),
    ),
    _pair(BiomeKind.FOREST, BiomeKind.MAZE): BlendStyle(
        "hedge_maze",
        (TileType.FLOOR, TileType.TREE, TileType.CORRIDOR),
        (0.4, 0.3, 0.3),
    ),
    _pair(BiomeKind.CITY, BiomeKind.MAZE): BlendStyle(
        "back_alleys",
        (TileType.CORRIDOR, TileType.FLOOR, TileType.STRUCTURE),
        (0.4, 0.3, 0.3),
    ),
})


def blend_style(a: BiomeKind, b: BiomeKind) -> BlendStyle:
    """Style for an unordered biome pair; same-biome pairs use the fallback."""
    return BLEND_STYLES.get(_pair(a, b), FALLBACK_STYLE)


def blend_transitions(
    terrain: Terrain,
    diagram: VoronoiDiagram,
    biomes: Mapping[int, BiomeKind],
    radius: int,
    rng: np.random.Generator,
) -> dict[tuple[int, int], int]:
    """Re-roll every transition-zone tile from its region pair's blend style.

    A zone tile belongs to the pair (its own region, its second-nearest
    region). Pairs are visited in sorted order and tiles in row-major
    order, so the random stream is consumed identically on every run.
    Stairs are never overwritten.

    Returns:
        Tiles rewritten per region pair.
    """
    zone = diagram.transition_zone(radius)
    own = diagram.regions
    other = diagram.second_nearest()
    low = np.minimum(own, other)
    high = np.maximum(own, other)

    pairs = sorted({(int(a), int(b)) for a, b in zip(low[zone], high[zone])})
    grid = terrain.grid
    stairs = np.isin(grid, [int(t) for t in STAIR_TYPES])

    blended: dict[tuple[int, int], int] = {}
    for a, b in pairs:
        mask = zone & (low == a) & (high == b) & ~stairs
        count = int(np.count_nonzero(mask))
        if count == 0:
            continue
        style = blend_style(biomes[a], biomes[b])
        # Boolean indexing is row-major, matching the draw order
        grid[mask] = style.pick(rng, count)
        blended[(a, b)] = count
        logger.debug("transition_blended", pair=(a, b), style=style.name, tiles=count)
    return blended
