"""Tests for transition blending."""

import numpy as np

from levelgen.generators.base import GeneratorKind
from levelgen.generators.transitions import (
    BIOME_FOR_GENERATOR,
    BLEND_STYLES,
    FALLBACK_STYLE,
    BiomeKind,
    BlendStyle,
    blend_style,
    blend_transitions,
)
from levelgen.generators.voronoi import VoronoiDiagram, assign_regions
from levelgen.terrain import Terrain
from levelgen.tile_types import TileType
from levelgen.types import Point


def _split_diagram(width: int = 30, height: int = 10) -> VoronoiDiagram:
    seeds = [Point(x=0, y=height // 2), Point(x=width - 1, y=height // 2)]
    return VoronoiDiagram(
        width=width,
        height=height,
        seeds=seeds,
        regions=assign_regions(width, height, seeds),
    )


class TestBlendStyle:
    """Tests for style lookup and picking."""

    def test_pair_order_irrelevant(self) -> None:
        """(a, b) and (b, a) share a style."""
        for a in BiomeKind:
            for b in BiomeKind:
                assert blend_style(a, b) is blend_style(b, a)

    def test_every_distinct_pair_has_style(self) -> None:
        """Ten unordered pairs of five biomes."""
        assert len(BLEND_STYLES) == 10
        assert blend_style(BiomeKind.DUNGEON, BiomeKind.CAVE).name == "rocky_passage"

    def test_same_biome_falls_back(self) -> None:
        assert blend_style(BiomeKind.CAVE, BiomeKind.CAVE) is FALLBACK_STYLE

    def test_every_region_kind_has_biome(self) -> None:
        """All non-composite generators map to a biome."""
        expected = {k for k in GeneratorKind if k != GeneratorKind.COMPOSITE}
        assert set(BIOME_FOR_GENERATOR) == expected

    def test_pick_uses_only_style_tiles(self, rng: np.random.Generator) -> None:
        style = blend_style(BiomeKind.FOREST, BiomeKind.CITY)
        picked = style.pick(rng, 500)
        assert set(picked.tolist()) <= {int(t) for t in style.tiles}

    def test_pick_follows_weights(self, rng: np.random.Generator) -> None:
        """A certain tile is always chosen."""
        style = BlendStyle("solid", (TileType.FLOOR, TileType.WALL), (1.0, 0.0))
        assert np.all(style.pick(rng, 100) == TileType.FLOOR)

    def test_pick_distribution(self, rng: np.random.Generator) -> None:
        """Frequencies track normalized weights."""
        style = BlendStyle("even", (TileType.FLOOR, TileType.WALL), (2.0, 2.0))
        picked = style.pick(rng, 4000)
        np.testing.assert_allclose(np.mean(picked == TileType.FLOOR), 0.5, atol=0.05)


class TestBlendTransitions:
    """Tests for blend_transitions."""

    def test_only_zone_rewritten(self, rng: np.random.Generator) -> None:
        """Tiles outside the transition zone are untouched."""
        diagram = _split_diagram()
        terrain = Terrain(width=30, height=10)
        terrain.fill(TileType.CORRIDOR)
        blended = blend_transitions(
            terrain, diagram, {0: BiomeKind.DUNGEON, 1: BiomeKind.CAVE}, 2, rng
        )
        zone = diagram.transition_zone(2)
        assert np.all(terrain.grid[~zone] == TileType.CORRIDOR)
        assert blended == {(0, 1): int(zone.sum())}

    def test_stairs_untouched(self, rng: np.random.Generator) -> None:
        diagram = _split_diagram()
        terrain = Terrain(width=30, height=10)
        terrain.fill(TileType.FLOOR)
        terrain.add_stairs(14, 5, up=True)
        terrain.add_stairs(15, 5, up=False)
        blend_transitions(terrain, diagram, {0: BiomeKind.DUNGEON, 1: BiomeKind.CITY}, 2, rng)
        assert terrain.get_tile(14, 5) == TileType.STAIRS_UP
        assert terrain.get_tile(15, 5) == TileType.STAIRS_DOWN

    def test_deterministic(self) -> None:
        """Same stream, same blend."""
        diagram = _split_diagram()
        biomes = {0: BiomeKind.FOREST, 1: BiomeKind.MAZE}
        results = []
        for _ in range(2):
            terrain = Terrain(width=30, height=10)
            terrain.fill(TileType.FLOOR)
            blend_transitions(terrain, diagram, biomes, 3, np.random.default_rng(17))
            results.append(terrain.tile_bytes())
        assert results[0] == results[1]

    def test_tiles_come_from_style(self, rng: np.random.Generator) -> None:
        """Zone tiles are drawn from the pair's style."""
        diagram = _split_diagram()
        terrain = Terrain(width=30, height=10)
        biomes = {0: BiomeKind.CAVE, 1: BiomeKind.FOREST}
        blend_transitions(terrain, diagram, biomes, 2, rng)
        zone = diagram.transition_zone(2)
        allowed = {int(t) for t in blend_style(BiomeKind.CAVE, BiomeKind.FOREST).tiles}
        assert set(terrain.grid[zone].tolist()) <= allowed
