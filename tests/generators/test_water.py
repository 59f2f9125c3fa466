"""Tests for water features."""

import numpy as np
import pytest

from levelgen.generators.connectivity import connected_ratio, l_path
from levelgen.generators.water import (
    MAX_RIVER_WIDTH,
    WaterFeature,
    WaterKind,
    flood_fill,
    flood_fill_water,
    generate_lake,
    generate_moat,
    generate_river,
    place_bridges,
    river_path,
)
from levelgen.terrain import Terrain
from levelgen.tile_types import TileType, WATER_TYPES
from levelgen.types import Point, Room


@pytest.fixture
def meadow() -> Terrain:
    """60x40 open floor."""
    terrain = Terrain(width=60, height=40)
    terrain.fill(TileType.FLOOR)
    return terrain


class TestLake:
    """Tests for generate_lake."""

    def test_lake_has_deep_center(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """The center is deep, the rim shallow."""
        feature = generate_lake(meadow, Point(x=30, y=20), 8.0, rng)
        assert feature.kind == WaterKind.LAKE
        assert meadow.get_tile(30, 20) == TileType.WATER_DEEP
        assert meadow.count(TileType.WATER_SHALLOW) > 0
        assert len(feature.tiles) == meadow.count(TileType.WATER_SHALLOW) + meadow.count(
            TileType.WATER_DEEP
        )

    def test_lake_size_bounded(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """No water beyond 1.3x the nominal radius."""
        center = Point(x=30, y=20)
        feature = generate_lake(meadow, center, 6.0, rng)
        for p in feature.tiles:
            assert p.distance(center) <= 6.0 * 1.3 + 1e-9

    def test_lake_clipped_at_edge(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """A lake at the corner stays in bounds."""
        feature = generate_lake(meadow, Point(x=0, y=0), 5.0, rng)
        assert feature.tiles
        assert all(p.in_bounds(60, 40) for p in feature.tiles)

    def test_walls_protected(self, rng: np.random.Generator) -> None:
        """Lakes never replace walls."""
        terrain = Terrain(width=30, height=30)
        terrain.fill_rect(5, 5, 20, 20, TileType.FLOOR)
        generate_lake(terrain, Point(x=15, y=15), 14.0, rng)
        assert np.all(terrain.grid[0] == TileType.WALL)
        assert terrain.count(TileType.WALL) == 30 * 30 - 20 * 20

    def test_zero_radius(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """A non-positive radius carves nothing."""
        feature = generate_lake(meadow, Point(x=10, y=10), 0.0, rng)
        assert feature.tiles == []


class TestRiver:
    """Tests for river_path and generate_river."""

    def test_path_endpoints_fixed(self, rng: np.random.Generator) -> None:
        """The center line starts and ends on the given points."""
        start, end = Point(x=0, y=20), Point(x=59, y=10)
        path = river_path(start, end, rng)
        assert path[0] == start
        assert path[-1] == end

    def test_path_meander_bounded(self, rng: np.random.Generator) -> None:
        """A horizontal river never drifts more than 20% of its length."""
        path = river_path(Point(x=0, y=20), Point(x=50, y=20), rng)
        assert all(abs(p.y - 20) <= 10 for p in path)

    def test_river_crosses_map(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """A full-width river puts water in every column."""
        generate_river(meadow, Point(x=0, y=20), Point(x=59, y=20), 3, rng)
        water = np.isin(meadow.grid, [int(t) for t in WATER_TYPES])
        assert water.any(axis=0).all()

    def test_wide_river_has_deep_channel(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """Rivers 3+ wide have deep water; narrow ones are shallow only."""
        generate_river(meadow, Point(x=0, y=20), Point(x=59, y=20), 4, rng)
        assert meadow.count(TileType.WATER_DEEP) > 0

    def test_narrow_river_shallow(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """A 2-wide river has no deep tiles."""
        generate_river(meadow, Point(x=0, y=20), Point(x=59, y=20), 2, rng)
        assert meadow.count(TileType.WATER_DEEP) == 0
        assert meadow.count(TileType.WATER_SHALLOW) > 0

    def test_width_clamped(self, rng: np.random.Generator) -> None:
        """Absurd widths are clamped to the maximum."""
        a = Terrain(width=40, height=40)
        a.fill(TileType.FLOOR)
        b = a.copy()
        generate_river(a, Point(x=0, y=20), Point(x=39, y=20), 50, np.random.default_rng(1))
        generate_river(
            b, Point(x=0, y=20), Point(x=39, y=20), MAX_RIVER_WIDTH, np.random.default_rng(1)
        )
        assert a.tile_bytes() == b.tile_bytes()


class TestMoat:
    """Tests for generate_moat."""

    def test_moat_surrounds_room(self, meadow: Terrain) -> None:
        """Every tile of the band is water and the room is untouched."""
        room = Room(x=20, y=10, width=8, height=6)
        feature = generate_moat(meadow, room, 2)
        assert feature.kind == WaterKind.MOAT
        for x, y in room.tiles():
            assert meadow.get_tile(x, y) == TileType.FLOOR
        ring = (room.width + 4) * (room.height + 4) - room.area
        assert len(feature.tiles) == ring

    def test_inner_band_deep(self, meadow: Terrain) -> None:
        """Tiles next to the room are deep, the outer band shallow."""
        room = Room(x=20, y=10, width=8, height=6)
        generate_moat(meadow, room, 3)
        assert meadow.get_tile(19, 12) == TileType.WATER_DEEP
        assert meadow.get_tile(17, 12) == TileType.WATER_SHALLOW

    def test_stairs_protected(self, meadow: Terrain) -> None:
        """Stairs inside the band survive."""
        meadow.add_stairs(19, 12, up=True)
        generate_moat(meadow, Room(x=20, y=10, width=8, height=6), 2)
        assert meadow.get_tile(19, 12) == TileType.STAIRS_UP


class TestFloodFill:
    """Tests for flood_fill and flood_fill_water."""

    def test_bounded(self, meadow: Terrain) -> None:
        """Never visits more than max_tiles."""
        tiles = flood_fill(meadow, Point(x=30, y=20), 25)
        assert len(tiles) == 25
        assert tiles[0] == Point(x=30, y=20)
        assert len(set(tiles)) == 25

    def test_stays_in_region(self, split_room: Terrain) -> None:
        """Walls stop the fill."""
        tiles = flood_fill(split_room, Point(x=1, y=1), 1000)
        assert len(tiles) == 25
        assert all(p.x <= 5 for p in tiles)

    def test_unwalkable_start(self, split_room: Terrain) -> None:
        """Starting on a wall yields nothing."""
        assert flood_fill(split_room, Point(x=0, y=0), 10) == []

    def test_flood_fill_water(self, meadow: Terrain, rng: np.random.Generator) -> None:
        """deep_ratio 1 makes every tile deep."""
        tiles = flood_fill(meadow, Point(x=5, y=5), 12)
        feature = flood_fill_water(meadow, tiles, 1.0, rng)
        assert len(feature.tiles) == 12
        assert meadow.count(TileType.WATER_DEEP) == 12


class TestBridges:
    """Tests for place_bridges."""

    def test_path_across_river_stays_walkable(
        self, meadow: Terrain, rng: np.random.Generator
    ) -> None:
        """A path carved before a river remains traversable after bridging."""
        path = l_path(Point(x=30, y=2), Point(x=30, y=37), horizontal_first=False)
        feature = generate_river(meadow, Point(x=0, y=20), Point(x=59, y=20), 4, rng)
        bridges = place_bridges(meadow, feature, path)
        assert bridges
        assert feature.bridges == bridges
        for p in path:
            assert meadow.is_walkable(p.x, p.y)

    def test_feature_bridges_between_paths(self) -> None:
        """Without a path, water between two floor tiles becomes a bridge."""
        terrain = Terrain(width=5, height=3)
        terrain.fill_rect(0, 1, 5, 1, TileType.CORRIDOR)
        terrain.set_tile(2, 1, TileType.WATER_DEEP)
        feature = WaterFeature(kind=WaterKind.RIVER, tiles=[Point(x=2, y=1)])
        placed = place_bridges(terrain, feature)
        assert placed == [Point(x=2, y=1)]
        assert terrain.get_tile(2, 1) == TileType.BRIDGE
        assert connected_ratio(terrain) == 1.0

    def test_no_bridge_without_crossing(self) -> None:
        """Water with no path tiles on opposite sides is left alone."""
        terrain = Terrain(width=5, height=5)
        terrain.set_tile(2, 2, TileType.WATER_DEEP)
        feature = WaterFeature(kind=WaterKind.LAKE, tiles=[Point(x=2, y=2)])
        assert place_bridges(terrain, feature) == []
        assert terrain.get_tile(2, 2) == TileType.WATER_DEEP
