"""Tests for multi-level stacks and stair placement helpers."""

import numpy as np
import pytest
from structlog.testing import capture_logs

from levelgen.config import GenerationParams, GeneratorSettings, MultiLevelConfig
from levelgen.exceptions import InvalidParameterError, TerrainValidationError, ValidationReason
from levelgen.generators.base import GeneratorKind
from levelgen.generators.genres import get_preference
from levelgen.generators.maze import MazeGenerator
from levelgen.multilevel import (
    LevelGenerator,
    place_stairs_in_room,
    place_stairs_random,
    place_stairs_symmetric,
    validate_multi_level_connectivity,
)
from levelgen.rng import derive_seed
from levelgen.terrain import Terrain
from levelgen.tile_types import TileType
from levelgen.types import Point, Room, RoomType


@pytest.fixture
def field_map() -> Terrain:
    """40x40 open floor inside a wall ring."""
    terrain = Terrain(width=40, height=40)
    terrain.fill_rect(1, 1, 38, 38, TileType.FLOOR)
    return terrain


@pytest.fixture
def stack(default_params: GenerationParams) -> list[Terrain]:
    return LevelGenerator().generate_multi_level(3, 777, default_params)


class TestGenerateMultiLevel:
    """Tests for LevelGenerator.generate_multi_level."""

    def test_level_count_and_index(self, stack: list[Terrain]) -> None:
        assert [t.level for t in stack] == [0, 1, 2]

    def test_stairs_link_levels(self, stack: list[Terrain]) -> None:
        """Each level but the last goes down, each but the first goes up."""
        validate_multi_level_connectivity(stack)
        for above, below in zip(stack, stack[1:]):
            assert above.stairs_down
            assert len(below.stairs_up) == 1

    def test_levels_differ(self, stack: list[Terrain]) -> None:
        """Levels use distinct derived seeds."""
        assert len({t.seed for t in stack}) == 3
        assert stack[0].tile_bytes() != stack[1].tile_bytes()

    def test_deterministic(self, default_params: GenerationParams) -> None:
        a = LevelGenerator().generate_multi_level(2, 5, default_params)
        b = LevelGenerator().generate_multi_level(2, 5, default_params)
        assert [t.tile_bytes() for t in a] == [t.tile_bytes() for t in b]

    def test_kind_per_depth(self, default_params: GenerationParams) -> None:
        generator = LevelGenerator()
        generator.set_generator(1, GeneratorKind.CELLULAR)
        levels = generator.generate_multi_level(2, 9, default_params)
        assert [t.kind for t in levels] == ["bsp", "cellular"]
        assert generator.get_generator(5) == GeneratorKind.BSP

    def test_single_level(self, default_params: GenerationParams) -> None:
        levels = LevelGenerator().generate_multi_level(1, 9, default_params)
        assert len(levels) == 1

    @pytest.mark.parametrize("count", [0, 21])
    def test_level_count_bounds(self, default_params: GenerationParams, count: int) -> None:
        with pytest.raises(InvalidParameterError):
            LevelGenerator().generate_multi_level(count, 1, default_params)

    def test_configured_max_levels(self, default_params: GenerationParams) -> None:
        settings = GeneratorSettings(multilevel=MultiLevelConfig(max_levels=2))
        with pytest.raises(InvalidParameterError):
            LevelGenerator(settings).generate_multi_level(3, 1, default_params)

    def test_genre_defaults_applied(self) -> None:
        """Levels pick up the genre's densities, as single-level generation does."""
        params = GenerationParams(genre_id="horror")
        levels = LevelGenerator(kinds_by_depth={0: GeneratorKind.MAZE}).generate_multi_level(
            2, 31, params
        )
        room_chance = get_preference("horror").room_chance
        expected = MazeGenerator().generate(
            derive_seed(31, 0), params.with_custom(roomChance=room_chance)
        )
        assert levels[0].tile_bytes() == expected.tile_bytes()

    def test_logs_summary(self, default_params: GenerationParams) -> None:
        with capture_logs() as logs:
            LevelGenerator().generate_multi_level(2, 4, default_params)
        summary = [e for e in logs if e["event"] == "multi_level_generated"]
        assert summary == [
            {"event": "multi_level_generated", "levels": 2, "seed": 4, "log_level": "info"}
        ]


class TestConnectLevels:
    """Tests for stair alignment between neighbors."""

    def test_aligned_when_open(self, field_map: Terrain) -> None:
        """On open ground the stair up sits right under the stair down."""
        above = field_map.copy()
        above.add_stairs(12, 15, up=False)
        below = field_map.copy()
        below.add_stairs(30, 30, up=True)
        LevelGenerator().connect_levels(above, below, np.random.default_rng(0))
        assert below.stairs_up == [Point(x=12, y=15)]
        assert below.get_tile(30, 30) == TileType.FLOOR

    def test_nearest_site_in_window(self, field_map: Terrain) -> None:
        """A walled-off anchor falls to the nearest open tile."""
        above = field_map.copy()
        above.add_stairs(20, 20, up=False)
        below = field_map.copy()
        below.fill_rect(18, 18, 5, 5, TileType.WALL)
        LevelGenerator().connect_levels(above, below, np.random.default_rng(0))
        up = below.stairs_up[0]
        assert up.manhattan_distance(Point(x=20, y=20)) == 3

    def test_falls_back_outside_window(self, field_map: Terrain) -> None:
        """With no site inside the radius, any site will do."""
        above = field_map.copy()
        above.add_stairs(5, 5, up=False)
        below = Terrain(width=40, height=40)
        below.fill_rect(30, 30, 8, 8, TileType.FLOOR)
        with capture_logs() as logs:
            LevelGenerator().connect_levels(above, below, np.random.default_rng(0))
        assert below.stairs_up[0] == Point(x=30, y=30)
        assert any(e["event"] == "stair_alignment_failed" for e in logs)

    def test_places_missing_anchor(self, field_map: Terrain) -> None:
        """An upper level without stairs down gets one first."""
        above = field_map.copy()
        below = field_map.copy()
        LevelGenerator().connect_levels(above, below, np.random.default_rng(0))
        assert len(above.stairs_down) == 1
        assert below.stairs_up == [above.stairs_down[0]]

    def test_no_site(self, field_map: Terrain) -> None:
        above = field_map.copy()
        above.add_stairs(5, 5, up=False)
        with pytest.raises(TerrainValidationError) as exc_info:
            LevelGenerator().connect_levels(
                above, Terrain(width=40, height=40), np.random.default_rng(0)
            )
        assert exc_info.value.reason == ValidationReason.BAD_STAIRS


class TestStairHelpers:
    """Tests for the placement strategies."""

    def test_random(self, field_map: Terrain, rng: np.random.Generator) -> None:
        up, down = place_stairs_random(field_map, rng)
        assert up != down
        assert field_map.get_tile(up.x, up.y) == TileType.STAIRS_UP
        assert field_map.get_tile(down.x, down.y) == TileType.STAIRS_DOWN

    def test_random_only_down(self, field_map: Terrain, rng: np.random.Generator) -> None:
        placed = place_stairs_random(field_map, rng, up=False)
        assert len(placed) == 1
        assert field_map.stairs_up == [] and field_map.stairs_down == placed

    def test_random_no_floor(self, rng: np.random.Generator) -> None:
        with pytest.raises(TerrainValidationError):
            place_stairs_random(Terrain(width=5, height=5), rng)

    def test_in_room(self, open_room: Terrain, rng: np.random.Generator) -> None:
        """Stairs go near the center of the matching room."""
        room = Room(x=1, y=1, width=8, height=6, room_type=RoomType.SPAWN)
        open_room.add_room(room)
        up, down = place_stairs_in_room(open_room, RoomType.SPAWN, rng)
        center = room.center()
        assert up == center
        assert room.contains(down.x, down.y)
        assert down.manhattan_distance(center) == 1

    def test_in_room_missing_type(self, open_room: Terrain, rng: np.random.Generator) -> None:
        with pytest.raises(TerrainValidationError) as exc_info:
            place_stairs_in_room(open_room, RoomType.BOSS, rng)
        assert exc_info.value.reason == ValidationReason.NO_ROOMS

    def test_symmetric_opposite_corners(
        self, field_map: Terrain, rng: np.random.Generator
    ) -> None:
        """Up and down land in diagonally opposite quarters."""
        up, down = place_stairs_symmetric(field_map, rng)

        def corner(p: Point) -> int:
            assert p.x < 10 or p.x >= 30
            assert p.y < 10 or p.y >= 30
            return (0 if p.x < 10 else 1) + (0 if p.y < 10 else 2)

        assert corner(up) + corner(down) == 3

    def test_symmetric_needs_two_corners(self, rng: np.random.Generator) -> None:
        terrain = Terrain(width=40, height=40)
        terrain.fill_rect(2, 2, 5, 5, TileType.FLOOR)
        with pytest.raises(TerrainValidationError):
            place_stairs_symmetric(terrain, rng)


class TestValidateStack:
    def test_empty(self) -> None:
        with pytest.raises(TerrainValidationError):
            validate_multi_level_connectivity([])

    def test_missing_down(self, field_map: Terrain) -> None:
        top = field_map.copy()
        bottom = field_map.copy()
        bottom.add_stairs(3, 3, up=True)
        with pytest.raises(TerrainValidationError, match="level 0 is missing stairs down"):
            validate_multi_level_connectivity([top, bottom])

    def test_missing_up(self, field_map: Terrain) -> None:
        top = field_map.copy()
        top.add_stairs(3, 3, up=False)
        with pytest.raises(TerrainValidationError, match="level 1 is missing stairs up"):
            validate_multi_level_connectivity([top, field_map.copy()])

    def test_single_level_needs_nothing(self, field_map: Terrain) -> None:
        validate_multi_level_connectivity([field_map])
