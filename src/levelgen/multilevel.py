"""Multi-level dungeons: stacks of levels joined by aligned stairs."""

from typing import Mapping

import numpy as np
import structlog

from .config import GenerationParams, GeneratorSettings
from .dispatch import build_generator
from .exceptions import InvalidParameterError, TerrainValidationError, ValidationReason
from .generators.base import GeneratorKind
from .generators.connectivity import place_stairs_safely, tiles_by_distance
from .generators.genres import apply_genre_defaults
from .rng import derive_seed, make_rng
from .terrain import Terrain
from .tile_types import TileType
from .types import Point, RoomType

logger = structlog.get_logger()

MIN_LEVELS = 1


def _stair_sites(terrain: Terrain) -> np.ndarray:
    """Mask of tiles a stair may go on: floor or corridor."""
    grid = terrain.grid
    return (grid == TileType.FLOOR) | (grid == TileType.CORRIDOR)


def _shuffled(mask: np.ndarray, rng: np.random.Generator) -> list[tuple[int, int]]:
    ys, xs = np.nonzero(mask)
    return [(int(xs[i]), int(ys[i])) for i in rng.permutation(len(xs))]


def place_stairs_random(
    terrain: Terrain, rng: np.random.Generator, up: bool = True, down: bool = True
) -> list[Point]:
    """Place stairs on random floor tiles that keep the level connected.

    Raises:
        TerrainValidationError: If a requested stair has nowhere to go.
    """
    placed: list[Point] = []
    for is_up in [flag for flag, wanted in ((True, up), (False, down)) if wanted]:
        point = place_stairs_safely(terrain, _shuffled(_stair_sites(terrain), rng), up=is_up)
        if point is None:
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, "no floor tile can take a staircase"
            )
        placed.append(point)
    return placed


def place_stairs_in_room(
    terrain: Terrain,
    room_type: RoomType,
    rng: np.random.Generator,
    up: bool = True,
    down: bool = True,
) -> list[Point]:
    """Place stairs inside a random room of the given type.

    The up stair takes the tile nearest the room center; the down stair the
    next nearest tile that still qualifies.
    """
    rooms = [room for room in terrain.rooms if room.room_type == room_type]
    if not rooms:
        raise TerrainValidationError(
            ValidationReason.NO_ROOMS, f"no {room_type.value} room for stairs"
        )
    room = rooms[int(rng.integers(0, len(rooms)))]
    center = room.center()

    placed: list[Point] = []
    for is_up in [flag for flag, wanted in ((True, up), (False, down)) if wanted]:
        inside = np.zeros((terrain.height, terrain.width), dtype=bool)
        inside[room.y : room.bottom, room.x : room.right] = True
        candidates = tiles_by_distance(inside & _stair_sites(terrain), (center.x, center.y))
        point = place_stairs_safely(terrain, candidates, up=is_up)
        if point is None:
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, f"{room_type.value} room at {center} has no stair site"
            )
        placed.append(point)
    return placed


def _quarters(terrain: Terrain) -> list[tuple[int, int, int, int]]:
    qw, qh = max(terrain.width // 4, 1), max(terrain.height // 4, 1)
    right, bottom = terrain.width - qw, terrain.height - qh
    return [(0, 0, qw, qh), (right, 0, qw, qh), (0, bottom, qw, qh), (right, bottom, qw, qh)]


def place_stairs_symmetric(
    terrain: Terrain, rng: np.random.Generator, up: bool = True, down: bool = True
) -> list[Point]:
    """Place stairs in opposite corner quarters of the map.

    The up stair goes in a random corner with a usable tile; the down stair
    in the diagonally opposite corner when it has one, otherwise in another
    random corner.
    """
    sites = _stair_sites(terrain)
    corners: dict[int, np.ndarray] = {}
    for index, (x, y, w, h) in enumerate(_quarters(terrain)):
        mask = np.zeros_like(sites)
        mask[y : y + h, x : x + w] = sites[y : y + h, x : x + w]
        if mask.any():
            corners[index] = mask
    if len(corners) < 2:
        raise TerrainValidationError(
            ValidationReason.BAD_STAIRS, "fewer than two corners have floor for stairs"
        )

    placed: list[Point] = []
    available = sorted(corners)
    if up:
        corner = available[int(rng.integers(0, len(available)))]
        available.remove(corner)
        point = place_stairs_safely(terrain, _shuffled(corners[corner], rng), up=True)
        if point is not None:
            placed.append(point)
            # Diagonal opposite first: 0<->3, 1<->2
            if 3 - corner in available:
                available = [3 - corner]
    if down and available:
        corner = available[int(rng.integers(0, len(available)))]
        point = place_stairs_safely(terrain, _shuffled(corners[corner], rng), up=False)
        if point is not None:
            placed.append(point)
    return placed


def validate_multi_level_connectivity(levels: list[Terrain]) -> None:
    """Check that every level has the stairs its position in the stack needs.

    The first level needs stairs down, the last stairs up, and middle levels
    both. Every recorded stair must sit on its own tile with a walkable
    neighbor.

    Raises:
        TerrainValidationError: On the first level that fails.
    """
    if not levels:
        raise TerrainValidationError(ValidationReason.BAD_STAIRS, "no levels to validate")
    last = len(levels) - 1
    for index, level in enumerate(levels):
        if index < last and not level.stairs_down:
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, f"level {index} is missing stairs down"
            )
        if index > 0 and not level.stairs_up:
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, f"level {index} is missing stairs up"
            )
        if not level.validate_stair_placement():
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, f"level {index} has a misplaced staircase"
            )


class LevelGenerator:
    """Generates a stack of levels connected by stairs.

    Generator kinds can be set per level index; unset levels use BSP.
    """

    def __init__(
        self,
        settings: GeneratorSettings | None = None,
        kinds_by_depth: Mapping[int, GeneratorKind] | None = None,
    ) -> None:
        self.settings = settings or GeneratorSettings()
        self.config = self.settings.multilevel
        self._kinds: dict[int, GeneratorKind] = dict(kinds_by_depth or {})

    def set_generator(self, depth: int, kind: GeneratorKind) -> None:
        self._kinds[depth] = kind

    def get_generator(self, depth: int) -> GeneratorKind:
        return self._kinds.get(depth, GeneratorKind.BSP)

    def generate_multi_level(
        self, num_levels: int, seed: int, params: GenerationParams | None = None
    ) -> list[Terrain]:
        """Generate `num_levels` levels and join neighbors with stairs.

        Level i gets its own derived seed, depth `params.depth + i` and
        difficulty raised by `difficulty_step` per level, capped at 1.0. Genre
        densities fill in missing custom keys as in `generate`.

        Raises:
            InvalidParameterError: If num_levels is outside 1 to max_levels.
            GenerationError: If any level fails to generate or connect.
        """
        params = params or GenerationParams()
        if not MIN_LEVELS <= num_levels <= self.config.max_levels:
            raise InvalidParameterError(
                f"num_levels must be between {MIN_LEVELS} and {self.config.max_levels} "
                f"(got {num_levels})"
            )
        params = apply_genre_defaults(params)

        levels: list[Terrain] = []
        for index in range(num_levels):
            kind = self.get_generator(index)
            difficulty = min(params.difficulty + index * self.config.difficulty_step, 1.0)
            level_params = params.with_custom().model_copy(
                update={"depth": params.depth + index, "difficulty": difficulty}
            )
            terrain = build_generator(kind, self.settings).generate(
                derive_seed(seed, index), level_params
            )
            terrain.level = index
            levels.append(terrain)
            logger.debug("level_generated", level=index, kind=kind.value, difficulty=difficulty)

        rng = make_rng(seed)
        for above, below in zip(levels, levels[1:]):
            self.connect_levels(above, below, rng)

        validate_multi_level_connectivity(levels)
        logger.info("multi_level_generated", levels=num_levels, seed=seed)
        return levels

    def connect_levels(self, above: Terrain, below: Terrain, rng: np.random.Generator) -> None:
        """Line up the stairs down on `above` with a new stair up on `below`.

        The lower level's own stairs up are replaced by one placed as close
        as possible to the upper level's stairs down, within the alignment
        radius when any tile there qualifies.
        """
        if above.stairs_down:
            anchor = above.stairs_down[0]
        else:
            anchor = place_stairs_random(above, rng, up=False, down=True)[0]

        for point in list(below.stairs_up):
            below.remove_stairs(point)

        sites = _stair_sites(below)
        radius = self.config.alignment_radius
        window = np.zeros_like(sites)
        window[
            max(anchor.y - radius, 0) : anchor.y + radius + 1,
            max(anchor.x - radius, 0) : anchor.x + radius + 1,
        ] = True
        candidates = tiles_by_distance(sites & window, (anchor.x, anchor.y))
        point = place_stairs_safely(below, candidates, up=True)
        if point is None:
            logger.debug("stair_alignment_failed", level=below.level, anchor=str(anchor))
            point = place_stairs_safely(
                below, tiles_by_distance(sites, (anchor.x, anchor.y)), up=True
            )
        if point is None:
            raise TerrainValidationError(
                ValidationReason.BAD_STAIRS, f"level {below.level} has no site for stairs up"
            )
        logger.debug("levels_connected", above=above.level, below=below.level, up=str(point))
