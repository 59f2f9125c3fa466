"""Recursive backtracking maze with dead-end rooms and water hazards."""

from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import GenerationParams, MazeConfig
from ..exceptions import InvalidParameterError
from ..rng import make_rng
from ..terrain import Terrain
from ..tile_types import TileType
from ..types import Point, Room
from .base import GeneratorKind, resolve_dimensions
from .connectivity import place_stairs_safely
from .validation import (
    require_connected,
    require_kind,
    require_stairs,
    require_walkable_ratio,
)

logger = structlog.get_logger()

# Lattice steps: N, E, S, W
_LATTICE_STEPS: tuple[tuple[int, int], ...] = ((0, -1), (1, 0), (0, 1), (-1, 0))

# Quadrant index -> diagonally opposite quadrant
# 0 top-left, 1 top-right, 2 bottom-left, 3 bottom-right
OPPOSITE_QUADRANT = {0: 3, 1: 2, 2: 1, 3: 0}


@dataclass
class MazeCarving:
    """Result of carving the spanning tree.

    `cells` and `passages` count lattice cells and the wall segments opened
    between them; for a spanning tree cells == passages + 1.
    """

    cells: int
    passages: int
    lattice_width: int
    lattice_height: int
    # Lattice cell (cx, cy) -> number of opened passages
    degree: dict[tuple[int, int], int] = field(default_factory=dict)


def lattice_origin(cx: int, cy: int, corridor_width: int) -> tuple[int, int]:
    """Top-left tile of lattice cell (cx, cy)."""
    step = corridor_width + 1
    return 1 + cx * step, 1 + cy * step


def carve_maze(
    terrain: Terrain, rng: np.random.Generator, corridor_width: int = 1
) -> MazeCarving:
    """Carve a perfect maze with an explicit stack.

    Lattice cells are `corridor_width` square and sit one wall tile apart.
    Cell tiles become FLOOR and opened walls between cells become CORRIDOR.

    Args:
        terrain: All-wall terrain to carve into.
        rng: Random stream.
        corridor_width: Passage width in tiles.

    Returns:
        MazeCarving with cell/passage counts and per-cell degree.
    """
    step = corridor_width + 1
    lattice_w = (terrain.width - 1) // step
    lattice_h = (terrain.height - 1) // step
    if lattice_w < 1 or lattice_h < 1:
        return MazeCarving(cells=0, passages=0, lattice_width=lattice_w, lattice_height=lattice_h)

    visited = np.zeros((lattice_h, lattice_w), dtype=bool)
    carving = MazeCarving(cells=0, passages=0, lattice_width=lattice_w, lattice_height=lattice_h)

    def open_cell(cx: int, cy: int) -> None:
        x, y = lattice_origin(cx, cy, corridor_width)
        terrain.fill_rect(x, y, corridor_width, corridor_width, TileType.FLOOR)
        visited[cy, cx] = True
        carving.cells += 1
        carving.degree[(cx, cy)] = 0

    start = (int(rng.integers(0, lattice_w)), int(rng.integers(0, lattice_h)))
    open_cell(*start)
    stack = [start]

    while stack:
        cx, cy = stack[-1]
        order = rng.permutation(len(_LATTICE_STEPS))
        for i in order:
            dx, dy = _LATTICE_STEPS[int(i)]
            nx, ny = cx + dx, cy + dy
            if not (0 <= nx < lattice_w and 0 <= ny < lattice_h) or visited[ny, nx]:
                continue
            # Wall segment between the two cells
            x, y = lattice_origin(cx, cy, corridor_width)
            if dx:
                wall_x = x + corridor_width if dx > 0 else x - 1
                terrain.fill_rect(wall_x, y, 1, corridor_width, TileType.CORRIDOR)
            else:
                wall_y = y + corridor_width if dy > 0 else y - 1
                terrain.fill_rect(x, wall_y, corridor_width, 1, TileType.CORRIDOR)
            carving.passages += 1
            carving.degree[(cx, cy)] += 1
            open_cell(nx, ny)
            carving.degree[(nx, ny)] += 1
            stack.append((nx, ny))
            break
        else:
            stack.pop()

    return carving


class MazeGenerator:
    """Maze generator.

    Even dimensions grow by one so walls sit on even coordinates. Dead ends
    may become rooms or water pools; stairs go in opposite quadrants.
    """

    kind = GeneratorKind.MAZE

    def __init__(self, config: MazeConfig | None = None) -> None:
        self.config = config or MazeConfig()

    def resolve_config(self, params: GenerationParams) -> MazeConfig:
        corridor_width = params.get_int("corridorWidth", self.config.corridor_width)
        if not 1 <= corridor_width <= 3:
            raise InvalidParameterError(
                f"corridorWidth must be between 1 and 3 (got {corridor_width})"
            )
        room_chance = params.get_float("roomChance", self.config.room_chance)
        if not 0.0 <= room_chance <= 1.0:
            raise InvalidParameterError(f"roomChance must be in [0, 1] (got {room_chance})")
        return self.config.model_copy(
            update={"corridor_width": corridor_width, "room_chance": room_chance}
        )

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        params = params or GenerationParams()
        width, height = resolve_dimensions(params, min_width=5, min_height=5)
        config = self.resolve_config(params)
        # Walls on even coordinates, cells on odd ones
        if width % 2 == 0:
            width += 1
        if height % 2 == 0:
            height += 1
        rng = make_rng(seed)

        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        carving = carve_maze(terrain, rng, config.corridor_width)

        dead_ends = [cell for cell, degree in sorted(carving.degree.items()) if degree == 1]
        remaining = self._add_dead_end_rooms(terrain, dead_ends, rng, config)
        self._place_stairs(terrain, rng)
        hazards = self._add_water_hazards(terrain, remaining, carving, rng, config)

        logger.debug(
            "maze_generated",
            seed=seed,
            width=width,
            height=height,
            cells=carving.cells,
            dead_ends=len(dead_ends),
            rooms=len(terrain.rooms),
            hazards=hazards,
        )
        self.validate(terrain)
        return terrain

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        require_walkable_ratio(terrain, self.config.min_walkable_ratio)
        require_stairs(terrain)
        require_connected(terrain)

    @staticmethod
    def _add_dead_end_rooms(
        terrain: Terrain,
        dead_ends: list[tuple[int, int]],
        rng: np.random.Generator,
        config: MazeConfig,
    ) -> list[tuple[int, int]]:
        """Roll each dead end for a room. Returns the dead ends left untouched."""
        remaining: list[tuple[int, int]] = []
        max_side = min(config.max_room_size, terrain.width - 2, terrain.height - 2)
        for cx, cy in dead_ends:
            if rng.random() >= config.room_chance or max_side < config.min_room_size:
                remaining.append((cx, cy))
                continue
            size = int(rng.integers(config.min_room_size, max_side + 1))
            x, y = lattice_origin(cx, cy, config.corridor_width)
            # Clamp inside the outer wall ring; still covers the dead-end cell
            rx = min(max(x - size // 2, 1), terrain.width - 1 - size)
            ry = min(max(y - size // 2, 1), terrain.height - 1 - size)
            room = Room(x=rx, y=ry, width=size, height=size)
            terrain.fill_rect(room.x, room.y, room.width, room.height, TileType.FLOOR)
            terrain.add_room(room)
        return remaining

    @staticmethod
    def _add_water_hazards(
        terrain: Terrain,
        dead_ends: list[tuple[int, int]],
        carving: MazeCarving,
        rng: np.random.Generator,
        config: MazeConfig,
    ) -> int:
        """Flood some dead ends: deep water in the cell, shallow in its passage.

        Runs after stairs are placed; dead ends at or beside a stair stay dry.
        """
        width = config.corridor_width
        hazards = 0
        for cx, cy in dead_ends:
            if rng.random() >= config.hazard_chance:
                continue
            x, y = lattice_origin(cx, cy, width)
            if terrain.get_tile(x, y) != TileType.FLOOR:
                continue
            if any(room.contains(x, y) for room in terrain.rooms):
                continue
            if _near_stairs(terrain, x, y, width):
                continue
            for dx, dy in _LATTICE_STEPS:
                nx, ny = cx + dx, cy + dy
                if not (0 <= nx < carving.lattice_width and 0 <= ny < carving.lattice_height):
                    continue
                if dx:
                    wall_x = x + width if dx > 0 else x - 1
                    rect = (wall_x, y, 1, width)
                else:
                    wall_y = y + width if dy > 0 else y - 1
                    rect = (x, wall_y, width, 1)
                if terrain.get_tile(rect[0], rect[1]) == TileType.CORRIDOR:
                    terrain.fill_rect(*rect, TileType.WATER_SHALLOW)
                    break
            terrain.fill_rect(x, y, width, width, TileType.WATER_DEEP)
            hazards += 1
        return hazards

    @staticmethod
    def _place_stairs(terrain: Terrain, rng: np.random.Generator) -> None:
        """Stairs up in a random populated quadrant, down in the opposite one."""
        quadrants = _quadrant_masks(terrain.width, terrain.height)
        populated = [q for q, mask in quadrants.items() if np.any(terrain.walkable_mask() & mask)]
        if not populated:
            return
        order = [populated[int(i)] for i in rng.permutation(len(populated))]

        up_quadrant = None
        for q in order:
            if _place_in_quadrant(terrain, quadrants[q], rng, up=True) is not None:
                up_quadrant = q
                break
        if up_quadrant is None:
            return

        # Opposite corner first, then the two adjacent quadrants, then the same one
        fallbacks = [
            OPPOSITE_QUADRANT[up_quadrant],
            up_quadrant ^ 1,
            up_quadrant ^ 2,
            up_quadrant,
        ]
        for q in fallbacks:
            if _place_in_quadrant(terrain, quadrants[q], rng, up=False) is not None:
                return


def _near_stairs(terrain: Terrain, x: int, y: int, size: int) -> bool:
    """True if a stair lies within two tiles of the size x size cell at (x, y)."""
    for stair in terrain.stairs_up + terrain.stairs_down:
        if x - 2 <= stair.x < x + size + 2 and y - 2 <= stair.y < y + size + 2:
            return True
    return False


def _quadrant_masks(width: int, height: int) -> dict[int, NDArray[np.bool_]]:
    half_w, half_h = width // 2, height // 2
    ys, xs = np.indices((height, width))
    left, top = xs < half_w, ys < half_h
    return {0: left & top, 1: ~left & top, 2: left & ~top, 3: ~left & ~top}


def _place_in_quadrant(
    terrain: Terrain,
    quadrant: NDArray[np.bool_],
    rng: np.random.Generator,
    up: bool,
) -> Point | None:
    """Try dead-end tiles first, then any walkable tile, in random order."""
    mask = terrain.walkable_mask() & quadrant
    ys, xs = np.nonzero(mask)
    if len(xs) == 0:
        return None
    order = rng.permutation(len(xs))
    dead_ends, others = [], []
    for i in order:
        x, y = int(xs[i]), int(ys[i])
        if terrain.walkable_neighbor_count(x, y) == 1:
            dead_ends.append((x, y))
        else:
            others.append((x, y))
    return place_stairs_safely(terrain, dead_ends + others, up=up)
