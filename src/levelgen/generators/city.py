"""City: street grid with buildings, plazas and parks."""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog

from ..config import CityConfig, GenerationParams
from ..rng import make_rng
from ..terrain import Terrain
from ..tile_types import TileType
from ..types import Room
from .base import GeneratorKind, resolve_dimensions
from .connectivity import place_stairs_safely, tiles_by_distance
from .validation import (
    require_connected,
    require_kind,
    require_stairs,
    require_walkable_ratio,
)

logger = structlog.get_logger()

# Smallest building footprint side: wall ring plus a 2x2 interior
MIN_BUILDING_SIDE = 4


class BlockType(str, Enum):
    """Use of a city block."""

    BUILDING = "building"
    PLAZA = "plaza"
    PARK = "park"


@dataclass(frozen=True)
class CityBlock:
    """Rectangle between streets."""

    x: int
    y: int
    width: int
    height: int
    block_type: BlockType


def subdivide(width: int, height: int, config: CityConfig) -> list[tuple[int, int, int, int]]:
    """Block rectangles (x, y, w, h) between streets, inside the outer wall."""
    period = config.block_size + config.street_width
    blocks: list[tuple[int, int, int, int]] = []
    for by in range(1 + config.street_width, height - 1, period):
        for bx in range(1 + config.street_width, width - 1, period):
            w = min(config.block_size, width - 1 - config.street_width - bx)
            h = min(config.block_size, height - 1 - config.street_width - by)
            if w > 0 and h > 0:
                blocks.append((bx, by, w, h))
    return blocks


class CityGenerator:
    """City generator.

    Streets form a regular grid. Each block becomes a building (structure
    walls, floor interior, one door, registered as a room), a plaza, or a
    park with scattered trees. A sidewalk ring keeps every door reachable.
    """

    kind = GeneratorKind.CITY

    def __init__(self, config: CityConfig | None = None) -> None:
        self.config = config or CityConfig()

    def resolve_config(self, params: GenerationParams) -> CityConfig:
        return self.config.model_copy(
            update={
                "block_size": max(params.get_int("blockSize", self.config.block_size), 4),
                "street_width": max(params.get_int("streetWidth", self.config.street_width), 1),
                "building_density": params.get_float(
                    "buildingDensity", self.config.building_density
                ),
                "plaza_density": params.get_float("plazaDensity", self.config.plaza_density),
            }
        )

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        params = params or GenerationParams()
        width, height = resolve_dimensions(params, min_width=20, min_height=20)
        config = self.resolve_config(params)
        rng = make_rng(seed)

        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        # Everything inside the outer wall starts as street
        terrain.fill_rect(1, 1, width - 2, height - 2, TileType.FLOOR)

        blocks = []
        for bx, by, bw, bh in subdivide(width, height, config):
            roll = rng.random()
            if roll < config.plaza_density:
                block_type = BlockType.PLAZA
            elif roll < config.plaza_density + config.building_density:
                block_type = BlockType.BUILDING
            else:
                block_type = BlockType.PARK
            if block_type == BlockType.BUILDING and min(bw, bh) < MIN_BUILDING_SIDE + 2:
                block_type = BlockType.PLAZA
            blocks.append(CityBlock(bx, by, bw, bh, block_type))

        for block in blocks:
            if block.block_type == BlockType.BUILDING:
                self._build(terrain, block, rng)
            elif block.block_type == BlockType.PARK:
                self._plant_park(terrain, block, rng, config)

        self._place_stairs(terrain, blocks)

        logger.debug(
            "city_generated",
            seed=seed,
            width=width,
            height=height,
            blocks=len(blocks),
            buildings=len(terrain.rooms),
        )
        self.validate(terrain)
        return terrain

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        require_walkable_ratio(terrain, self.config.min_walkable_ratio)
        require_stairs(terrain)
        require_connected(terrain)

    @staticmethod
    def _build(terrain: Terrain, block: CityBlock, rng: np.random.Generator) -> None:
        """Structure ring one tile in from the block edge, floor inside, one door."""
        x, y = block.x + 1, block.y + 1
        w, h = block.width - 2, block.height - 2
        terrain.fill_rect(x, y, w, h, TileType.STRUCTURE)
        interior = Room(x=x + 1, y=y + 1, width=w - 2, height=h - 2)
        terrain.fill_rect(interior.x, interior.y, interior.width, interior.height, TileType.FLOOR)

        side = int(rng.integers(0, 4))
        if side in (0, 2):
            door_x = int(rng.integers(interior.x, interior.right))
            door_y = y if side == 0 else y + h - 1
        else:
            door_y = int(rng.integers(interior.y, interior.bottom))
            door_x = x if side == 3 else x + w - 1
        terrain.set_tile(door_x, door_y, TileType.DOOR)
        terrain.add_room(interior)

    @staticmethod
    def _plant_park(
        terrain: Terrain, block: CityBlock, rng: np.random.Generator, config: CityConfig
    ) -> None:
        """Trees on every other tile of a lattice, so no two trees touch."""
        for ty in range(block.y + 1, block.y + block.height - 1, 2):
            for tx in range(block.x + 1, block.x + block.width - 1, 2):
                if rng.random() < config.park_tree_chance:
                    terrain.set_tile(tx, ty, TileType.TREE)

    @staticmethod
    def _place_stairs(terrain: Terrain, blocks: list[CityBlock]) -> None:
        """Stairs up in the plaza nearest the top-left corner, down farthest from it."""
        mask = terrain.walkable_mask()
        plazas = [b for b in blocks if b.block_type == BlockType.PLAZA]
        if plazas:
            first = min(plazas, key=lambda b: (b.x + b.y, b.y, b.x))
            origin = (first.x + first.width // 2, first.y + first.height // 2)
        else:
            origin = (0, 0)
        up = place_stairs_safely(terrain, tiles_by_distance(mask, origin), up=True)
        if up is None:
            return
        mask = terrain.walkable_mask()
        place_stairs_safely(
            terrain, tiles_by_distance(mask, (up.x, up.y), farthest_first=True), up=False
        )
