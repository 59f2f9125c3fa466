"""Binary space partitioning dungeon: rooms in leaves, L corridors between siblings."""

from dataclasses import dataclass, field

import numpy as np
import structlog

from ..config import BSPConfig, GenerationParams
from ..exceptions import TerrainValidationError, ValidationReason
from ..rng import make_rng
from ..terrain import Terrain
from ..tile_types import TileType
from ..types import Point, Room, RoomType
from .base import GeneratorKind, resolve_dimensions
from .connectivity import l_path
from .validation import require_connected, require_kind, require_rooms, require_stairs

logger = structlog.get_logger()


@dataclass
class BSPNode:
    """A rectangle in the partition tree."""

    x: int
    y: int
    width: int
    height: int
    left: "BSPNode | None" = None
    right: "BSPNode | None" = None
    room_index: int | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def leaves(self) -> list["BSPNode"]:
        """Leaves in left-to-right order."""
        if self.is_leaf:
            return [self]
        result: list[BSPNode] = []
        for child in (self.left, self.right):
            if child is not None:
                result.extend(child.leaves())
        return result


@dataclass
class _Layout:
    """Mutable build state for one generate() call."""

    rooms: list[Room] = field(default_factory=list)
    connections: list[int] = field(default_factory=list)


class BSPGenerator:
    """Dungeon generator.

    Splits the map recursively along its longer axis, hosts one room per
    leaf and joins sibling subtrees bottom-up with L-shaped corridors, so
    every room is reachable.
    """

    kind = GeneratorKind.BSP

    def __init__(self, config: BSPConfig | None = None) -> None:
        self.config = config or BSPConfig()

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        params = params or GenerationParams()
        width, height = resolve_dimensions(params)
        config = self.config
        rng = make_rng(seed)

        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        root = BSPNode(x=0, y=0, width=width, height=height)
        self.split(root, rng, config)

        layout = _Layout()
        for leaf in root.leaves():
            room = self._place_room(leaf, rng, config)
            if room is None:
                continue
            leaf.room_index = len(layout.rooms)
            layout.rooms.append(room)
            layout.connections.append(0)
            terrain.fill_rect(room.x, room.y, room.width, room.height, TileType.FLOOR)

        if not layout.rooms:
            raise TerrainValidationError(
                ValidationReason.NO_ROOMS,
                f"{width}x{height} is too small for a {config.min_room_size}-tile room",
            )

        self._connect(root, terrain, layout)
        self._place_doors(terrain, layout.rooms)

        for room in self._assign_room_types(layout, rng, config):
            terrain.add_room(room)
        self._place_stairs(terrain)

        logger.debug(
            "bsp_generated",
            seed=seed,
            width=width,
            height=height,
            rooms=len(terrain.rooms),
        )
        self.validate(terrain)
        return terrain

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        require_rooms(terrain)
        require_stairs(terrain)
        require_connected(terrain)

    # --- Partitioning ---

    @staticmethod
    def split(node: BSPNode, rng: np.random.Generator, config: BSPConfig) -> None:
        """Recursively split a node until leaves are too small or the stop roll fires."""
        min_side = config.min_room_size + 1
        threshold = 2 * config.min_room_size + 3
        fits_max_room = (
            node.width <= config.max_room_size + 2 and node.height <= config.max_room_size + 2
        )
        if fits_max_room and rng.random() < config.stop_probability:
            return

        can_split_x = node.width >= threshold
        can_split_y = node.height >= threshold
        if not can_split_x and not can_split_y:
            return

        if node.width > node.height * 1.25:
            vertical = True
        elif node.height > node.width * 1.25:
            vertical = False
        else:
            vertical = bool(rng.random() < 0.5)
        if vertical and not can_split_x:
            vertical = False
        elif not vertical and not can_split_y:
            vertical = True

        if vertical:
            cut = int(rng.integers(min_side, node.width - min_side + 1))
            node.left = BSPNode(node.x, node.y, cut, node.height)
            node.right = BSPNode(node.x + cut, node.y, node.width - cut, node.height)
        else:
            cut = int(rng.integers(min_side, node.height - min_side + 1))
            node.left = BSPNode(node.x, node.y, node.width, cut)
            node.right = BSPNode(node.x, node.y + cut, node.width, node.height - cut)

        BSPGenerator.split(node.left, rng, config)
        BSPGenerator.split(node.right, rng, config)

    @staticmethod
    def _place_room(
        leaf: BSPNode, rng: np.random.Generator, config: BSPConfig
    ) -> Room | None:
        """Size a room to the leaf, centered with jitter and a one-tile margin."""
        usable_w = leaf.width - 2
        usable_h = leaf.height - 2
        if usable_w < config.min_room_size or usable_h < config.min_room_size:
            return None

        room_w = int(rng.integers(config.min_room_size, min(config.max_room_size, usable_w) + 1))
        room_h = int(rng.integers(config.min_room_size, min(config.max_room_size, usable_h) + 1))

        slack_x = (usable_w - room_w) // 2
        slack_y = (usable_h - room_h) // 2
        jitter_x = int(rng.integers(-slack_x, slack_x + 1))
        jitter_y = int(rng.integers(-slack_y, slack_y + 1))

        x = leaf.x + (leaf.width - room_w) // 2 + jitter_x
        y = leaf.y + (leaf.height - room_h) // 2 + jitter_y
        x = min(max(x, leaf.x + 1), leaf.x + leaf.width - 1 - room_w)
        y = min(max(y, leaf.y + 1), leaf.y + leaf.height - 1 - room_h)
        return Room(x=x, y=y, width=room_w, height=room_h)

    # --- Corridors ---

    def _connect(self, node: BSPNode, terrain: Terrain, layout: _Layout) -> int | None:
        """Join child subtrees bottom-up. Returns the subtree's representative room."""
        if node.is_leaf:
            return node.room_index

        left = self._connect(node.left, terrain, layout) if node.left else None
        right = self._connect(node.right, terrain, layout) if node.right else None
        if left is None:
            return right
        if right is None:
            return left

        a = layout.rooms[left].center()
        b = layout.rooms[right].center()
        horizontal_first = abs(b.x - a.x) >= abs(b.y - a.y)
        for p in l_path(a, b, horizontal_first):
            # Corridors never overwrite room floor
            if terrain.get_tile(p.x, p.y) == TileType.WALL:
                terrain.set_tile(p.x, p.y, TileType.CORRIDOR)
        layout.connections[left] += 1
        layout.connections[right] += 1
        return left

    @staticmethod
    def _place_doors(terrain: Terrain, rooms: list[Room]) -> None:
        """Turn corridor tiles entering a room through a one-tile gap into doors."""
        for room in rooms:
            ring: list[tuple[int, int, bool]] = []
            for x in range(room.x, room.right):
                ring.append((x, room.y - 1, True))
                ring.append((x, room.bottom, True))
            for y in range(room.y, room.bottom):
                ring.append((room.x - 1, y, False))
                ring.append((room.right, y, False))
            for x, y, horizontal_edge in ring:
                if terrain.get_tile(x, y) != TileType.CORRIDOR:
                    continue
                if horizontal_edge:
                    sides = (terrain.get_tile(x - 1, y), terrain.get_tile(x + 1, y))
                else:
                    sides = (terrain.get_tile(x, y - 1), terrain.get_tile(x, y + 1))
                if all(side == TileType.WALL for side in sides):
                    terrain.set_tile(x, y, TileType.DOOR)

    # --- Room roles and stairs ---

    @staticmethod
    def _assign_room_types(
        layout: _Layout, rng: np.random.Generator, config: BSPConfig
    ) -> list[Room]:
        """First room spawns, last exits, the largest other is the boss room."""
        rooms = layout.rooms
        types = [RoomType.NORMAL] * len(rooms)
        types[0] = RoomType.SPAWN
        if len(rooms) > 1:
            types[-1] = RoomType.EXIT
        middle = range(1, len(rooms) - 1)
        if len(middle) > 0:
            boss = max(middle, key=lambda i: (rooms[i].area, -i))
            types[boss] = RoomType.BOSS
        for i in middle:
            if types[i] != RoomType.NORMAL:
                continue
            if layout.connections[i] >= config.junction_connections:
                types[i] = RoomType.JUNCTION
            elif rng.random() < config.treasure_chance:
                types[i] = RoomType.TREASURE
        return [room.with_type(t) for room, t in zip(rooms, types)]

    @staticmethod
    def _place_stairs(terrain: Terrain) -> None:
        spawn = terrain.rooms[0]
        exit_room = terrain.rooms[-1]
        up = spawn.center()
        terrain.add_stairs(up.x, up.y, up=True)
        down = exit_room.center()
        if down == up:
            # Single room: keep both stairs inside it
            down = Point(x=up.x + 1, y=up.y)
        terrain.add_stairs(down.x, down.y, up=False)
