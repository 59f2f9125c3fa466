"""Core value types: points and rooms."""

from enum import Enum
from typing import Iterator

from pydantic import BaseModel, Field

# 4-neighborhood deltas, in a fixed order
# Coordinate system: +X is East, +Y is South
CARDINAL_DELTAS: tuple[tuple[int, int], ...] = ((0, -1), (1, 0), (0, 1), (-1, 0))

# 8-neighborhood deltas, clockwise from north
MOORE_DELTAS: tuple[tuple[int, int], ...] = (
    (0, -1),
    (1, -1),
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
    (-1, -1),
)


class Point(BaseModel, frozen=True):
    """Immutable 2D tile coordinate."""

    x: int
    y: int

    def __add__(self, other: "Point") -> "Point":
        return Point(x=self.x + other.x, y=self.y + other.y)

    def manhattan_distance(self, other: "Point") -> int:
        """|dx| + |dy| to another point."""
        return abs(self.x - other.x) + abs(self.y - other.y)

    def distance(self, other: "Point") -> float:
        """Euclidean distance to another point."""
        return float(((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5)

    def neighbors(self) -> list["Point"]:
        """4-connected neighbors (N, E, S, W)."""
        return [Point(x=self.x + dx, y=self.y + dy) for dx, dy in CARDINAL_DELTAS]

    def all_neighbors(self) -> list["Point"]:
        """8-connected neighbors, clockwise from north."""
        return [Point(x=self.x + dx, y=self.y + dy) for dx, dy in MOORE_DELTAS]

    def in_bounds(self, width: int, height: int) -> bool:
        return 0 <= self.x < width and 0 <= self.y < height

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)

    def __hash__(self) -> int:
        return hash((self.x, self.y))

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"

    def __repr__(self) -> str:
        return f"Point(x={self.x}, y={self.y})"


class RoomType(str, Enum):
    """Gameplay role of a room."""

    NORMAL = "normal"
    BOSS = "boss"
    JUNCTION = "junction"
    SPAWN = "spawn"
    EXIT = "exit"
    TREASURE = "treasure"


class Room(BaseModel, frozen=True):
    """Immutable axis-aligned room rectangle."""

    x: int
    y: int
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    room_type: RoomType = RoomType.NORMAL

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def right(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def bottom(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    def center(self) -> Point:
        return Point(x=self.x + self.width // 2, y=self.y + self.height // 2)

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def overlaps(self, other: "Room", padding: int = 0) -> bool:
        """Check if two rooms intersect, optionally keeping `padding` tiles apart."""
        return (
            self.x - padding < other.right
            and other.x - padding < self.right
            and self.y - padding < other.bottom
            and other.y - padding < self.bottom
        )

    def tiles(self) -> Iterator[tuple[int, int]]:
        """Yield (x, y) for every tile in the room, row-major."""
        for y in range(self.y, self.bottom):
            for x in range(self.x, self.right):
                yield x, y

    def with_type(self, room_type: RoomType) -> "Room":
        """Return copy with a different room type."""
        return self.model_copy(update={"room_type": room_type})

    def translated(self, dx: int, dy: int) -> "Room":
        return self.model_copy(update={"x": self.x + dx, "y": self.y + dy})
