"""Tests for core types."""

import pytest
from pydantic import ValidationError

from levelgen.types import CARDINAL_DELTAS, Point, Room, RoomType


class TestPoint:
    """Tests for Point."""

    def test_creation(self) -> None:
        """Point stores x and y."""
        p = Point(x=3, y=7)
        assert p.x == 3
        assert p.y == 7

    def test_immutable(self) -> None:
        """Point is frozen."""
        p = Point(x=1, y=1)
        with pytest.raises(ValidationError):
            p.x = 2

    def test_hashable(self) -> None:
        """Equal points hash alike and work in sets."""
        assert len({Point(x=1, y=2), Point(x=1, y=2), Point(x=2, y=1)}) == 2

    def test_add(self) -> None:
        """Addition is component-wise."""
        assert Point(x=1, y=2) + Point(x=3, y=-1) == Point(x=4, y=1)

    def test_manhattan_distance(self) -> None:
        """Manhattan distance sums axis offsets."""
        assert Point(x=0, y=0).manhattan_distance(Point(x=3, y=-4)) == 7

    def test_euclidean_distance(self) -> None:
        """Euclidean distance of a 3-4-5 triangle."""
        assert Point(x=0, y=0).distance(Point(x=3, y=4)) == pytest.approx(5.0)

    def test_neighbors_order(self) -> None:
        """Cardinal neighbors come N, E, S, W."""
        p = Point(x=5, y=5)
        assert p.neighbors() == [
            Point(x=5, y=4),
            Point(x=6, y=5),
            Point(x=5, y=6),
            Point(x=4, y=5),
        ]
        assert len(CARDINAL_DELTAS) == 4

    def test_all_neighbors(self) -> None:
        """Moore neighborhood has eight distinct points."""
        assert len(set(Point(x=0, y=0).all_neighbors())) == 8

    def test_in_bounds(self) -> None:
        """Bounds are half-open."""
        assert Point(x=0, y=0).in_bounds(5, 5)
        assert Point(x=4, y=4).in_bounds(5, 5)
        assert not Point(x=5, y=0).in_bounds(5, 5)
        assert not Point(x=-1, y=0).in_bounds(5, 5)

    def test_str(self) -> None:
        """String form is (x, y)."""
        assert str(Point(x=2, y=9)) == "(2, 9)"


class TestRoom:
    """Tests for Room."""

    def test_edges_and_area(self) -> None:
        """Right and bottom edges are exclusive."""
        room = Room(x=2, y=3, width=4, height=5)
        assert room.right == 6
        assert room.bottom == 8
        assert room.area == 20

    def test_non_positive_size_rejected(self) -> None:
        """Rooms need a positive width and height."""
        with pytest.raises(ValidationError):
            Room(x=0, y=0, width=0, height=3)

    def test_center(self) -> None:
        """Center uses integer division."""
        assert Room(x=2, y=2, width=5, height=4).center() == Point(x=4, y=4)

    def test_contains(self) -> None:
        """Contains is inclusive of the origin and exclusive of the far edges."""
        room = Room(x=1, y=1, width=3, height=3)
        assert room.contains(1, 1)
        assert room.contains(3, 3)
        assert not room.contains(4, 1)
        assert not room.contains(0, 2)

    def test_overlaps(self) -> None:
        """Overlap detection with and without padding."""
        a = Room(x=0, y=0, width=4, height=4)
        b = Room(x=4, y=0, width=4, height=4)
        c = Room(x=2, y=2, width=4, height=4)
        assert not a.overlaps(b)
        assert a.overlaps(b, padding=1)
        assert a.overlaps(c)

    def test_tiles(self) -> None:
        """Tiles are yielded row-major."""
        tiles = list(Room(x=1, y=1, width=2, height=2).tiles())
        assert tiles == [(1, 1), (2, 1), (1, 2), (2, 2)]

    def test_with_type_returns_copy(self) -> None:
        """with_type leaves the original untouched."""
        room = Room(x=0, y=0, width=3, height=3)
        boss = room.with_type(RoomType.BOSS)
        assert boss.room_type == RoomType.BOSS
        assert room.room_type == RoomType.NORMAL

    def test_translated(self) -> None:
        """translated shifts the origin only."""
        room = Room(x=1, y=2, width=3, height=4, room_type=RoomType.SPAWN)
        moved = room.translated(10, 20)
        assert (moved.x, moved.y, moved.width, moved.height) == (11, 22, 3, 4)
        assert moved.room_type == RoomType.SPAWN
