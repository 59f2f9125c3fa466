"""Post-generation validation and terrain statistics."""

from dataclasses import dataclass, field

import numpy as np
import structlog

from ..exceptions import TerrainValidationError, ValidationReason
from ..terrain import Terrain
from ..tile_types import TileType
from .connectivity import connected_ratio

logger = structlog.get_logger()


def _failure(reason: ValidationReason, message: str) -> TerrainValidationError:
    logger.warning("validation_failed", reason=reason.value, detail=message)
    return TerrainValidationError(reason, message)


@dataclass
class TerrainStats:
    """Summary numbers for a generated terrain."""

    width: int
    height: int
    walkable_ratio: float
    connected_ratio: float
    room_count: int
    stairs_up: int
    stairs_down: int
    tile_counts: dict[TileType, int] = field(default_factory=dict)


def compute_stats(terrain: Terrain) -> TerrainStats:
    """Gather walkability, connectivity and tile counts."""
    values, counts = np.unique(terrain.grid, return_counts=True)
    return TerrainStats(
        width=terrain.width,
        height=terrain.height,
        walkable_ratio=terrain.walkable_ratio(),
        connected_ratio=connected_ratio(terrain),
        room_count=len(terrain.rooms),
        stairs_up=len(terrain.stairs_up),
        stairs_down=len(terrain.stairs_down),
        tile_counts={TileType(int(v)): int(c) for v, c in zip(values, counts)},
    )


def require_rooms(terrain: Terrain, minimum: int = 1) -> None:
    """Fail unless the terrain has rooms, all inside the grid."""
    if len(terrain.rooms) < minimum:
        raise _failure(
            ValidationReason.NO_ROOMS,
            f"expected at least {minimum} room(s), found {len(terrain.rooms)}",
        )
    for room in terrain.rooms:
        if room.x < 0 or room.y < 0 or room.right > terrain.width or room.bottom > terrain.height:
            raise _failure(
                ValidationReason.OUT_OF_BOUNDS,
                f"room at ({room.x}, {room.y}) size {room.width}x{room.height} "
                f"exceeds {terrain.width}x{terrain.height}",
            )


def require_walkable_ratio(terrain: Terrain, minimum: float) -> None:
    ratio = terrain.walkable_ratio()
    if ratio < minimum:
        raise _failure(
            ValidationReason.LOW_WALKABLE_RATIO,
            f"walkable ratio {ratio:.2%} below minimum {minimum:.2%}",
        )


def require_connected(terrain: Terrain, threshold: float = 1.0) -> None:
    """Fail when less than `threshold` of walkable tiles are mutually reachable."""
    ratio = connected_ratio(terrain)
    if ratio < threshold:
        raise _failure(
            ValidationReason.DISCONNECTED,
            f"only {ratio:.2%} of walkable tiles connected, need {threshold:.2%}",
        )


def require_stairs(terrain: Terrain) -> None:
    """Fail unless stairs up and down exist and each has a walkable neighbor."""
    if not terrain.stairs_up or not terrain.stairs_down:
        raise _failure(
            ValidationReason.BAD_STAIRS,
            f"missing stairs (up={len(terrain.stairs_up)}, down={len(terrain.stairs_down)})",
        )
    if not terrain.validate_stair_placement():
        raise _failure(
            ValidationReason.BAD_STAIRS, "stair tile missing or without a walkable neighbor"
        )


def require_kind(terrain: Terrain, expected: str) -> None:
    if terrain.kind and terrain.kind != expected:
        raise _failure(
            ValidationReason.TYPE_MISMATCH,
            f"terrain was produced by {terrain.kind!r}, not {expected!r}",
        )
