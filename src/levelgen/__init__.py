"""Procedural level generation.

Deterministic tile-grid levels from a seed: BSP dungeons, cellular caves,
mazes, forests, cities, multi-biome composites and multi-level stacks.
"""

from .config import GenerationParams, GeneratorSettings, load_settings
from .dispatch import build_generator, generate, select_kind, validate
from .exceptions import (
    GenerationError,
    InvalidDimensionsError,
    InvalidParameterError,
    TerrainValidationError,
    ValidationReason,
)
from .generators.base import GeneratorKind
from .multilevel import LevelGenerator, validate_multi_level_connectivity
from .terrain import Terrain
from .tile_types import TileType
from .types import Point, Room, RoomType

__all__ = [
    # Entry points
    "generate",
    "validate",
    "build_generator",
    "select_kind",
    "LevelGenerator",
    "validate_multi_level_connectivity",
    # Types
    "Terrain",
    "TileType",
    "Point",
    "Room",
    "RoomType",
    "GeneratorKind",
    # Config
    "GenerationParams",
    "GeneratorSettings",
    "load_settings",
    # Exceptions
    "GenerationError",
    "InvalidDimensionsError",
    "InvalidParameterError",
    "TerrainValidationError",
    "ValidationReason",
]
