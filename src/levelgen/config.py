"""Generation parameters and per-generator configuration models."""

import copy
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidParameterError

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 50
DEFAULT_GENRE = "fantasy"


class GenerationParams(BaseModel):
    """Caller-supplied parameters shared by every generator.

    `custom` carries generator-specific keys (width, height, roomChance,
    biomeCount, ...). Unknown keys are ignored by generators.
    """

    model_config = ConfigDict(populate_by_name=True)

    difficulty: float = Field(default=0.5, description="Difficulty in [0, 1]")
    depth: int = Field(default=0, description="Dungeon depth, 0 or greater")
    genre_id: str = Field(default=DEFAULT_GENRE, alias="genreID", description="Genre tag")
    custom: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        if self.depth < 0:
            raise InvalidParameterError(f"depth must be >= 0 (got {self.depth})")
        if not 0.0 <= self.difficulty <= 1.0:
            raise InvalidParameterError(
                f"difficulty must be in [0, 1] (got {self.difficulty})"
            )

    @property
    def genre(self) -> str:
        """Genre tag, with a `genre` custom key taking precedence."""
        value = self.custom.get("genre", self.genre_id)
        if not isinstance(value, str):
            raise InvalidParameterError(f"genre must be a string (got {value!r})")
        return value

    def has(self, key: str) -> bool:
        return key in self.custom

    def get_int(self, key: str, default: int) -> int:
        """Read an integer custom key, falling back to `default` when missing."""
        value = self.custom.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise InvalidParameterError(f"{key} must be an integer (got {value!r})")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise InvalidParameterError(f"{key} must be an integer (got {value!r})")

    def get_float(self, key: str, default: float) -> float:
        value = self.custom.get(key)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParameterError(f"{key} must be a number (got {value!r})")
        return float(value)

    def get_str(self, key: str, default: str) -> str:
        value = self.custom.get(key)
        if value is None:
            return default
        if not isinstance(value, str):
            raise InvalidParameterError(f"{key} must be a string (got {value!r})")
        return value

    def dimensions(self) -> tuple[int, int]:
        """(width, height) from custom keys, defaulting to 80x50."""
        return self.get_int("width", DEFAULT_WIDTH), self.get_int("height", DEFAULT_HEIGHT)

    def with_custom(self, **updates: Any) -> "GenerationParams":
        """Return copy with a deep-copied custom map plus updates."""
        custom = copy.deepcopy(self.custom)
        custom.update(updates)
        return self.model_copy(update={"custom": custom})

    def without_keys(self, *keys: str) -> "GenerationParams":
        custom = {k: copy.deepcopy(v) for k, v in self.custom.items() if k not in keys}
        return self.model_copy(update={"custom": custom})


class BSPConfig(BaseModel, frozen=True):
    """Binary space partitioning dungeon parameters."""

    min_room_size: int = Field(default=6, ge=3, description="Minimum room side")
    max_room_size: int = Field(default=15, ge=3, description="Maximum room side")
    stop_probability: float = Field(
        default=0.25, description="Chance to stop splitting once a leaf fits a max room"
    )
    treasure_chance: float = Field(
        default=0.15, description="Chance an unassigned room becomes a treasure room"
    )
    junction_connections: int = Field(
        default=3, description="Corridor count that makes a room a junction"
    )


class CellularConfig(BaseModel, frozen=True):
    """Cellular automata cave parameters."""

    fill_probability: float = Field(default=0.40, description="Initial wall probability")
    iterations: int = Field(default=5, ge=0, description="Smoothing passes")
    birth_limit: int = Field(
        default=4, description="Floor becomes wall above this many wall neighbors"
    )
    death_limit: int = Field(
        default=3, description="Wall becomes floor below this many wall neighbors"
    )
    min_region_size: int = Field(
        default=10, description="Floor regions smaller than this revert to wall"
    )
    min_walkable_ratio: float = Field(default=0.30, description="Minimum walkable fraction")


class MazeConfig(BaseModel, frozen=True):
    """Recursive backtracking maze parameters."""

    room_chance: float = Field(default=0.10, description="Chance a dead end becomes a room")
    min_room_size: int = Field(default=3, description="Smallest dead-end room side")
    max_room_size: int = Field(default=7, description="Largest dead-end room side")
    corridor_width: int = Field(default=1, ge=1, le=3, description="Passage width in tiles")
    hazard_chance: float = Field(
        default=0.20, description="Chance a remaining dead end becomes a water pool"
    )
    min_walkable_ratio: float = Field(default=0.20, description="Minimum walkable fraction")


class ForestConfig(BaseModel, frozen=True):
    """Forest parameters."""

    tree_density: float = Field(default=0.3, description="Tree density in (0, 1]")
    clearing_count: int = Field(default=3, ge=0, description="Target number of clearings")
    clearing_min_size: int = Field(default=8, description="Smallest clearing side")
    clearing_max_size: int = Field(default=17, description="Largest clearing side")
    water_chance: float = Field(default=0.3, description="Chance of a lake or river")
    min_walkable_ratio: float = Field(default=0.40, description="Minimum walkable fraction")


class CityConfig(BaseModel, frozen=True):
    """City parameters."""

    block_size: int = Field(default=12, ge=4, description="City block side in tiles")
    street_width: int = Field(default=2, ge=1, description="Street width in tiles")
    building_density: float = Field(default=0.7, description="Share of blocks with buildings")
    plaza_density: float = Field(default=0.2, description="Share of blocks that are plazas")
    park_tree_chance: float = Field(default=0.3, description="Tree chance per park lattice site")
    min_walkable_ratio: float = Field(default=0.30, description="Minimum walkable fraction")


class VoronoiConfig(BaseModel, frozen=True):
    """Biome partition seed sampling."""

    min_spacing: int = Field(default=15, description="Minimum Manhattan seed spacing")
    max_attempts: int = Field(default=200, ge=1, description="Draws per seed before fallback")


class CompositeConfig(BaseModel, frozen=True):
    """Multi-biome composite parameters."""

    biome_count: int = Field(default=3, description="Number of biome regions (2-4)")
    transition_width: int = Field(default=3, description="Blend zone radius (1-5)")
    min_width: int = Field(default=60, description="Minimum composite width")
    min_height: int = Field(default=40, description="Minimum composite height")
    max_dimension: int = Field(default=500, description="Maximum composite width/height")
    connectivity_threshold: float = Field(
        default=0.90, description="Share of walkable tiles that must be mutually reachable"
    )
    max_repair_attempts: int = Field(default=32, description="Corridor carves before failing")
    min_walkable_ratio: float = Field(default=0.25, description="Minimum walkable fraction")


class MultiLevelConfig(BaseModel, frozen=True):
    """Stacked level parameters."""

    max_levels: int = Field(default=20, description="Upper bound on levels per stack")
    difficulty_step: float = Field(default=0.1, description="Difficulty added per level")
    alignment_radius: int = Field(
        default=10, description="Search radius for stairs under the level above"
    )


class GeneratorSettings(BaseModel, frozen=True):
    """All generator configuration, built once and injected into generators."""

    bsp: BSPConfig = Field(default_factory=BSPConfig)
    cellular: CellularConfig = Field(default_factory=CellularConfig)
    maze: MazeConfig = Field(default_factory=MazeConfig)
    forest: ForestConfig = Field(default_factory=ForestConfig)
    city: CityConfig = Field(default_factory=CityConfig)
    voronoi: VoronoiConfig = Field(default_factory=VoronoiConfig)
    composite: CompositeConfig = Field(default_factory=CompositeConfig)
    multilevel: MultiLevelConfig = Field(default_factory=MultiLevelConfig)


def load_settings(config_path: Path) -> GeneratorSettings:
    """Load generator settings from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed GeneratorSettings; missing tables use defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return GeneratorSettings.model_validate(data)
