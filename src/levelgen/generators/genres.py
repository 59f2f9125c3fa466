"""Genre preferences: generator choice by depth, tile themes and densities.

The table is immutable and built once at import; nothing mutates it at
runtime.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

import numpy as np

from ..config import GenerationParams
from ..tile_types import TileType
from .base import GeneratorKind


@dataclass(frozen=True)
class GenrePreference:
    """Terrain preferences for one genre."""

    genre_id: str
    # Single-biome generator per depth band: 0-3, 4-6, 7-9
    generator_kinds: tuple[GeneratorKind, ...]
    # Preferred region kinds for composite levels
    biome_kinds: tuple[GeneratorKind, ...]
    tile_themes: Mapping[TileType, str]
    water_chance: float
    tree_density: float
    building_density: float
    room_chance: float


ALL_BIOME_KINDS: tuple[GeneratorKind, ...] = (
    GeneratorKind.BSP,
    GeneratorKind.CELLULAR,
    GeneratorKind.MAZE,
    GeneratorKind.FOREST,
    GeneratorKind.CITY,
)

# Depth at which levels become multi-biome composites
COMPOSITE_DEPTH = 10


def _themes(**names: str) -> Mapping[TileType, str]:
    return MappingProxyType({TileType[key.upper()]: value for key, value in names.items()})


GENRE_PREFERENCES: Mapping[str, GenrePreference] = MappingProxyType({
    "fantasy": GenrePreference(
        genre_id="fantasy",
        generator_kinds=(GeneratorKind.BSP, GeneratorKind.CELLULAR, GeneratorKind.FOREST),
        biome_kinds=(GeneratorKind.BSP, GeneratorKind.CELLULAR, GeneratorKind.FOREST),
        tile_themes=_themes(
            wall="stone_wall",
            floor="cobblestone",
            corridor="stone_corridor",
            door="wooden_door",
            water_shallow="clear_water",
            water_deep="deep_water",
            tree="ancient_oak",
            stairs_up="stone_stairs_up",
            stairs_down="stone_stairs_down",
            bridge="wooden_bridge",
            structure="castle_ruins",
        ),
        water_chance=0.3,
        tree_density=0.3,
        building_density=0.7,
        room_chance=0.1,
    ),
    "scifi": GenrePreference(
        genre_id="scifi",
        generator_kinds=(GeneratorKind.CITY, GeneratorKind.MAZE, GeneratorKind.BSP),
        biome_kinds=(GeneratorKind.CITY, GeneratorKind.MAZE, GeneratorKind.BSP),
        tile_themes=_themes(
            wall="metal_panel",
            floor="deck_plating",
            corridor="corridor_plating",
            door="airlock",
            water_shallow="coolant_leak",
            water_deep="coolant_pool",
            tree="tech_pillar",
            stairs_up="elevator_up",
            stairs_down="elevator_down",
            bridge="catwalk",
            structure="tech_building",
        ),
        water_chance=0.0,
        tree_density=0.0,
        building_density=0.8,
        room_chance=0.05,
    ),
    "horror": GenrePreference(
        genre_id="horror",
        generator_kinds=(GeneratorKind.CELLULAR, GeneratorKind.MAZE, GeneratorKind.FOREST),
        biome_kinds=(GeneratorKind.CELLULAR, GeneratorKind.MAZE, GeneratorKind.BSP),
        tile_themes=_themes(
            wall="flesh_wall",
            floor="bloodstained_floor",
            corridor="narrow_passage",
            door="rusty_door",
            water_shallow="murky_water",
            water_deep="blood_pool",
            tree="dead_tree",
            stairs_up="creaking_stairs_up",
            stairs_down="creaking_stairs_down",
            bridge="rickety_bridge",
            structure="abandoned_building",
        ),
        water_chance=0.5,
        tree_density=0.4,
        building_density=0.5,
        room_chance=0.15,
    ),
    "cyberpunk": GenrePreference(
        genre_id="cyberpunk",
        generator_kinds=(GeneratorKind.CITY, GeneratorKind.MAZE, GeneratorKind.CELLULAR),
        biome_kinds=(GeneratorKind.CITY, GeneratorKind.MAZE, GeneratorKind.BSP),
        tile_themes=_themes(
            wall="neon_wall",
            floor="wet_pavement",
            corridor="alley",
            door="security_door",
            water_shallow="puddle",
            water_deep="flooded_area",
            tree="neon_sign",
            stairs_up="fire_escape_up",
            stairs_down="fire_escape_down",
            bridge="overpass",
            structure="mega_building",
        ),
        water_chance=0.2,
        tree_density=0.0,
        building_density=0.9,
        room_chance=0.08,
    ),
    "postapoc": GenrePreference(
        genre_id="postapoc",
        generator_kinds=(GeneratorKind.CELLULAR, GeneratorKind.CITY, GeneratorKind.FOREST),
        biome_kinds=(GeneratorKind.CELLULAR, GeneratorKind.CITY, GeneratorKind.FOREST),
        tile_themes=_themes(
            wall="rubble_wall",
            floor="cracked_floor",
            corridor="collapsed_corridor",
            door="broken_door",
            water_shallow="irradiated_water",
            water_deep="toxic_pool",
            tree="mutated_tree",
            stairs_up="debris_stairs_up",
            stairs_down="debris_stairs_down",
            bridge="makeshift_bridge",
            structure="ruined_building",
        ),
        water_chance=0.4,
        tree_density=0.2,
        building_density=0.4,
        room_chance=0.12,
    ),
})

GENRE_ALIASES: Mapping[str, str] = MappingProxyType({"postapocalyptic": "postapoc"})


def get_preference(genre_id: str) -> GenrePreference | None:
    """Look up a genre, accepting known aliases. Unknown genres return None."""
    return GENRE_PREFERENCES.get(GENRE_ALIASES.get(genre_id, genre_id))


def generator_for_genre(genre_id: str, depth: int) -> GeneratorKind:
    """Pick the generator kind for a genre at a dungeon depth.

    Depths 0-3 use the first preference, 4-6 the second, 7-9 the third and
    10+ a composite. Unknown genres always use BSP.
    """
    preference = get_preference(genre_id)
    if preference is None:
        return GeneratorKind.BSP
    if depth >= COMPOSITE_DEPTH:
        return GeneratorKind.COMPOSITE
    band = 0 if depth <= 3 else 1 if depth <= 6 else 2
    kinds = preference.generator_kinds
    return kinds[min(band, len(kinds) - 1)]


def select_biome_kinds(
    genre_id: str, count: int, rng: np.random.Generator
) -> list[GeneratorKind]:
    """Choose distinct region kinds for a composite.

    Genre preferences come first, random extras fill the rest without
    duplicates, then the list is shuffled. Unknown genres draw from all kinds.
    """
    preference = get_preference(genre_id)
    preferred = list(preference.biome_kinds) if preference else []
    selected = preferred[:count]
    pool = [k for k in ALL_BIOME_KINDS if k not in selected]
    while len(selected) < count and pool:
        selected.append(pool.pop(int(rng.integers(0, len(pool)))))
    return [selected[int(i)] for i in rng.permutation(len(selected))]


def tile_theme(genre_id: str, tile: TileType) -> str:
    """Asset theme name for a tile in a genre, or "unknown"."""
    preference = get_preference(genre_id)
    if preference is None:
        return "unknown"
    return preference.tile_themes.get(tile, "unknown")


def apply_genre_defaults(params: GenerationParams) -> GenerationParams:
    """Return params with the genre's densities filled in where custom keys are missing."""
    preference = get_preference(params.genre)
    if preference is None:
        return params
    defaults = {
        "roomChance": preference.room_chance,
        "treeDensity": preference.tree_density,
        "waterChance": preference.water_chance,
        "buildingDensity": preference.building_density,
    }
    missing = {k: v for k, v in defaults.items() if k not in params.custom}
    if not missing:
        return params
    return params.with_custom(**missing)
