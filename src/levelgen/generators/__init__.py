"""Terrain generators.

Single-biome generators (BSP dungeons, cellular caves, mazes, forests and
cities), the shared water and connectivity layers, and the multi-biome
composite built from Voronoi regions.
"""

from .base import MIN_VIABLE_SIZE, GeneratorKind, TerrainGenerator, resolve_dimensions
from .bsp import BSPGenerator
from .cellular import CellularGenerator
from .city import CityGenerator
from .composite import CompositeGenerator, CompositeResult, CompositeStage
from .connectivity import carve_corridor, connected_ratio, join_components
from .forest import ForestGenerator
from .genres import (
    GENRE_PREFERENCES,
    GenrePreference,
    apply_genre_defaults,
    generator_for_genre,
    tile_theme,
)
from .maze import MazeGenerator
from .transitions import BiomeKind, BlendStyle, blend_transitions
from .validation import TerrainStats, compute_stats
from .voronoi import VoronoiDiagram, generate_voronoi
from .water import (
    WaterFeature,
    WaterKind,
    flood_fill_water,
    generate_lake,
    generate_moat,
    generate_river,
    place_bridges,
)

__all__ = [
    # Base
    "GeneratorKind",
    "TerrainGenerator",
    "MIN_VIABLE_SIZE",
    "resolve_dimensions",
    # Generators
    "BSPGenerator",
    "CellularGenerator",
    "MazeGenerator",
    "ForestGenerator",
    "CityGenerator",
    "CompositeGenerator",
    "CompositeResult",
    "CompositeStage",
    # Water
    "WaterKind",
    "WaterFeature",
    "generate_lake",
    "generate_river",
    "generate_moat",
    "flood_fill_water",
    "place_bridges",
    # Biomes
    "VoronoiDiagram",
    "generate_voronoi",
    "BiomeKind",
    "BlendStyle",
    "blend_transitions",
    # Genres
    "GenrePreference",
    "GENRE_PREFERENCES",
    "apply_genre_defaults",
    "generator_for_genre",
    "tile_theme",
    # Connectivity and stats
    "carve_corridor",
    "connected_ratio",
    "join_components",
    "TerrainStats",
    "compute_stats",
]
