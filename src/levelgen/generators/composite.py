"""Composite multi-biome levels.

Stages: partition the map into Voronoi regions, fill each region with its
own single-biome generator, blend the boundaries, repair connectivity and
place stairs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping

import numpy as np
import structlog

from ..config import CompositeConfig, GenerationParams, GeneratorSettings
from ..exceptions import (
    GenerationError,
    InvalidDimensionsError,
    InvalidParameterError,
    TerrainValidationError,
    ValidationReason,
)
from ..rng import derive_seed, make_rng
from ..terrain import Terrain
from ..tile_types import STAIR_TYPES, TileType
from .base import MIN_VIABLE_SIZE, GeneratorKind, TerrainGenerator, resolve_dimensions
from .bsp import BSPGenerator
from .cellular import CellularGenerator
from .city import CityGenerator
from .connectivity import (
    carve_corridor,
    component_sizes,
    connected_ratio,
    label_components,
    largest_component,
    nearest_tile_in,
    place_stairs_safely,
    tiles_by_distance,
)
from .forest import ForestGenerator
from .genres import select_biome_kinds
from .maze import MazeGenerator
from .transitions import BIOME_FOR_GENERATOR, BiomeKind, blend_transitions
from .validation import (
    require_connected,
    require_kind,
    require_stairs,
    require_walkable_ratio,
)
from .voronoi import MAX_REGIONS, MIN_REGIONS, VoronoiDiagram, generate_voronoi

logger = structlog.get_logger()

# Region generators: kind -> factory over injected settings
REGION_GENERATORS: Mapping[GeneratorKind, Callable[[GeneratorSettings], TerrainGenerator]] = {
    GeneratorKind.BSP: lambda s: BSPGenerator(s.bsp),
    GeneratorKind.CELLULAR: lambda s: CellularGenerator(s.cellular),
    GeneratorKind.MAZE: lambda s: MazeGenerator(s.maze),
    GeneratorKind.FOREST: lambda s: ForestGenerator(s.forest),
    GeneratorKind.CITY: lambda s: CityGenerator(s.city),
}

# Keys that only make sense for the composite itself
_COMPOSITE_KEYS = ("biomeCount", "transitionWidth", "algorithm", "width", "height")

MIN_TRANSITION_WIDTH = 1
MAX_TRANSITION_WIDTH = 5


class CompositeStage(str, Enum):
    """Orchestrator stages, in order."""

    PARTITION = "partition"
    GENERATE = "generate"
    BLEND = "blend"
    REPAIR = "repair"
    STAIRS = "stairs"
    DONE = "done"


@dataclass
class CompositeResult:
    """Terrain plus the partition and bookkeeping from one composite call."""

    terrain: Terrain
    diagram: VoronoiDiagram
    region_kinds: list[GeneratorKind]
    fallback_regions: list[int] = field(default_factory=list)
    repair_corridors: int = 0
    stages: list[CompositeStage] = field(default_factory=list)


class CompositeGenerator:
    """Multi-biome generator.

    Each region is generated independently from its own derived seed and a
    private copy of the parameters, then clipped into the shared grid.
    Regions too small for their generator, or whose generator fails, are
    filled with open floor instead.
    """

    kind = GeneratorKind.COMPOSITE

    def __init__(self, settings: GeneratorSettings | None = None) -> None:
        self.settings = settings or GeneratorSettings()
        self.config = self.settings.composite

    def resolve_config(self, params: GenerationParams) -> CompositeConfig:
        biome_count = params.get_int("biomeCount", self.config.biome_count)
        if not MIN_REGIONS <= biome_count <= MAX_REGIONS:
            raise InvalidParameterError(
                f"biomeCount must be between {MIN_REGIONS} and {MAX_REGIONS} (got {biome_count})"
            )
        transition_width = params.get_int("transitionWidth", self.config.transition_width)
        if not MIN_TRANSITION_WIDTH <= transition_width <= MAX_TRANSITION_WIDTH:
            raise InvalidParameterError(
                f"transitionWidth must be between {MIN_TRANSITION_WIDTH} and "
                f"{MAX_TRANSITION_WIDTH} (got {transition_width})"
            )
        return self.config.model_copy(
            update={"biome_count": biome_count, "transition_width": transition_width}
        )

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        return self.generate_with_layout(seed, params).terrain

    def generate_with_layout(
        self, seed: int, params: GenerationParams | None = None
    ) -> CompositeResult:
        """Run every stage and return the terrain with its region layout."""
        params = params or GenerationParams()
        config = self.resolve_config(params)
        width, height = resolve_dimensions(params, config.min_width, config.min_height)
        if width > config.max_dimension or height > config.max_dimension:
            raise InvalidDimensionsError(
                f"{width}x{height} exceeds the composite maximum of {config.max_dimension}"
            )
        rng = make_rng(seed)
        log = logger.bind(seed=seed, width=width, height=height)
        stages: list[CompositeStage] = []

        stages.append(CompositeStage.PARTITION)
        log.debug("composite_stage", stage=CompositeStage.PARTITION.value)
        diagram = generate_voronoi(
            width,
            height,
            config.biome_count,
            rng,
            self.settings.voronoi.min_spacing,
            self.settings.voronoi.max_attempts,
        )

        stages.append(CompositeStage.GENERATE)
        log.debug("composite_stage", stage=CompositeStage.GENERATE.value)
        kinds = select_biome_kinds(params.genre, config.biome_count, rng)
        terrain = Terrain(width=width, height=height, seed=seed, kind=self.kind.value)
        fallbacks = [
            region_id
            for region_id, kind in enumerate(kinds)
            if not self._fill_region(terrain, diagram, region_id, kind, seed, params)
        ]

        stages.append(CompositeStage.BLEND)
        log.debug("composite_stage", stage=CompositeStage.BLEND.value)
        biomes: dict[int, BiomeKind] = {i: BIOME_FOR_GENERATOR[k] for i, k in enumerate(kinds)}
        blend_transitions(terrain, diagram, biomes, config.transition_width, rng)

        stages.append(CompositeStage.REPAIR)
        log.debug("composite_stage", stage=CompositeStage.REPAIR.value)
        corridors = self.repair_connectivity(terrain, diagram, config)

        stages.append(CompositeStage.STAIRS)
        log.debug("composite_stage", stage=CompositeStage.STAIRS.value)
        self._place_stairs(terrain, diagram)

        self.validate(terrain)
        stages.append(CompositeStage.DONE)
        log.info(
            "composite_generated",
            regions=[k.value for k in kinds],
            fallback_regions=fallbacks,
            repair_corridors=corridors,
            walkable_ratio=round(terrain.walkable_ratio(), 3),
        )
        return CompositeResult(
            terrain=terrain,
            diagram=diagram,
            region_kinds=kinds,
            fallback_regions=fallbacks,
            repair_corridors=corridors,
            stages=stages,
        )

    def validate(self, terrain: Terrain) -> None:
        require_kind(terrain, self.kind.value)
        if terrain.width < self.config.min_width or terrain.height < self.config.min_height:
            raise InvalidDimensionsError(
                f"{terrain.width}x{terrain.height} is below the composite minimum "
                f"{self.config.min_width}x{self.config.min_height}"
            )
        require_walkable_ratio(terrain, self.config.min_walkable_ratio)
        require_stairs(terrain)
        require_connected(terrain, self.config.connectivity_threshold)

    # --- Per-region generation ---

    def _fill_region(
        self,
        terrain: Terrain,
        diagram: VoronoiDiagram,
        region_id: int,
        kind: GeneratorKind,
        seed: int,
        params: GenerationParams,
    ) -> bool:
        """Generate one region into the shared grid.

        Returns:
            False when the region fell back to open floor.
        """
        x0, y0, region_w, region_h = diagram.region_bounds(region_id)
        mask = diagram.region_mask(region_id)
        window = mask[y0 : y0 + region_h, x0 : x0 + region_w]
        min_w, min_h = MIN_VIABLE_SIZE[kind]
        log = logger.bind(region=region_id, kind=kind.value, bounds=(x0, y0, region_w, region_h))

        if region_w < min_w or region_h < min_h:
            log.warning("region_too_small")
            terrain.grid[mask] = TileType.FLOOR
            return False

        # Private copy so no region sees another's custom map
        region_params = params.without_keys(*_COMPOSITE_KEYS).with_custom(
            width=region_w, height=region_h
        )
        generator = REGION_GENERATORS[kind](self.settings)
        try:
            sub = generator.generate(derive_seed(seed, region_id), region_params)
        except GenerationError as exc:
            log.warning("region_generation_failed", error=str(exc))
            terrain.grid[mask] = TileType.FLOOR
            return False

        # Maze may grow by one tile; clip to the region box
        tiles = sub.grid[:region_h, :region_w].copy()
        tiles[np.isin(tiles, [int(t) for t in STAIR_TYPES])] = TileType.FLOOR
        target = terrain.grid[y0 : y0 + region_h, x0 : x0 + region_w]
        target[window] = tiles[window]

        for room in sub.rooms:
            placed = room.translated(x0, y0)
            center = placed.center()
            if 0 <= center.x < terrain.width and 0 <= center.y < terrain.height:
                if mask[center.y, center.x]:
                    terrain.add_room(placed)
        log.debug("region_generated", rooms=len(sub.rooms))
        return True

    # --- Connectivity repair ---

    def repair_connectivity(
        self, terrain: Terrain, diagram: VoronoiDiagram, config: CompositeConfig
    ) -> int:
        """Carve corridors until enough walkable tiles are mutually reachable.

        Each attempt joins the nearest pair of connected and unconnected
        region seeds; once every seed is connected, the largest stray
        component is joined to its nearest main-component tile.

        Returns:
            Corridors carved.

        Raises:
            TerrainValidationError: If the threshold isn't met within the
                retry budget.
        """
        corridors = 0
        for _ in range(config.max_repair_attempts):
            if connected_ratio(terrain) >= config.connectivity_threshold:
                break
            self._carve_repair_corridor(terrain, diagram)
            corridors += 1

        ratio = connected_ratio(terrain)
        if ratio < config.connectivity_threshold:
            raise TerrainValidationError(
                ValidationReason.DISCONNECTED,
                f"connectivity {ratio:.2%} below {config.connectivity_threshold:.2%} "
                f"after {corridors} repair corridors",
            )
        logger.debug("connectivity_repaired", corridors=corridors, ratio=round(ratio, 3))
        return corridors

    @staticmethod
    def _carve_repair_corridor(terrain: Terrain, diagram: VoronoiDiagram) -> None:
        walkable = terrain.walkable_mask()
        main = largest_component(walkable)
        if not main.any():
            # Nothing walkable yet: open a path between the first two seeds
            carve_corridor(terrain, diagram.seeds[0], diagram.seeds[1])
            return

        connected = [i for i, s in enumerate(diagram.seeds) if main[s.y, s.x]]
        unconnected = [i for i, s in enumerate(diagram.seeds) if not main[s.y, s.x]]
        if unconnected:
            if connected:
                pairs = [
                    (diagram.seeds[a].manhattan_distance(diagram.seeds[b]), a, b)
                    for a in connected
                    for b in unconnected
                ]
                _, a, b = min(pairs)
                carve_corridor(terrain, diagram.seeds[a], diagram.seeds[b])
            else:
                target = diagram.seeds[unconnected[0]]
                target_mask = np.zeros_like(main)
                target_mask[target.y, target.x] = True
                start, _ = nearest_tile_in(main, target_mask)
                carve_corridor(terrain, start, target)
            return

        labeled, num_features = label_components(walkable)
        sizes = component_sizes(labeled, num_features)
        sizes[0] = 0
        main_label = int(np.argmax(sizes))
        sizes[main_label] = 0
        stray = labeled == int(np.argmax(sizes))
        start, end = nearest_tile_in(stray, main)
        carve_corridor(terrain, start, end)

    # --- Stairs ---

    @staticmethod
    def _place_stairs(terrain: Terrain, diagram: VoronoiDiagram) -> None:
        """Up near the center of the main component, down at the farthest region junction."""
        main = largest_component(terrain.walkable_mask())
        if not main.any():
            return
        ys, xs = np.nonzero(main)
        centroid = (float(xs.mean()), float(ys.mean()))
        up = place_stairs_safely(terrain, tiles_by_distance(main, centroid), up=True)
        if up is None:
            return

        main = largest_component(terrain.walkable_mask())
        junctions = main & diagram.boundary_mask()
        candidates = tiles_by_distance(junctions, (up.x, up.y), farthest_first=True)
        candidates += tiles_by_distance(main, (up.x, up.y), farthest_first=True)
        place_stairs_safely(terrain, candidates, up=False)

