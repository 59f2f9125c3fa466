"""Generator kinds and the shared generator protocol."""

from enum import Enum
from typing import Protocol

from ..config import GenerationParams
from ..exceptions import InvalidDimensionsError
from ..terrain import Terrain


class GeneratorKind(str, Enum):
    """Closed set of terrain generators."""

    BSP = "bsp"
    CELLULAR = "cellular"
    MAZE = "maze"
    FOREST = "forest"
    CITY = "city"
    COMPOSITE = "composite"


# Smallest region (width, height) each single-biome generator can fill
MIN_VIABLE_SIZE: dict[GeneratorKind, tuple[int, int]] = {
    GeneratorKind.BSP: (10, 10),
    GeneratorKind.CELLULAR: (10, 10),
    GeneratorKind.MAZE: (5, 5),
    GeneratorKind.FOREST: (20, 20),
    GeneratorKind.CITY: (20, 20),
}


class TerrainGenerator(Protocol):
    """A pure function of (seed, params) producing a validated Terrain."""

    kind: GeneratorKind

    def generate(self, seed: int, params: GenerationParams | None = None) -> Terrain:
        ...

    def validate(self, terrain: Terrain) -> None:
        ...


def resolve_dimensions(
    params: GenerationParams,
    min_width: int = 1,
    min_height: int = 1,
) -> tuple[int, int]:
    """Read width/height from params and check them against a minimum.

    Raises:
        InvalidDimensionsError: If either side is non-positive or too small.
    """
    width, height = params.dimensions()
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(
            f"width and height must be positive (got {width}x{height})"
        )
    if width < min_width or height < min_height:
        raise InvalidDimensionsError(
            f"{width}x{height} is below the minimum {min_width}x{min_height}"
        )
    return width, height
