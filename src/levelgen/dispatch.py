"""Top-level generator dispatch."""

from typing import Callable, Mapping

import structlog

from .config import GenerationParams, GeneratorSettings
from .exceptions import InvalidParameterError
from .generators.base import GeneratorKind, TerrainGenerator
from .generators.composite import REGION_GENERATORS, CompositeGenerator
from .generators.genres import apply_genre_defaults, generator_for_genre
from .terrain import Terrain

logger = structlog.get_logger()

GENERATORS: Mapping[GeneratorKind, Callable[[GeneratorSettings], TerrainGenerator]] = {
    **REGION_GENERATORS,
    GeneratorKind.COMPOSITE: CompositeGenerator,
}


def build_generator(
    kind: GeneratorKind, settings: GeneratorSettings | None = None
) -> TerrainGenerator:
    """Instantiate the generator for a kind with the given settings."""
    return GENERATORS[kind](settings or GeneratorSettings())


def parse_kind(value: str) -> GeneratorKind:
    try:
        return GeneratorKind(value)
    except ValueError:
        valid = ", ".join(k.value for k in GeneratorKind)
        raise InvalidParameterError(
            f"unknown algorithm {value!r} (expected one of {valid})"
        ) from None


def select_kind(params: GenerationParams) -> GeneratorKind:
    """Choose a generator for params.

    An explicit `algorithm` custom key wins, then `biomeCount` selects the
    composite, then the genre's depth table decides.
    """
    if params.has("algorithm"):
        return parse_kind(params.get_str("algorithm", ""))
    if params.has("biomeCount"):
        return GeneratorKind.COMPOSITE
    return generator_for_genre(params.genre, params.depth)


def generate(
    seed: int,
    params: GenerationParams | None = None,
    settings: GeneratorSettings | None = None,
) -> Terrain:
    """Generate a validated terrain for (seed, params).

    Raises:
        GenerationError: On bad parameters or a terrain that fails validation.
    """
    params = apply_genre_defaults(params or GenerationParams())
    kind = select_kind(params)
    logger.debug("dispatching", kind=kind.value, seed=seed, genre=params.genre, depth=params.depth)
    return build_generator(kind, settings).generate(seed, params)


def validate(
    terrain: Terrain,
    kind: GeneratorKind | str | None = None,
    settings: GeneratorSettings | None = None,
) -> None:
    """Re-run a generator's structural checks on a terrain.

    Without `kind`, the terrain's own recorded kind is used.

    Raises:
        TerrainValidationError: If the terrain fails the checks.
        InvalidParameterError: If no generator kind can be determined.
    """
    if kind is None:
        if not terrain.kind:
            raise InvalidParameterError("terrain has no recorded kind; pass one explicitly")
        kind = terrain.kind
    if isinstance(kind, str):
        kind = parse_kind(kind)
    build_generator(kind, settings).validate(terrain)
