"""Tests for genre preferences."""

import numpy as np
import pytest

from levelgen.config import GenerationParams
from levelgen.generators.base import GeneratorKind
from levelgen.generators.genres import (
    ALL_BIOME_KINDS,
    GENRE_PREFERENCES,
    apply_genre_defaults,
    generator_for_genre,
    get_preference,
    select_biome_kinds,
    tile_theme,
)
from levelgen.tile_types import TileType


class TestGeneratorForGenre:
    """Tests for depth-banded generator choice."""

    @pytest.mark.parametrize(
        ("depth", "expected"),
        [
            (0, GeneratorKind.BSP),
            (3, GeneratorKind.BSP),
            (4, GeneratorKind.CELLULAR),
            (6, GeneratorKind.CELLULAR),
            (7, GeneratorKind.FOREST),
            (9, GeneratorKind.FOREST),
            (10, GeneratorKind.COMPOSITE),
            (25, GeneratorKind.COMPOSITE),
        ],
    )
    def test_fantasy_bands(self, depth: int, expected: GeneratorKind) -> None:
        assert generator_for_genre("fantasy", depth) == expected

    def test_scifi_starts_in_city(self) -> None:
        assert generator_for_genre("scifi", 0) == GeneratorKind.CITY

    def test_unknown_genre_is_bsp(self) -> None:
        """Unknown genres always use BSP, even deep down."""
        assert generator_for_genre("western", 0) == GeneratorKind.BSP
        assert generator_for_genre("western", 15) == GeneratorKind.BSP

    def test_alias(self) -> None:
        assert get_preference("postapocalyptic") is GENRE_PREFERENCES["postapoc"]


class TestSelectBiomeKinds:
    """Tests for composite region kind selection."""

    def test_preferred_kinds_first(self, rng: np.random.Generator) -> None:
        """Three fantasy regions use exactly the genre's biomes."""
        kinds = select_biome_kinds("fantasy", 3, rng)
        assert sorted(kinds) == sorted(GENRE_PREFERENCES["fantasy"].biome_kinds)

    def test_extras_are_distinct(self, rng: np.random.Generator) -> None:
        """A fourth region is drawn from the remaining kinds without duplicates."""
        kinds = select_biome_kinds("fantasy", 4, rng)
        assert len(set(kinds)) == 4
        assert set(GENRE_PREFERENCES["fantasy"].biome_kinds) <= set(kinds)

    def test_unknown_genre_draws_from_all(self, rng: np.random.Generator) -> None:
        kinds = select_biome_kinds("western", 4, rng)
        assert len(set(kinds)) == 4
        assert set(kinds) <= set(ALL_BIOME_KINDS)

    def test_deterministic(self) -> None:
        a = select_biome_kinds("horror", 4, np.random.default_rng(8))
        b = select_biome_kinds("horror", 4, np.random.default_rng(8))
        assert a == b


class TestThemesAndDefaults:
    """Tests for tile themes and density defaults."""

    def test_tile_theme(self) -> None:
        assert tile_theme("scifi", TileType.DOOR) == "airlock"
        assert tile_theme("fantasy", TileType.BRIDGE) == "wooden_bridge"

    def test_unknown_theme(self) -> None:
        assert tile_theme("western", TileType.FLOOR) == "unknown"

    def test_every_genre_themes_every_tile(self) -> None:
        for preference in GENRE_PREFERENCES.values():
            assert set(preference.tile_themes) == set(TileType)

    def test_defaults_fill_missing_keys(self) -> None:
        params = apply_genre_defaults(GenerationParams(genre_id="scifi"))
        assert params.custom["treeDensity"] == 0.0
        assert params.custom["buildingDensity"] == 0.8

    def test_defaults_never_override(self) -> None:
        """Caller-supplied keys win over genre defaults."""
        params = GenerationParams(genre_id="scifi", custom={"roomChance": 0.5})
        result = apply_genre_defaults(params)
        assert result.custom["roomChance"] == 0.5
        assert "roomChance" in params.custom and "treeDensity" not in params.custom

    def test_unknown_genre_unchanged(self) -> None:
        params = GenerationParams(genre_id="western")
        assert apply_genre_defaults(params) is params
