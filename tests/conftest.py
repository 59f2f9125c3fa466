"""Shared test fixtures for levelgen tests."""

import numpy as np
import pytest
import structlog

from levelgen.config import GenerationParams
from levelgen.terrain import Terrain
from levelgen.tile_types import TileType


@pytest.fixture
def rng() -> np.random.Generator:
    """Fixed random stream."""
    return np.random.default_rng(42)


@pytest.fixture
def default_params() -> GenerationParams:
    """80x50 fantasy params at depth 0."""
    return GenerationParams(custom={"width": 80, "height": 50})


@pytest.fixture
def open_room() -> Terrain:
    """10x8 terrain: wall border around an open floor interior."""
    terrain = Terrain(width=10, height=8)
    terrain.fill_rect(1, 1, 8, 6, TileType.FLOOR)
    return terrain


@pytest.fixture
def split_room() -> Terrain:
    """12x7 terrain with two floor pockets separated by a wall at x=6.

        ############
        #.....#....#
        #.....#....#
    """
    terrain = Terrain(width=12, height=7)
    terrain.fill_rect(1, 1, 5, 5, TileType.FLOOR)
    terrain.fill_rect(7, 1, 4, 5, TileType.FLOOR)
    return terrain


@pytest.fixture
def corridor_strip() -> Terrain:
    """9x3 terrain with a single corridor along y=1 from x=1 to x=7."""
    terrain = Terrain(width=9, height=3)
    terrain.fill_rect(1, 1, 7, 1, TileType.CORRIDOR)
    return terrain


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()
