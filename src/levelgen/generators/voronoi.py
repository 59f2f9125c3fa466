"""Voronoi biome partition: spaced seed points and Manhattan region assignment."""

from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..exceptions import InvalidParameterError
from ..types import Point
from .connectivity import CROSS

logger = structlog.get_logger()

MIN_REGIONS = 2
MAX_REGIONS = 4


@dataclass
class VoronoiDiagram:
    """Region assignment for one composite generation call.

    `regions` has shape (height, width) and holds the id of the nearest
    seed. `spacing_exhausted[i]` is True when seed i was accepted by the
    best-candidate fallback instead of passing the spacing test.
    """

    width: int
    height: int
    seeds: list[Point]
    regions: NDArray[np.int32]
    spacing_exhausted: list[bool] = field(default_factory=list)

    @property
    def num_regions(self) -> int:
        return len(self.seeds)

    def region_at(self, x: int, y: int) -> int:
        """Region id at (x, y), or -1 out of bounds."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return int(self.regions[y, x])
        return -1

    def region_mask(self, region_id: int) -> NDArray[np.bool_]:
        return self.regions == region_id

    def region_bounds(self, region_id: int) -> tuple[int, int, int, int]:
        """Bounding box (x, y, width, height) of a region."""
        ys, xs = np.nonzero(self.regions == region_id)
        if len(xs) == 0:
            return (0, 0, 0, 0)
        x0, y0 = int(xs.min()), int(ys.min())
        return (x0, y0, int(xs.max()) - x0 + 1, int(ys.max()) - y0 + 1)

    def boundary_mask(self) -> NDArray[np.bool_]:
        """Tiles with an in-bounds 4-neighbor in a different region."""
        r = self.regions
        mask = np.zeros(r.shape, dtype=bool)
        horizontal = r[:, 1:] != r[:, :-1]
        vertical = r[1:, :] != r[:-1, :]
        mask[:, 1:] |= horizontal
        mask[:, :-1] |= horizontal
        mask[1:, :] |= vertical
        mask[:-1, :] |= vertical
        return mask

    def transition_zone(self, radius: int) -> NDArray[np.bool_]:
        """Boundary tiles ring-expanded outward by `radius` 4-neighbor steps."""
        boundary = self.boundary_mask()
        if radius <= 0 or not boundary.any():
            return boundary
        return ndimage.binary_dilation(boundary, structure=CROSS, iterations=radius)

    def distances(self) -> NDArray[np.int64]:
        """Manhattan distance from every tile to every seed, shape (regions, h, w)."""
        ys, xs = np.indices((self.height, self.width))
        return np.stack([np.abs(xs - s.x) + np.abs(ys - s.y) for s in self.seeds])

    def second_nearest(self) -> NDArray[np.int32]:
        """Id of the second-closest seed per tile (ties to the lower id)."""
        order = np.argsort(self.distances(), axis=0, kind="stable")
        return order[1].astype(np.int32)


def _min_seed_distance(point: tuple[int, int], seeds: list[Point]) -> float:
    if not seeds:
        return float("inf")
    return float(min(abs(point[0] - s.x) + abs(point[1] - s.y) for s in seeds))


def place_seeds(
    width: int,
    height: int,
    count: int,
    rng: np.random.Generator,
    min_spacing: int = 15,
    max_attempts: int = 200,
) -> tuple[list[Point], list[bool]]:
    """Rejection-sample seed points.

    A draw is accepted when its Manhattan distance to every accepted seed
    exceeds `min_spacing`. After `max_attempts` rejected draws the farthest
    candidate seen is accepted instead and flagged as exhausted. Seeds are
    always distinct.

    Returns:
        (seeds, spacing_exhausted)
    """
    if count > width * height:
        raise InvalidParameterError(f"cannot place {count} seeds in {width}x{height}")

    seeds: list[Point] = []
    exhausted: list[bool] = []
    for _ in range(count):
        best: tuple[int, int] | None = None
        best_distance = -1.0
        accepted = False
        for _ in range(max_attempts):
            candidate = (int(rng.integers(0, width)), int(rng.integers(0, height)))
            distance = _min_seed_distance(candidate, seeds)
            if distance > min_spacing:
                seeds.append(Point(x=candidate[0], y=candidate[1]))
                accepted = True
                break
            if distance > best_distance:
                best, best_distance = candidate, distance
        if accepted:
            exhausted.append(False)
            continue
        if best is None or best_distance <= 0:
            # Every draw collided with a seed; take the farthest free tile
            ys, xs = np.indices((height, width))
            spread = np.min(
                np.stack([np.abs(xs - s.x) + np.abs(ys - s.y) for s in seeds]), axis=0
            )
            y, x = divmod(int(np.argmax(spread)), width)
            best = (x, y)
        seeds.append(Point(x=best[0], y=best[1]))
        exhausted.append(True)
    return seeds, exhausted


def assign_regions(width: int, height: int, seeds: list[Point]) -> NDArray[np.int32]:
    """Nearest seed under Manhattan distance; ties go to the lower id."""
    ys, xs = np.indices((height, width))
    distances = np.stack([np.abs(xs - s.x) + np.abs(ys - s.y) for s in seeds])
    return np.argmin(distances, axis=0).astype(np.int32)


def generate_voronoi(
    width: int,
    height: int,
    num_regions: int,
    rng: np.random.Generator,
    min_spacing: int = 15,
    max_attempts: int = 200,
) -> VoronoiDiagram:
    """Partition a width x height grid into 2-4 regions."""
    if not MIN_REGIONS <= num_regions <= MAX_REGIONS:
        raise InvalidParameterError(
            f"region count must be between {MIN_REGIONS} and {MAX_REGIONS} (got {num_regions})"
        )
    seeds, exhausted = place_seeds(width, height, num_regions, rng, min_spacing, max_attempts)
    diagram = VoronoiDiagram(
        width=width,
        height=height,
        seeds=seeds,
        regions=assign_regions(width, height, seeds),
        spacing_exhausted=exhausted,
    )
    logger.debug(
        "voronoi_partitioned",
        regions=num_regions,
        seeds=[str(s) for s in seeds],
        exhausted=sum(exhausted),
    )
    return diagram
