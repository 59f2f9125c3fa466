"""Custom exceptions for level generation."""

from enum import Enum


class GenerationError(Exception):
    """Base exception for generation errors."""

    pass


class InvalidDimensionsError(GenerationError):
    """Raised when width/height are non-positive or below a generator's minimum."""

    pass


class InvalidParameterError(GenerationError):
    """Raised when a generation parameter is out of range or has the wrong type."""

    pass


class ValidationReason(str, Enum):
    """Why a generated terrain failed validation."""

    NO_ROOMS = "no_rooms"
    LOW_WALKABLE_RATIO = "low_walkable_ratio"
    DISCONNECTED = "disconnected"
    TYPE_MISMATCH = "type_mismatch"
    BAD_STAIRS = "bad_stairs"
    OUT_OF_BOUNDS = "out_of_bounds"


class TerrainValidationError(GenerationError):
    """Raised when a terrain does not meet its generator's structural guarantees."""

    def __init__(self, reason: ValidationReason, message: str) -> None:
        super().__init__(f"{reason.value}: {message}")
        self.reason = reason
