"""Seeded random streams.

Every generation call builds its own Generator from the seed; no global
random state is read or written.
"""

import numpy as np

_SEED_MASK = 0xFFFF_FFFF_FFFF_FFFF


def make_rng(seed: int) -> np.random.Generator:
    """Create a fresh random stream for a (possibly negative) 64-bit seed."""
    return np.random.default_rng(seed & _SEED_MASK)


def derive_seed(seed: int, index: int) -> int:
    """Derive an independent child seed, e.g. one per region or level.

    The child depends only on (seed, index), never on how much of the
    parent stream has been consumed.
    """
    sequence = np.random.SeedSequence(seed & _SEED_MASK, spawn_key=(index,))
    child = int(sequence.generate_state(1, dtype=np.uint64)[0])
    # Keep within signed 64-bit range like caller-supplied seeds
    return child & 0x7FFF_FFFF_FFFF_FFFF
