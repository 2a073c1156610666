"""
Random number generation utilities.

All randomness in the simulation goes through seeded NumPy generators so
that repeated runs with the same seed produce identical terrain.
"""

import numpy as np


def get_rng(seed: int) -> np.random.Generator:
    """Return a NumPy generator for ``seed``."""
    return np.random.default_rng(seed)


def tie_breaking_jitter(n: int, seed: int) -> np.ndarray:
    """
    Vanishingly small offsets used to break exact elevation ties.

    The values lie in ``[0, machine epsilon)``, so they only matter where
    neighbouring sites would otherwise have exactly the same elevation.

    Args:
        n: Number of offsets
        seed: Seed for reproducibility

    Returns:
        Array of ``n`` offsets
    """
    return get_rng(seed).random(n) * np.finfo(np.float64).eps
