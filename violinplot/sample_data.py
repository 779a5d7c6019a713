from __future__ import annotations

from typing import List, Sequence

import numpy as np

SAMPLE_LABELS = ["uniform", "gamma(1, 2)", "normal(10, 2)", "gamma(10, 0.1)"]


def make_sample_groups(n_points: int = 1000, seed: int = 7) -> np.ndarray:
    """
    Demo table with one column per distribution in SAMPLE_LABELS:
    skewed, symmetric and narrow shapes on very different scales.
    """
    rng = np.random.default_rng(seed)
    return np.column_stack(
        [
            rng.random(n_points),
            rng.gamma(1.0, 2.0, size=n_points),
            rng.normal(10.0, 2.0, size=n_points),
            rng.gamma(10.0, 0.1, size=n_points),
        ]
    )


def make_ragged_groups(sizes: Sequence[int] = (10, 1000), seed: int = 7) -> List[np.ndarray]:
    """Uniform groups of different lengths."""
    rng = np.random.default_rng(seed)
    return [rng.random(n) for n in sizes]
