from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .density import DensityCurve
from .spec import N_BINS

logger = logging.getLogger(__name__)

MIN_POINT_SIZE = 1.0
MAX_POINT_SIZE = 12.0


@dataclass(frozen=True)
class SwarmLayout:
    """
    Point positions for one group, in the order of its finite samples.

    `limits[k]` is the half-width budget of bin k and `bin_index[i]` the bin
    holding point i, so that |x[i] - center| <= limits[bin_index[i]].
    """

    x: np.ndarray
    y: np.ndarray
    size: float
    limits: np.ndarray
    bin_index: np.ndarray


def bin_bounds(y: np.ndarray, n_bins: int = N_BINS) -> Tuple[np.ndarray, np.ndarray]:
    """
    Half-open bins (start, end] over [min(y), max(y)].

    Ends are `n_bins` evenly spaced values from min to max; the first bin
    starts at -inf so it captures the minimum.
    """
    lo, hi = float(np.min(y)), float(np.max(y))
    ends = np.linspace(lo, hi, n_bins) if n_bins > 1 else np.asarray([hi])
    starts = np.concatenate([[-np.inf], ends[:-1]])
    return starts, ends


def bin_limits(curve: DensityCurve, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
    """Mean normalised density of the evaluation points inside each bin, 0 for bins with none."""
    u = curve.points
    f = curve.density
    limits = np.zeros(starts.size, dtype=float)
    for k in range(starts.size):
        in_bin = (u > starts[k]) & (u <= ends[k])
        if np.any(in_bin):
            limits[k] = float(np.mean(f[in_bin]))
    return limits


def bin_offsets(n: int, cx: float, limit: float) -> np.ndarray:
    """
    `n` x positions spread evenly across [cx - limit, cx + limit].

    An odd count puts one point exactly on the midline and spreads the
    other n - 1 across the full width.
    """
    if n <= 0:
        return np.asarray([], dtype=float)
    if n % 2:
        return np.concatenate([[cx], np.linspace(cx - limit, cx + limit, n - 1)])
    return np.linspace(cx - limit, cx + limit, n)


def point_size(n_samples: int, override: Optional[float] = None) -> float:
    if override is not None:
        return float(override)
    return float(np.clip(1000.0 / max(n_samples, 1), MIN_POINT_SIZE, MAX_POINT_SIZE))


def layout_swarm(
    samples: np.ndarray,
    curve: DensityCurve,
    cx: float,
    n_bins: int = N_BINS,
    size: Optional[float] = None,
) -> SwarmLayout:
    y = np.asarray(samples, dtype=float)
    y = y[np.isfinite(y)]

    x = np.full(y.shape, float(cx))
    bin_index = np.zeros(y.shape, dtype=int)
    if y.size == 0:
        return SwarmLayout(x=x, y=y, size=point_size(0, size), limits=np.zeros(n_bins), bin_index=bin_index)

    starts, ends = bin_bounds(y, n_bins)
    limits = bin_limits(curve, starts, ends)

    for k in range(starts.size):
        # samples keep their input order inside a bin
        idx = np.flatnonzero((y > starts[k]) & (y <= ends[k]))
        if idx.size == 0:
            continue
        x[idx] = bin_offsets(idx.size, cx, limits[k])
        bin_index[idx] = k

    logger.debug("Swarm at x=%g: %d points, bin limits %s", cx, y.size, np.round(limits, 4).tolist())
    return SwarmLayout(x=x, y=y, size=point_size(y.size, size), limits=limits, bin_index=bin_index)
