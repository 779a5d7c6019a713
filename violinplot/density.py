from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from .errors import ConfigError, EmptyGroupError
from .groups import Group
from .spec import HALF_WIDTH

logger = logging.getLogger(__name__)

# evaluation grid of the default estimator
N_POINTS = 100
CUT = 3.0


@dataclass(frozen=True)
class DensityEstimate:
    points: np.ndarray
    density: np.ndarray
    bandwidth: float


DensityEstimator = Callable[[np.ndarray, Optional[float]], DensityEstimate]


@dataclass(frozen=True)
class DensityCurve:
    """Density rescaled to the violin half-width, on increasing evaluation points."""

    points: np.ndarray
    density: np.ndarray
    bandwidth: float

    @property
    def y_range(self) -> Tuple[float, float]:
        return float(self.points[0]), float(self.points[-1])


@dataclass(frozen=True)
class Summary:
    mean: float
    median: float
    bandwidth: float
    mean_extrapolated: bool = False
    median_extrapolated: bool = False


def default_bandwidth(y: np.ndarray) -> float:
    """
    Normal-reference bandwidth, sigma * (4 / 3n) ** (1/5), with a robust
    sigma (normal-scaled MAD). Falls back to the sample std when MAD is 0.
    """
    n = y.size
    if n < 2:
        return 0.0
    sigma = float(stats.median_abs_deviation(y, scale="normal"))
    if not sigma > 0:
        sigma = float(np.std(y, ddof=1))
    return sigma * (4.0 / (3.0 * n)) ** 0.2


def _grid(lo: float, hi: float, pad: float, n_points: int) -> np.ndarray:
    return np.linspace(lo - pad, hi + pad, n_points)


def gaussian_kde_estimator(
    samples: np.ndarray,
    bandwidth: Optional[float] = None,
    n_points: int = N_POINTS,
) -> DensityEstimate:
    """
    Gaussian KDE on a grid spanning the data plus CUT bandwidths each side.

    Non-finite samples are ignored. With fewer than two distinct values no
    bandwidth can be derived from the data; the curve is then a single
    kernel bump when a bandwidth was given, and all zeros otherwise.
    """
    y = np.asarray(samples, dtype=float)
    y = y[np.isfinite(y)]
    if y.size == 0:
        raise ValueError("gaussian_kde_estimator needs at least one finite sample")

    lo, hi = float(np.min(y)), float(np.max(y))

    if lo == hi:
        if bandwidth:
            h = float(bandwidth)
            x = _grid(lo, hi, CUT * h, n_points)
            return DensityEstimate(points=x, density=stats.norm.pdf(x, loc=lo, scale=h), bandwidth=h)
        x = _grid(lo, hi, 1.0, n_points)
        return DensityEstimate(points=x, density=np.zeros_like(x), bandwidth=0.0)

    h = float(bandwidth) if bandwidth else default_bandwidth(y)
    kde = stats.gaussian_kde(y, bw_method=h / float(np.std(y, ddof=1)))
    x = _grid(lo, hi, CUT * h, n_points)
    return DensityEstimate(points=x, density=kde(x), bandwidth=h)


def normalise_density(density: np.ndarray, half_width: float = HALF_WIDTH) -> np.ndarray:
    """Rescale so that max(density) == half_width. An all-zero curve stays zero."""
    d = np.asarray(density, dtype=float)
    peak = float(np.max(d)) if d.size else 0.0
    if not (math.isfinite(peak) and peak > 0):
        logger.warning("Density curve is flat (peak=%s); violin collapses to its midline.", peak)
        return np.zeros_like(d)
    return d / peak * half_width


def resolve_bandwidths(
    bandwidth: Union[None, float, Sequence[float]],
    n_groups: int,
) -> List[Optional[float]]:
    """
    One bandwidth per group: None lets the estimator choose, a scalar (or a
    single-element sequence) is shared, otherwise the length must match.
    """
    if bandwidth is None:
        return [None] * n_groups

    if np.isscalar(bandwidth):
        values = [bandwidth]
    else:
        values = list(np.ravel(np.asarray(bandwidth, dtype=float)))

    if len(values) == 1:
        shared = float(values[0])
        if not (math.isfinite(shared) and shared > 0):
            raise ConfigError(f"Bandwidth must be positive, got {shared}.")
        logger.info("Same bandwidth bw=%g used for all %d groups.", shared, n_groups)
        return [shared] * n_groups

    if len(values) != n_groups:
        raise ConfigError(
            f"Bandwidth count mismatch: got {len(values)} bandwidths for {n_groups} groups; "
            "provide one bandwidth or one per group."
        )

    out: List[Optional[float]] = []
    for i, v in enumerate(values):
        v = float(v)
        if not (math.isfinite(v) and v > 0):
            raise ConfigError(f"Bandwidth for group {i + 1} must be positive, got {v}.")
        out.append(v)
    return out


def check_not_empty(groups: Sequence[Group]) -> None:
    for g in groups:
        if g.n_finite == 0:
            raise EmptyGroupError(g.index, g.label or None)


def summarise_groups(
    groups: Sequence[Group],
    bandwidth: Union[None, float, Sequence[float]] = None,
    half_width: float = HALF_WIDTH,
    estimator: DensityEstimator = gaussian_kde_estimator,
) -> Tuple[List[DensityCurve], List[Summary]]:
    """Estimate, normalise and summarise every group, in group order."""
    n = len(groups)
    bandwidths = resolve_bandwidths(bandwidth, n)
    check_not_empty(groups)

    curves: List[Optional[DensityCurve]] = [None] * n
    summaries: List[Optional[Summary]] = [None] * n

    for i, g in enumerate(groups):
        est = estimator(g.samples, bandwidths[i])
        points = np.asarray(est.points, dtype=float)
        density = np.asarray(est.density, dtype=float)
        if points.shape != density.shape or points.ndim != 1 or points.size == 0:
            raise ValueError(
                f"Density estimator returned mismatched arrays for group {g.index}: "
                f"{points.shape} points vs {density.shape} densities"
            )
        if np.any(np.diff(points) < 0):
            raise ValueError(f"Density estimator returned unordered evaluation points for group {g.index}")

        curves[i] = DensityCurve(
            points=points,
            density=normalise_density(density, half_width),
            bandwidth=float(est.bandwidth),
        )
        summaries[i] = Summary(
            mean=float(np.mean(g.finite)),
            median=float(np.median(g.finite)),
            bandwidth=float(est.bandwidth),
        )
        logger.debug(
            "Group %d: n=%d bandwidth=%g mean=%g median=%g",
            g.index, g.n_finite, est.bandwidth, summaries[i].mean, summaries[i].median,
        )

    return curves, summaries
