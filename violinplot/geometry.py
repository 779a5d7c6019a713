from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .density import DensityCurve, Summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViolinPolygon:
    """Closed outline: right branch bottom-to-top, left branch top-to-bottom, first vertex repeated."""

    x: np.ndarray
    y: np.ndarray

    @property
    def xy(self) -> np.ndarray:
        return np.column_stack([self.x, self.y])


@dataclass(frozen=True)
class Bar:
    """Horizontal mean/median segment spanning the silhouette at height y."""

    left: float
    right: float
    y: float
    extrapolated: bool = False


@dataclass(frozen=True)
class ViolinGeometry:
    polygon: ViolinPolygon
    mean_bar: Bar
    median_bar: Bar
    summary: Summary


def build_polygon(curve: DensityCurve, cx: float) -> ViolinPolygon:
    u = curve.points
    f = curve.density
    x = np.concatenate([cx + f, (cx - f)[::-1]])
    y = np.concatenate([u, u[::-1]])
    # close the ring explicitly
    x = np.append(x, x[0])
    y = np.append(y, y[0])
    return ViolinPolygon(x=x, y=y)


def bar_at(curve: DensityCurve, cx: float, value: float) -> Bar:
    """
    Interpolate both branches of the outline at `value`.

    Outside the evaluation range the branch values are clamped to the
    nearest end and the bar is flagged as extrapolated.
    """
    u = curve.points
    f = curve.density
    lo, hi = curve.y_range
    extrapolated = bool(value < lo or value > hi)
    if extrapolated:
        logger.warning("Value %g lies outside the evaluation range [%g, %g]; bar clamped.", value, lo, hi)

    right = float(np.interp(value, u, cx + f))
    left = float(np.interp(value, u, cx - f))
    return Bar(left=left, right=right, y=float(value), extrapolated=extrapolated)


def build_geometry(curve: DensityCurve, summary: Summary, cx: float) -> ViolinGeometry:
    mean_bar = bar_at(curve, cx, summary.mean)
    median_bar = bar_at(curve, cx, summary.median)
    flagged = replace(
        summary,
        mean_extrapolated=mean_bar.extrapolated,
        median_extrapolated=median_bar.extrapolated,
    )
    return ViolinGeometry(
        polygon=build_polygon(curve, cx),
        mean_bar=mean_bar,
        median_bar=median_bar,
        summary=flagged,
    )


def bar_segment(bar: Optional[Bar]) -> Optional[tuple[list[float], list[float]]]:
    if bar is None:
        return None
    return [bar.left, bar.right], [bar.y, bar.y]
