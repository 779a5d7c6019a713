from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.legend import Legend
from matplotlib.lines import Line2D
from matplotlib.patches import Polygon
import matplotlib.colors as mcolors

from .density import DensityCurve, DensityEstimator, Summary, gaussian_kde_estimator, summarise_groups
from .geometry import Bar, ViolinGeometry, bar_segment, build_geometry
from .groups import Group, normalise_groups
from .spec import ViolinSpec
from .swarm import SwarmLayout, layout_swarm

logger = logging.getLogger(__name__)

# draw order: violins < bars (first pass) < points < bars (second pass)
_Z_VIOLIN = 1.0
_Z_BARS = 2.0
_Z_POINTS = 3.0
_Z_BARS_TOP = 4.0


@dataclass(frozen=True)
class BuildResult:
    groups: List[Group]
    curves: List[DensityCurve]
    summaries: List[Summary]
    geometries: List[ViolinGeometry]
    swarms: List[SwarmLayout]
    xlim: Tuple[float, float]
    ylim: Tuple[float, float]

    @property
    def centers(self) -> np.ndarray:
        return np.asarray([g.x for g in self.groups], dtype=float)


@dataclass
class DrawResult:
    violins: List[Polygon] = field(default_factory=list)
    mean_lines: List[Line2D] = field(default_factory=list)
    median_lines: List[Line2D] = field(default_factory=list)
    point_artists: List[Any] = field(default_factory=list)
    legend: Optional[Legend] = None


@dataclass(frozen=True)
class ViolinResult:
    figure: Figure
    ax: Axes
    build: BuildResult
    drawn: DrawResult

    @property
    def densities(self) -> List[np.ndarray]:
        return [c.density for c in self.build.curves]

    @property
    def points(self) -> List[np.ndarray]:
        return [c.points for c in self.build.curves]

    @property
    def means(self) -> np.ndarray:
        return np.asarray([s.mean for s in self.build.summaries], dtype=float)

    @property
    def medians(self) -> np.ndarray:
        return np.asarray([s.median for s in self.build.summaries], dtype=float)

    @property
    def bandwidths(self) -> np.ndarray:
        return np.asarray([s.bandwidth for s in self.build.summaries], dtype=float)

    @property
    def summaries(self) -> List[Summary]:
        return self.build.summaries

    @property
    def legend(self) -> Optional[Legend]:
        return self.drawn.legend


def build_violins(
    data: Any,
    spec: Optional[ViolinSpec] = None,
    estimator: DensityEstimator = gaussian_kde_estimator,
) -> BuildResult:
    """
    Validate input and options, then compute every polygon, bar and swarm.

    Nothing is drawn here, so any ShapeError / ConfigError / EmptyGroupError
    surfaces before an axes is touched.
    """
    spec = (spec or ViolinSpec()).normalised()
    spec.check_axis_options()
    groups = normalise_groups(data, x_positions=spec.x_positions, labels=spec.x_labels)
    spec.validate(len(groups))

    curves, summaries = summarise_groups(groups, spec.bandwidth, spec.half_width, estimator)

    geometries: List[ViolinGeometry] = []
    swarms: List[SwarmLayout] = []
    for g, curve, summary in zip(groups, curves, summaries):
        geometries.append(build_geometry(curve, summary, g.x))
        swarms.append(layout_swarm(g.samples, curve, g.x, n_bins=spec.n_bins, size=spec.point_size))

    centers = [g.x for g in groups]
    xlim = (min(centers) - 0.5, max(centers) + 0.5)
    ylim = (
        min(float(c.points[0]) for c in curves),
        max(float(c.points[-1]) for c in curves),
    )

    return BuildResult(
        groups=groups,
        curves=curves,
        summaries=[geo.summary for geo in geometries],
        geometries=geometries,
        swarms=swarms,
        xlim=xlim,
        ylim=ylim,
    )


def _tick_labels(spec: ViolinSpec, groups: List[Group]) -> Optional[List[str]]:
    if spec.x_labels is not None:
        return list(spec.x_labels)
    labels = [g.label for g in groups]
    if all(labels):
        return labels
    return None


def apply_style(ax, spec: ViolinSpec, legend: Optional[Legend] = None) -> None:
    style = spec.style
    base = int(style.base_font_size)

    if style.title:
        ax.set_title(style.title, fontsize=base + 2)
    if style.x_label:
        ax.set_xlabel(style.x_label, fontsize=base)
    if style.y_label:
        ax.set_ylabel(style.y_label, fontsize=base)

    ax.tick_params(labelsize=base, length=0)
    ax.grid(bool(style.show_grid))

    for spine in ax.spines.values():
        spine.set_visible(bool(style.show_box))

    if legend is not None:
        legend.set_frame_on(False)
        for t in legend.get_texts():
            t.set_fontsize(style.legend_font_size)


def draw(ax, spec: ViolinSpec, result: BuildResult) -> DrawResult:
    spec = spec.normalised()
    n = len(result.groups)
    out = DrawResult()

    face_colors = spec.face_colors(n)
    edge_colors = spec.edge_colors(n)
    mean_colors = spec.mean_colors(n)
    median_colors = spec.median_colors(n)

    # ---- silhouettes ----
    for i, geo in enumerate(result.geometries):
        fc = face_colors[i]
        ec = edge_colors[i]
        poly = Polygon(
            geo.polygon.xy,
            closed=True,
            facecolor=mcolors.to_rgba(fc, alpha=spec.face_alpha) if fc is not None else "none",
            edgecolor=ec if ec is not None else "none",
            zorder=_Z_VIOLIN,
        )
        ax.add_patch(poly)
        out.violins.append(poly)

    # ---- mean / median bars ----
    def _bar(bar: Bar, colour, line_style: str, zorder: float) -> Line2D:
        xs, ys = bar_segment(bar)
        (line,) = ax.plot(
            xs, ys,
            color=colour,
            linestyle=line_style,
            linewidth=spec.bar_line_width,
            label="_nolegend_",
            zorder=zorder,
        )
        return line

    def _draw_bars(zorder: float) -> Tuple[Optional[Line2D], Optional[Line2D]]:
        mean_handle = median_handle = None
        for i, geo in enumerate(result.geometries):
            if mean_colors[i] is not None:
                line = _bar(geo.mean_bar, mean_colors[i], spec.mean_line_style, zorder)
                out.mean_lines.append(line)
                mean_handle = mean_handle or line
            if median_colors[i] is not None:
                line = _bar(geo.median_bar, median_colors[i], spec.median_line_style, zorder)
                out.median_lines.append(line)
                median_handle = median_handle or line
        return mean_handle, median_handle

    mean_handle, median_handle = _draw_bars(_Z_BARS)

    # ---- legend ----
    if spec.show_legend:
        handles: List[Line2D] = []
        labels: List[str] = []
        if mean_handle is not None:
            handles.append(mean_handle)
            labels.append("Mean")
        if median_handle is not None:
            handles.append(median_handle)
            labels.append("Median")
        if handles:
            out.legend = ax.legend(handles, labels)

    # ---- axes ----
    ax.set_xlim(*result.xlim)
    ax.set_ylim(*result.ylim)
    ax.set_xticks(result.centers)
    tick_labels = _tick_labels(spec, result.groups)
    if tick_labels is not None:
        ax.set_xticklabels(tick_labels)

    # ---- points, then the bars again on top of them ----
    if spec.show_points:
        for i, sw in enumerate(result.swarms):
            if sw.x.size == 0:
                continue
            # face and edge swap relative to the violin for contrast
            pts = ax.scatter(
                sw.x,
                sw.y,
                s=sw.size ** 2,
                marker="o",
                facecolors=edge_colors[i] if edge_colors[i] is not None else "none",
                edgecolors=face_colors[i] if face_colors[i] is not None else "none",
                label="_nolegend_",
                zorder=_Z_POINTS,
            )
            out.point_artists.append(pts)
        _draw_bars(_Z_BARS_TOP)

    apply_style(ax, spec, legend=out.legend)
    logger.debug("Drew %d violins, %d bar lines, %d point sets", len(out.violins),
                 len(out.mean_lines) + len(out.median_lines), len(out.point_artists))
    return out


def violinplot(
    data: Any,
    spec: Optional[ViolinSpec] = None,
    ax=None,
    estimator: DensityEstimator = gaussian_kde_estimator,
    **options: Any,
) -> ViolinResult:
    """
    Draw violins with a point swarm for each group of `data`.

    Parameters
    ----------
    data : 2-D array (one group per column), mapping, or sequence of sequences
    spec : ViolinSpec, optional
        Base options; keyword `options` (e.g. ``bandwidth=0.3``,
        ``x_positions=[-1, 0.7, 3.4]``) are applied on top of it.
    ax : matplotlib Axes, optional
        Drawn into a fresh Figure when omitted.
    estimator : callable
        ``(samples, bandwidth) -> DensityEstimate``.
    """
    spec = (spec or ViolinSpec()).with_options(**options).normalised()
    result = build_violins(data, spec, estimator=estimator)

    if ax is None:
        fig = Figure()
        ax = fig.add_subplot(111)

    drawn = draw(ax, spec, result)
    return ViolinResult(figure=ax.figure, ax=ax, build=result, drawn=drawn)
