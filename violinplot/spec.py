from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict, fields, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import matplotlib.colors as mcolors
from matplotlib.cbook import ls_mapper_r
from matplotlib.lines import lineStyles

from .errors import ConfigError

Colour = Union[str, Tuple[float, ...]]
ColourOption = Union[None, Colour, Sequence[Optional[Colour]]]

HALF_WIDTH = 0.3
N_BINS = 10

_DISABLED = ("", "none")

# camelCase names accepted by from_dict (JSON payloads, option files)
_ALIASES = {
    "xLabels": "x_labels",
    "faceColor": "face_color",
    "edgeColor": "edge_color",
    "faceAlpha": "face_alpha",
    "meanColor": "mean_color",
    "medianColor": "median_color",
    "meanLineStyle": "mean_line_style",
    "medianLineStyle": "median_line_style",
    "barLineWidth": "bar_line_width",
    "showPoints": "show_points",
    "pointSize": "point_size",
    "showLegend": "show_legend",
    "xPositions": "x_positions",
    "nBins": "n_bins",
    "halfWidth": "half_width",
}


def _is_disabled(c: Any) -> bool:
    return c is None or (isinstance(c, str) and c.strip().lower() in _DISABLED)


def _freeze_colour(c: Any) -> Any:
    if _is_disabled(c):
        return None
    if isinstance(c, str):
        return c.strip()
    if isinstance(c, (list, tuple, np.ndarray)):
        return tuple(_freeze_colour(v) if not isinstance(v, (int, float, np.number)) else float(v) for v in c)
    return c


def expand_colours(value: ColourOption, n: int, name: str) -> List[Optional[Colour]]:
    """
    Expand a colour option to one entry per group.

    A single colour (anything matplotlib accepts, including an RGB tuple) is
    repeated; a sequence must hold exactly one colour per group. Disabled
    entries ('none', '' or None) come back as None.
    """
    if _is_disabled(value):
        return [None] * n
    if mcolors.is_color_like(value):
        return [value] * n

    if isinstance(value, str) or not isinstance(value, (list, tuple, np.ndarray)):
        raise ConfigError(f"Invalid {name}: {value!r}")

    items = list(value)
    if len(items) != n:
        raise ConfigError(f"{name} has {len(items)} colours but there are {n} groups.")

    out: List[Optional[Colour]] = []
    for i, c in enumerate(items):
        if _is_disabled(c):
            out.append(None)
        elif mcolors.is_color_like(c):
            out.append(c)
        else:
            raise ConfigError(f"Invalid {name} for group {i + 1}: {c!r}")
    return out


@dataclass(frozen=True)
class StyleSpec:
    title: str = ""
    x_label: str = ""
    y_label: str = ""

    base_font_size: int = 12
    legend_font_size: int = 14

    show_grid: bool = False
    show_box: bool = True


@dataclass(frozen=True)
class ViolinSpec:
    x_labels: Optional[Tuple[str, ...]] = None

    face_color: ColourOption = (1.0, 0.5, 0.0)
    edge_color: ColourOption = "k"
    face_alpha: float = 0.5

    # None / "none" disables the bar
    mean_color: ColourOption = "k"
    median_color: ColourOption = "r"
    mean_line_style: str = "-"
    median_line_style: str = "-"
    bar_line_width: float = 2.0

    # scalar (shared) or one value per group
    bandwidth: Union[None, float, Tuple[float, ...]] = None

    show_points: bool = True
    point_size: Optional[float] = None
    show_legend: bool = True

    x_positions: Optional[Tuple[float, ...]] = None

    n_bins: int = N_BINS
    half_width: float = HALF_WIDTH

    style: StyleSpec = field(default_factory=StyleSpec)

    @property
    def show_mean(self) -> bool:
        return not _is_disabled(self.mean_color)

    @property
    def show_median(self) -> bool:
        return not _is_disabled(self.median_color)

    def normalised(self) -> ViolinSpec:
        try:
            return self._coerced()
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid option value: {e}") from e

    def _coerced(self) -> ViolinSpec:
        bw = self.bandwidth
        if bw is not None and np.isscalar(bw):
            bw = float(bw)
        elif bw is not None:
            bw = tuple(float(b) for b in np.ravel(np.asarray(bw, dtype=float)))

        return ViolinSpec(
            x_labels=None if self.x_labels is None else tuple(str(s) for s in self.x_labels),
            face_color=_freeze_colour(self.face_color),
            edge_color=_freeze_colour(self.edge_color),
            face_alpha=float(self.face_alpha),
            mean_color=_freeze_colour(self.mean_color),
            median_color=_freeze_colour(self.median_color),
            mean_line_style=(self.mean_line_style or "-").strip() or "-",
            median_line_style=(self.median_line_style or "-").strip() or "-",
            bar_line_width=float(self.bar_line_width),
            bandwidth=bw,
            show_points=bool(self.show_points),
            point_size=None if self.point_size is None else float(self.point_size),
            show_legend=bool(self.show_legend),
            x_positions=None if self.x_positions is None else tuple(float(v) for v in self.x_positions),
            n_bins=int(self.n_bins),
            half_width=float(self.half_width),
            style=self.style,
        )

    def check_axis_options(self) -> None:
        if self.x_labels is not None and self.x_positions is not None:
            raise ConfigError("Provide either x_labels or x_positions, not both.")

    def validate(self, n_groups: int) -> None:
        """Check every option against the number of groups; raises ConfigError."""
        from .density import resolve_bandwidths

        self.check_axis_options()

        if self.x_labels is not None and len(self.x_labels) != n_groups:
            raise ConfigError(f"x_labels has {len(self.x_labels)} entries but there are {n_groups} groups.")

        if self.x_positions is not None:
            if len(self.x_positions) != n_groups:
                raise ConfigError(f"x_positions has {len(self.x_positions)} entries but there are {n_groups} groups.")
            if not all(math.isfinite(v) for v in self.x_positions):
                raise ConfigError("x_positions must be finite.")

        if not (0.0 <= self.face_alpha <= 1.0):
            raise ConfigError(f"face_alpha must be in [0, 1], got {self.face_alpha}.")

        if self.n_bins < 1:
            raise ConfigError(f"n_bins must be at least 1, got {self.n_bins}.")
        if not (self.half_width > 0 and math.isfinite(self.half_width)):
            raise ConfigError(f"half_width must be positive, got {self.half_width}.")
        if self.point_size is not None and not self.point_size > 0:
            raise ConfigError(f"point_size must be positive, got {self.point_size}.")
        if not self.bar_line_width > 0:
            raise ConfigError(f"bar_line_width must be positive, got {self.bar_line_width}.")
        for name in ("mean_line_style", "median_line_style"):
            ls = getattr(self, name)
            if ls not in lineStyles and ls not in ls_mapper_r and ls.lower() != "none":
                raise ConfigError(f"Invalid {name}: {ls!r}")

        # colour lists must match the group count
        self.face_colors(n_groups)
        self.edge_colors(n_groups)
        self.mean_colors(n_groups)
        self.median_colors(n_groups)

        resolve_bandwidths(self.bandwidth, n_groups)

    # ---- per-group colour lookup ----
    def face_colors(self, n: int) -> List[Optional[Colour]]:
        return expand_colours(self.face_color, n, "face_color")

    def edge_colors(self, n: int) -> List[Optional[Colour]]:
        return expand_colours(self.edge_color, n, "edge_color")

    def mean_colors(self, n: int) -> List[Optional[Colour]]:
        return expand_colours(self.mean_color, n, "mean_color")

    def median_colors(self, n: int) -> List[Optional[Colour]]:
        return expand_colours(self.median_color, n, "median_color")

    def with_options(self, **options: Any) -> ViolinSpec:
        if not options:
            return self
        d = _canonical_keys(options)
        style_d = d.pop("style", None)
        if style_d is not None and not isinstance(style_d, StyleSpec):
            style_d = _style_from_dict(style_d)
        if style_d is not None:
            d["style"] = style_d
        return replace(self, **d)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self.normalised())
        for k, v in list(d.items()):
            if isinstance(v, tuple):
                d[k] = list(v)
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> ViolinSpec:
        return ViolinSpec().with_options(**(d or {})).normalised()


_SPEC_FIELDS = {f.name for f in fields(ViolinSpec)}
_STYLE_FIELDS = {f.name for f in fields(StyleSpec)}


def _canonical_keys(options: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in options.items():
        name = _ALIASES.get(key, key)
        if name not in _SPEC_FIELDS:
            raise ConfigError(f"Unknown option: {key!r}")
        out[name] = value
    return out


def _style_from_dict(d: Dict[str, Any]) -> StyleSpec:
    unknown = set(d) - _STYLE_FIELDS
    if unknown:
        raise ConfigError(f"Unknown style option(s): {', '.join(sorted(unknown))}")
    try:
        return _build_style(d)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid style option value: {e}") from e


def _build_style(d: Dict[str, Any]) -> StyleSpec:
    return StyleSpec(
        title=str(d.get("title", "")),
        x_label=str(d.get("x_label", "")),
        y_label=str(d.get("y_label", "")),
        base_font_size=int(d.get("base_font_size", 12)),
        legend_font_size=int(d.get("legend_font_size", 14)),
        show_grid=bool(d.get("show_grid", False)),
        show_box=bool(d.get("show_box", True)),
    )
