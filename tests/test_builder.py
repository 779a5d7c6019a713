"""End-to-end: build_violins geometry and the matplotlib render adapter.

Run:  python -m pytest tests/test_builder.py -v
"""
from __future__ import annotations

import matplotlib
matplotlib.use("Agg")  # headless backend

import matplotlib.colors as mcolors
import numpy as np
import pytest
from matplotlib.figure import Figure

from violinplot.builder import build_violins, violinplot
from violinplot.density import DensityEstimate
from violinplot.errors import ConfigError, EmptyGroupError, ShapeError
from violinplot.sample_data import SAMPLE_LABELS, make_ragged_groups, make_sample_groups
from violinplot.spec import ViolinSpec


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def tent_estimator(samples, bandwidth):
    """Triangular density over [min - 1, max + 1]; exact and fast."""
    y = np.asarray(samples, dtype=float)
    y = y[np.isfinite(y)]
    lo, hi = y.min() - 1.0, y.max() + 1.0
    u = np.linspace(lo, hi, 41)
    mid = 0.5 * (lo + hi)
    f = 1.0 - np.abs(u - mid) / (hi - mid)
    return DensityEstimate(points=u, density=f, bandwidth=bandwidth or 1.0)


def narrow_estimator(samples, bandwidth):
    """Evaluation grid that never reaches the data."""
    u = np.linspace(0.0, 1.0, 11)
    return DensityEstimate(points=u, density=np.ones(11), bandwidth=0.1)


def _ax():
    return Figure().add_subplot(111)


# ---------------------------------------------------------------------------
# Geometry properties
# ---------------------------------------------------------------------------

class TestBuildProperties:

    @pytest.fixture(autouse=True)
    def _setup(self):
        self.data = make_sample_groups(n_points=200)
        self.result = build_violins(self.data)

    def test_one_artifact_per_group(self):
        r = self.result
        assert len(r.groups) == len(r.curves) == len(r.summaries) == len(r.geometries) == len(r.swarms) == 4

    def test_polygons_closed_and_span_evaluation_range(self):
        for geo, curve in zip(self.result.geometries, self.result.curves):
            poly = geo.polygon
            assert poly.x[0] == poly.x[-1] and poly.y[0] == poly.y[-1]
            assert poly.y.min() == curve.points[0]
            assert poly.y.max() == curve.points[-1]

    def test_swarm_is_a_bijection_with_samples(self):
        for g, sw in zip(self.result.groups, self.result.swarms):
            np.testing.assert_array_equal(np.sort(sw.y), np.sort(g.finite))

    def test_swarm_within_bin_limits(self):
        for g, sw in zip(self.result.groups, self.result.swarms):
            assert np.all(np.abs(sw.x - g.x) <= sw.limits[sw.bin_index] + 1e-12)

    def test_swarm_within_silhouette(self):
        for g, sw, curve in zip(self.result.groups, self.result.swarms, self.result.curves):
            limit = sw.limits.max()
            assert limit <= curve.density.max() + 1e-12
            assert np.all(np.abs(sw.x - g.x) <= limit + 1e-12)

    def test_idempotent(self):
        again = build_violins(self.data)
        for a, b in zip(self.result.geometries, again.geometries):
            np.testing.assert_array_equal(a.polygon.x, b.polygon.x)
            np.testing.assert_array_equal(a.polygon.y, b.polygon.y)
        for a, b in zip(self.result.swarms, again.swarms):
            np.testing.assert_array_equal(a.x, b.x)
            np.testing.assert_array_equal(a.y, b.y)

    def test_axis_limits(self):
        assert self.result.xlim == (0.5, 4.5)
        lo = min(c.points[0] for c in self.result.curves)
        hi = max(c.points[-1] for c in self.result.curves)
        assert self.result.ylim == (lo, hi)


class TestScenarios:

    def test_zero_variance_group(self):
        r = build_violins([[1, 2, 3, 4, 5], [10, 10, 10]])
        sw = r.swarms[1]
        assert sw.x.tolist() == [2.0, 2.0, 2.0]
        assert sw.y.tolist() == [10.0, 10.0, 10.0]
        assert np.all(r.curves[1].density == 0)

    def test_single_sample_group(self):
        r = build_violins([[7.5]], ViolinSpec(n_bins=10))
        assert r.swarms[0].x.tolist() == [1.0]
        assert r.swarms[0].y.tolist() == [7.5]

    def test_explicit_positions_set_x_limits(self):
        data = [[1, 2, 3], [2, 3, 4], [3, 4, 5]]
        r = build_violins(data, ViolinSpec(x_positions=[-1, 0.7, 3.4]), estimator=tent_estimator)
        assert r.xlim == pytest.approx((-1.5, 3.9))
        assert r.centers.tolist() == [-1.0, 0.7, 3.4]

        res = violinplot(data, x_positions=[-1, 0.7, 3.4], estimator=tent_estimator)
        assert res.ax.get_xlim() == pytest.approx((-1.5, 3.9))

    def test_ragged_groups(self):
        r = build_violins(make_ragged_groups((10, 300)))
        assert [sw.y.size for sw in r.swarms] == [10, 300]
        assert r.swarms[0].size == 12.0


class TestErrors:

    def test_bandwidth_count_mismatch(self):
        with pytest.raises(ConfigError):
            violinplot([[1, 2, 3], [4, 5, 6]], bandwidth=[0.1, 0.2, 0.3])

    def test_labels_with_positions(self):
        with pytest.raises(ConfigError):
            violinplot([[1, 2], [3, 4]], x_labels=["a", "b"], x_positions=[1, 2])

    def test_labels_with_positions_checked_before_data(self):
        with pytest.raises(ConfigError, match="not both"):
            violinplot("not a table", x_labels=["a"], x_positions=[1])

    def test_non_numeric_bandwidth(self):
        with pytest.raises(ConfigError):
            violinplot([[1, 2, 3]], bandwidth="wide")

    def test_bad_line_style_leaves_axes_untouched(self):
        ax = _ax()
        with pytest.raises(ConfigError):
            violinplot([[1.0, 2.0, 3.0]], ax=ax, mean_line_style="zz", estimator=tent_estimator)
        assert len(ax.patches) == 0
        assert len(ax.lines) == 0

    def test_unknown_option(self):
        with pytest.raises(ConfigError):
            violinplot([[1, 2]], colour="red")

    def test_zero_columns(self):
        with pytest.raises(ShapeError):
            violinplot(np.empty((3, 0)))

    def test_empty_group_leaves_axes_untouched(self):
        ax = _ax()
        with pytest.raises(EmptyGroupError):
            violinplot([[1.0, 2.0], [np.nan]], ax=ax)
        assert len(ax.patches) == 0
        assert ax.get_legend() is None


# ---------------------------------------------------------------------------
# Render adapter
# ---------------------------------------------------------------------------

class TestDraw:

    @pytest.fixture(autouse=True)
    def _setup(self):
        self.data = [[1, 2, 3, 4, 5, 6], [2, 2, 3, 5], [0, 1, 4]]

    def _plot(self, **options):
        return violinplot(self.data, ax=_ax(), estimator=tent_estimator, **options)

    def test_returned_artifacts(self):
        res = self._plot()
        assert len(res.densities) == len(res.points) == 3
        np.testing.assert_allclose(res.means, [3.5, 3.0, 5.0 / 3.0])
        np.testing.assert_allclose(res.medians, [3.5, 2.5, 1.0])
        np.testing.assert_allclose(res.bandwidths, [1.0, 1.0, 1.0])
        assert isinstance(res.figure, Figure)
        assert res.ax in res.figure.axes

    def test_shared_bandwidth(self):
        res = self._plot(bandwidth=0.25)
        np.testing.assert_allclose(res.bandwidths, [0.25, 0.25, 0.25])

    def test_one_polygon_per_group(self):
        res = self._plot(face_color=["r", "g", "b"], face_alpha=0.4, edge_color="none")
        assert len(res.drawn.violins) == 3
        np.testing.assert_allclose(res.drawn.violins[1].get_facecolor(), mcolors.to_rgba("g", 0.4))
        assert res.drawn.violins[1].get_edgecolor()[3] == 0

    def test_bars_drawn_before_and_after_points(self):
        res = self._plot()
        assert len(res.drawn.mean_lines) == 6
        assert len(res.drawn.median_lines) == 6
        first, second = res.drawn.mean_lines[0], res.drawn.mean_lines[3]
        np.testing.assert_array_equal(first.get_xydata(), second.get_xydata())
        points_z = res.drawn.point_artists[0].get_zorder()
        assert first.get_zorder() < points_z < second.get_zorder()

    def test_no_points_single_bar_pass(self):
        res = self._plot(show_points=False)
        assert res.drawn.point_artists == []
        assert len(res.drawn.mean_lines) == 3

    def test_point_colours_swapped(self):
        res = self._plot(face_color="b", edge_color="g")
        pts = res.drawn.point_artists[0]
        np.testing.assert_allclose(pts.get_facecolor()[0], mcolors.to_rgba("g"))
        np.testing.assert_allclose(pts.get_edgecolor()[0], mcolors.to_rgba("b"))

    def test_point_offsets_match_layout(self):
        res = self._plot()
        np.testing.assert_allclose(res.drawn.point_artists[2].get_offsets(),
                                   np.column_stack([res.build.swarms[2].x, res.build.swarms[2].y]))

    def test_point_size_override(self):
        res = self._plot(point_size=5)
        assert res.drawn.point_artists[0].get_sizes()[0] == pytest.approx(25.0)

    @pytest.mark.parametrize("options, expected", [
        ({}, ["Mean", "Median"]),
        ({"mean_color": "none"}, ["Median"]),
        ({"median_color": None}, ["Mean"]),
    ])
    def test_legend_entries(self, options, expected):
        res = self._plot(**options)
        assert [t.get_text() for t in res.legend.get_texts()] == expected

    def test_no_legend(self):
        assert self._plot(show_legend=False).legend is None
        assert self._plot(mean_color="none", median_color="none").legend is None

    def test_disabled_bar_not_drawn(self):
        res = self._plot(median_color="none")
        assert res.drawn.median_lines == []

    def test_axis_limits_and_ticks(self):
        res = self._plot(x_labels=["a", "b", "c"])
        ax = res.ax
        assert ax.get_xlim() == pytest.approx((0.5, 3.5))
        assert ax.get_ylim() == pytest.approx(res.build.ylim)
        assert list(ax.get_xticks()) == [1.0, 2.0, 3.0]
        assert [t.get_text() for t in ax.get_xticklabels()] == ["a", "b", "c"]

    def test_mapping_keys_label_ticks(self):
        res = violinplot(dict(zip(SAMPLE_LABELS, make_sample_groups(100).T)), ax=_ax())
        assert [t.get_text() for t in res.ax.get_xticklabels()] == SAMPLE_LABELS

    def test_style(self):
        res = self._plot(style={"title": "Scores", "y_label": "value", "show_box": False})
        assert res.ax.get_title() == "Scores"
        assert res.ax.get_ylabel() == "value"
        assert not res.ax.spines["top"].get_visible()

    def test_extrapolated_bars_are_flagged(self):
        res = violinplot([[5.0, 6.0, 7.0]], ax=_ax(), estimator=narrow_estimator)
        (summary,) = res.summaries
        assert summary.mean_extrapolated and summary.median_extrapolated
        bar = res.build.geometries[0].mean_bar
        assert bar.left == pytest.approx(1.0 - 0.3)
        assert bar.right == pytest.approx(1.0 + 0.3)

    def test_spec_and_options_merge(self):
        base = ViolinSpec(face_alpha=0.2, show_legend=False)
        res = violinplot(self.data, base, ax=_ax(), estimator=tent_estimator, show_points=False)
        assert res.legend is None
        assert res.drawn.point_artists == []
