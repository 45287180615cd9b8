"""Tests for regression channels.

Covers:
1. OLS windows and channel construction
2. Rolling channels with volume-weighted partitions
3. Touch alignment (centring, edge-only touches)
4. Lookback/end-offset grid search, threaded and async
5. Multiple channels and manual ranges
6. Volume profile, confluence and zone volume
7. The channel entry point
"""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from marketlens.channels import (
    ChannelPoint,
    analyze_channel,
    analyze_channel_confluence,
    build_channel,
    calculate_volume_profile,
    compute_touch_alignment,
    find_multiple_channels,
    fit_linear_regression,
    fit_manual_channel,
    rolling_std_dev_channel,
    sample_grid,
    simulate_lookback,
    simulate_lookback_async,
    sma_period_for_chart,
    zone_volume_distribution,
)
from marketlens.channels.config import ChannelConfig
from marketlens.channels.touch import smooth_prices
from marketlens.core.exceptions import (
    InsufficientDataError,
    InvalidParameterError,
    PreconditionError,
)


def _closes(points: list[dict]) -> np.ndarray:
    return np.array([p["close"] for p in points], dtype=float)


def _alternating(n: int = 50, amplitude: float = 1.0) -> np.ndarray:
    return 100.0 + amplitude * np.where(np.arange(n) % 2 == 0, -1.0, 1.0)


@pytest.fixture
def fast_config():
    """Coarse grid to keep the search quick."""
    return ChannelConfig(grid_samples=10)


# ===========================================================================
# REGRESSION WINDOWS
# ===========================================================================


class TestFitLinearRegression:
    """Trailing-window OLS."""

    def test_perfect_line(self, linear_points):
        fit = fit_linear_regression(_closes(linear_points), lookback=50)

        assert fit.start == 150
        assert fit.end == 200
        assert fit.slope == pytest.approx(0.5)
        assert fit.intercept == pytest.approx(175.0)
        assert fit.std_dev == 0.0

    def test_end_offset_shifts_window(self, linear_points):
        fit = fit_linear_regression(_closes(linear_points), lookback=50, end_offset=10)
        assert (fit.start, fit.end) == (140, 190)
        assert fit.n == 50

    def test_window_larger_than_series(self, linear_points):
        assert fit_linear_regression(_closes(linear_points), lookback=250) is None
        assert fit_linear_regression(_closes(linear_points), lookback=150, end_offset=60) is None

    def test_negative_end_offset_raises(self, linear_points):
        with pytest.raises(InvalidParameterError):
            fit_linear_regression(_closes(linear_points), lookback=50, end_offset=-1)

    def test_sample_std_of_residuals(self):
        values = np.array([1.0, 3.0, 2.0, 4.0])
        fit = fit_linear_regression(values, lookback=4)
        expected = np.sqrt(np.sum(fit.residuals**2) / 3)
        assert fit.std_dev == pytest.approx(expected)
        assert np.sum(fit.residuals) == pytest.approx(0.0, abs=1e-12)


class TestBuildChannel:
    """Single-window channel with partition levels."""

    def test_points_outside_window_have_no_channel(self, noisy_points):
        result = build_channel(noisy_points, lookback=100, std_multiplier=2.0)

        assert len(result.points) == 400
        assert not result.points[299].in_channel
        assert result.points[300].in_channel
        assert result.points[-1].in_channel
        assert result.points[0].to_dict()["center_line"] is None

    def test_bands_ordered_inside_bounds(self, noisy_points):
        result = build_channel(noisy_points, lookback=100, std_multiplier=2.0)
        point = result.points[-1]

        assert len(point.bands) == 9
        levels = [point.lower_bound, *point.bands, point.upper_bound]
        assert levels == sorted(levels)
        assert point.upper_bound - point.center_line == pytest.approx(2.0 * result.model.std_dev)

    def test_end_offset_leaves_latest_points_out(self, noisy_points):
        result = build_channel(noisy_points, lookback=100, end_offset=50)
        assert not result.points[-1].in_channel
        assert result.points[349].in_channel
        assert not result.points[249].in_channel

    def test_custom_band_count(self, noisy_points):
        result = build_channel(noisy_points, lookback=60, channel_bands=4)
        assert len(result.points[-1].bands) == 3

    def test_intercept_shift_widens_channel(self, noisy_points):
        base = build_channel(noisy_points, lookback=100)
        shifted = build_channel(noisy_points, lookback=100, intercept_shift=1.0)

        assert shifted.model.std_dev > base.model.std_dev
        assert shifted.points[-1].center_line == pytest.approx(base.points[-1].center_line + 1.0)

    def test_window_too_large_raises(self, noisy_points):
        with pytest.raises(InsufficientDataError):
            build_channel(noisy_points, lookback=500)

    def test_linear_series_has_zero_width(self, linear_points):
        result = build_channel(linear_points, lookback=200)
        point = result.points[-1]
        assert result.model.std_dev == 0.0
        assert point.upper_bound == point.lower_bound == pytest.approx(point.price)


class TestRollingChannel:
    """Per-point trailing channels."""

    def test_warmup_points_are_empty(self, noisy_points):
        result = rolling_std_dev_channel(noisy_points, period=20)

        assert len(result) == 400
        assert all(not p.in_channel for p in result[:19])
        assert all(p.in_channel for p in result[19:])
        assert result[19].std_dev is not None

    def test_volume_levels_within_bounds(self, noisy_points):
        result = rolling_std_dev_channel(noisy_points, period=30, std_multiplier=2.0)
        for point in result[29:]:
            assert len(point.bands) == 9
            assert all(point.lower_bound <= b <= point.upper_bound for b in point.bands)
            assert list(point.bands) == sorted(point.bands)

    def test_linear_series_tracks_price(self, linear_points):
        result = rolling_std_dev_channel(linear_points, period=10)
        point = result[-1]
        assert point.std_dev == 0.0
        assert point.center_line == pytest.approx(point.price)

    def test_without_volume_levels_are_even(self, linear_points):
        point = rolling_std_dev_channel(linear_points[:50], period=10, std_multiplier=1.0)[-1]
        assert point.bands == pytest.approx(tuple([point.center_line] * 9))

    def test_period_must_be_at_least_two(self, linear_points):
        with pytest.raises(InvalidParameterError):
            rolling_std_dev_channel(linear_points, period=1)


# ===========================================================================
# TOUCH ALIGNMENT
# ===========================================================================


class TestTouchAlignment:
    """Centred channels and edge touches."""

    def test_linear_series_touches_both_bounds(self, linear_points):
        alignment = compute_touch_alignment(_closes(linear_points), lookback=200)

        assert alignment.std_dev == 0.0
        assert alignment.optimal_delta == 0.0
        assert alignment.touches_upper
        assert alignment.touches_lower
        assert alignment.coverage_count == 200

    def test_extremes_are_symmetric_after_shift(self, noisy_points):
        values = _closes(noisy_points)
        alignment = compute_touch_alignment(values, lookback=120)
        fit = fit_linear_regression(values, lookback=120)

        adjusted = fit.residuals - alignment.intercept_shift
        assert adjusted.max() == pytest.approx(-adjusted.min())
        assert alignment.extreme_magnitude == pytest.approx(adjusted.max())
        assert alignment.optimal_delta * alignment.std_dev == pytest.approx(alignment.extreme_magnitude)
        assert alignment.coverage_count == alignment.total_points == 120

    def test_turns_at_the_edges_count(self):
        alignment = compute_touch_alignment(_alternating(), lookback=50, chart_period="7D")
        assert alignment.touches_upper
        assert alignment.touches_lower

    def test_mid_window_spike_does_not_count(self):
        values = _alternating(amplitude=0.1)
        values[25] = 103.0
        alignment = compute_touch_alignment(values, lookback=50, chart_period="7D")
        assert not alignment.touches_upper
        assert not alignment.touches_lower

    def test_window_that_does_not_fit(self):
        assert compute_touch_alignment(_alternating(10), lookback=20) is None

    def test_boundary_fraction_validated(self):
        with pytest.raises(InvalidParameterError):
            compute_touch_alignment(_alternating(), lookback=50, boundary_fraction=0.0)

    @pytest.mark.parametrize(
        "period,expected",
        [("7D", 1), ("3M", 5), ("5Y", 30), ("unknown", 3), (None, 3)],
    )
    def test_smoothing_period(self, period, expected):
        assert sma_period_for_chart(period) == expected

    def test_smoothing_keeps_raw_warmup(self):
        smoothed = smooth_prices(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), 3)
        assert smoothed.tolist() == pytest.approx([1.0, 2.0, 2.0, 3.0, 4.0])

    def test_smoothing_period_one_is_identity(self):
        values = np.array([3.0, 1.0, 2.0])
        assert smooth_prices(values, 1).tolist() == [3.0, 1.0, 2.0]


# ===========================================================================
# GRID SEARCH
# ===========================================================================


class TestSampleGrid:
    def test_small_range_is_complete(self):
        assert sample_grid(0, 5, 50) == [0, 1, 2, 3, 4, 5]

    def test_large_range_is_sampled(self):
        grid = sample_grid(20, 400, 10)
        assert len(grid) == 10
        assert grid[0] == 20
        assert grid[-1] == 400

    def test_empty_range(self):
        assert sample_grid(10, 5, 50) == []


class TestSimulateLookback:
    """Grid search over lookback and end offset."""

    def test_result_within_grid_bounds(self, noisy_points, fast_config):
        values = _closes(noisy_points)
        report = simulate_lookback(values, config=fast_config)
        best = report.overall

        assert 20 <= best.optimal_lookback <= 400
        assert 0 <= best.optimal_end_offset <= 80
        assert best.optimal_lookback + best.optimal_end_offset <= 400
        assert best.optimal_std_multiplier > 0
        assert best.data_points == 400
        assert best.evaluations > 0

    def test_deterministic(self, noisy_points, fast_config):
        values = _closes(noisy_points)
        assert simulate_lookback(values, config=fast_config) == simulate_lookback(values, config=fast_config)

    def test_threads_match_sequential(self, noisy_points, fast_config):
        values = _closes(noisy_points)
        sequential = simulate_lookback(values, config=fast_config, max_workers=1)
        threaded = simulate_lookback(values, config=fast_config, max_workers=4)
        assert threaded == sequential

    def test_recent_regime_searched(self, noisy_points, fast_config):
        report = simulate_lookback(_closes(noisy_points), config=fast_config)
        assert report.recent is not None
        assert report.recent.data_points == 100
        assert report.recent.optimal_lookback <= 100

    def test_recent_skipped_when_too_short(self, fast_config):
        report = simulate_lookback(_alternating(40), config=fast_config)
        assert report.recent is None

    def test_progress_reported_per_row(self, noisy_points, fast_config):
        calls = []
        simulate_lookback(_closes(noisy_points), config=fast_config, progress=lambda d, t: calls.append((d, t)))

        # ten lookback rows overall, ten for the recent quarter
        assert len(calls) == 20
        assert calls[9] == (10, 10)
        assert calls[-1] == (10, 10)

    def test_linear_series_uses_full_window(self, linear_points, fast_config):
        best = simulate_lookback(_closes(linear_points), config=fast_config).overall

        assert best.optimal_lookback == 200
        assert best.optimal_end_offset == 0
        assert best.near_center_count == 200
        assert best.optimal_std_multiplier == fast_config.std_multiplier
        assert best.touches_upper and best.touches_lower

    def test_too_short_raises(self, fast_config):
        with pytest.raises(InsufficientDataError):
            simulate_lookback(np.arange(10, dtype=float), config=fast_config)

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, noisy_points, fast_config):
        values = _closes(noisy_points)
        report = await simulate_lookback_async(values, config=fast_config)
        assert report == simulate_lookback(values, config=fast_config)


# ===========================================================================
# MULTIPLE & MANUAL CHANNELS
# ===========================================================================


class TestMultipleChannels:
    """Greedy non-overlapping channel discovery."""

    def test_segments_ordered_and_sized(self, noisy_points):
        segments = find_multiple_channels(noisy_points)

        assert len(segments) <= 10
        starts = [s.start_idx for s in segments]
        assert starts == sorted(starts)
        for segment in segments:
            assert 20 <= segment.lookback <= 200
            assert segment.score >= 0.15
            assert segment.std_dev > 0
            assert segment.start_date <= segment.end_date

    def test_segment_model_end_offset(self, noisy_points):
        segments = find_multiple_channels(noisy_points)
        for segment in segments:
            model = segment.model(400)
            assert model.end_offset == 399 - segment.end_idx
            assert model.lookback == segment.lookback

    def test_zero_noise_series_has_no_channels(self, linear_points):
        assert find_multiple_channels(linear_points) == []

    def test_empty_input(self):
        assert find_multiple_channels([]) == []


class TestManualChannel:
    """Touch-aligned channel on a chosen range."""

    def test_channel_covers_selected_range(self, noisy_points):
        manual = fit_manual_channel(noisy_points, 100, 199)
        points = manual.channel.points

        assert manual.alignment.lookback == 100
        assert not points[99].in_channel
        assert points[100].in_channel
        assert points[199].in_channel
        assert not points[200].in_channel

    def test_bounds_pass_through_extremes(self, noisy_points):
        manual = fit_manual_channel(noisy_points, 100, 199)
        point = manual.channel.points[150]

        assert manual.channel.model.std_multiplier == pytest.approx(manual.alignment.optimal_delta)
        assert point.upper_bound - point.center_line == pytest.approx(manual.alignment.extreme_magnitude)

    def test_zero_noise_range_keeps_default_multiplier(self, linear_points):
        manual = fit_manual_channel(linear_points, 0, 49, config=ChannelConfig(std_multiplier=2.5))
        assert manual.channel.model.std_multiplier == 2.5

    @pytest.mark.parametrize("start,end", [(50, 10), (-1, 10), (0, 200)])
    def test_invalid_range(self, linear_points, start, end):
        with pytest.raises(InvalidParameterError):
            fit_manual_channel(linear_points, start, end)

    def test_single_point_range(self, linear_points):
        with pytest.raises(InsufficientDataError):
            fit_manual_channel(linear_points, 5, 5)


# ===========================================================================
# VOLUME PROFILE
# ===========================================================================


def _channel_point(price: float, lower: float = 0.0, upper: float = 10.0) -> ChannelPoint:
    width = upper - lower
    return ChannelPoint(
        date=date(2024, 1, 2),
        price=price,
        center_line=(lower + upper) / 2,
        upper_bound=upper,
        lower_bound=lower,
        bands=tuple(lower + width * b / 10 for b in range(1, 10)),
    )


class TestVolumeProfile:
    """Volume at price."""

    def test_small_profile(self, points_factory):
        points = points_factory([10.0, 20.0, 20.0, 30.0], volumes=[1, 5, 5, 1])
        profile = calculate_volume_profile(points, bins=2)

        assert [b.volume for b in profile.bins] == [1.0, 11.0]
        assert profile.poc.price_level == pytest.approx(25.0)
        assert profile.min_price == 10.0
        assert profile.max_price == 30.0

    def test_volume_conserved(self, noisy_points):
        profile = calculate_volume_profile(noisy_points)
        total = sum(p["volume"] for p in noisy_points)

        assert len(profile.bins) == 70
        assert sum(b.volume for b in profile.bins) == pytest.approx(total)
        assert profile.poc.volume == max(b.volume for b in profile.bins)
        assert all(b.volume > profile.avg_volume + profile.std_dev_volume for b in profile.hvns)
        assert all(0 < b.volume < profile.avg_volume - profile.std_dev_volume for b in profile.lvns)

    def test_flat_or_empty(self, points_factory):
        assert calculate_volume_profile(points_factory([5.0] * 10, volumes=[1] * 10)) is None
        assert calculate_volume_profile([]) is None

    def test_zero_bins_rejected(self, noisy_points):
        with pytest.raises(InvalidParameterError):
            calculate_volume_profile(noisy_points, bins=0)


class TestConfluence:
    def test_bound_near_poc_is_strong(self, points_factory):
        profile = calculate_volume_profile(
            points_factory([10.0, 20.0, 20.0, 30.0], volumes=[1, 5, 5, 1]), bins=2
        )
        states = analyze_channel_confluence([_channel_point(15.0, lower=5.0, upper=25.1)], profile)

        assert states[0].upper_bound_state == "strong"
        assert states[0].lower_bound_state == "neutral"

    def test_missing_channel_or_profile_is_neutral(self):
        bare = ChannelPoint(date=date(2024, 1, 2), price=10.0)
        states = analyze_channel_confluence([bare, _channel_point(5.0)], None)
        assert all(s.upper_bound_state == s.lower_bound_state == "neutral" for s in states)

    def test_zero_lower_bound_still_classified(self, points_factory):
        profile = calculate_volume_profile(
            points_factory([10.0, 20.0, 20.0, 30.0], volumes=[1, 5, 5, 1]), bins=2
        )
        states = analyze_channel_confluence([_channel_point(15.0, lower=0.0, upper=25.1)], profile)
        assert states[0].upper_bound_state == "strong"

    def test_zero_proximity_is_exact(self, points_factory):
        profile = calculate_volume_profile(
            points_factory([10.0, 20.0, 20.0, 30.0], volumes=[1, 5, 5, 1]), bins=2
        )
        states = analyze_channel_confluence(
            [_channel_point(15.0, lower=5.0, upper=25.1)], profile, proximity=0.0
        )
        assert states[0].upper_bound_state == "neutral"


class TestZoneVolume:
    def test_each_point_counted_once(self):
        points = [_channel_point(0.5), _channel_point(9.5), _channel_point(5.0)]
        distribution = zone_volume_distribution(points, [1.0, 1.0, 2.0])

        assert distribution == pytest.approx({0: 25.0, 4: 50.0, 9: 25.0})
        assert sum(distribution.values()) == pytest.approx(100.0)

    def test_outside_prices_ignored(self):
        points = [_channel_point(12.0), _channel_point(3.5)]
        assert zone_volume_distribution(points, [10.0, 5.0]) == pytest.approx({3: 100.0})

    def test_no_volume(self):
        assert zone_volume_distribution([_channel_point(3.0)], [0.0]) == {}

    def test_zero_price_counted(self):
        points = [_channel_point(0.0), _channel_point(5.0)]
        assert zone_volume_distribution(points, [1.0, 1.0]) == pytest.approx({0: 50.0, 4: 50.0})

    def test_length_mismatch_raises(self):
        with pytest.raises(PreconditionError):
            zone_volume_distribution([_channel_point(3.0)], [1.0, 2.0])


# ===========================================================================
# ENTRY POINT
# ===========================================================================


class TestAnalyzeChannel:
    """JSON-ready channel records."""

    def test_optimized_record(self, noisy_points, fast_config):
        result = analyze_channel(noisy_points, symbol="ABC", config=fast_config)
        overall = result["optimization"]["overall"]

        assert result["symbol"] == "ABC"
        assert result["data_points"] == 400
        assert result["model"]["lookback"] == overall["optimal_lookback"]
        assert result["model"]["end_offset"] == overall["optimal_end_offset"]
        assert len(result["points"]) == 400
        assert "volume_profile" in result
        assert len(result["confluence"]) == 400
        assert sum(result["zone_volume"].values()) == pytest.approx(100.0, abs=0.1)

    def test_explicit_parameters(self, noisy_points):
        result = analyze_channel(noisy_points, lookback=50, std_multiplier=1.5, optimize=False)
        assert result["optimization"] is None
        assert result["model"]["lookback"] == 50
        assert result["model"]["std_multiplier"] == 1.5

    def test_without_volume_skips_profile(self, linear_points):
        result = analyze_channel(linear_points, lookback=100, optimize=False)
        assert "volume_profile" not in result

    def test_short_series_is_error_record(self, points_factory):
        result = analyze_channel(points_factory([1, 2, 3, 4, 5]))
        assert result == {"error": "Not enough data for channel optimisation"}

    def test_window_too_large_is_error_record(self, linear_points):
        result = analyze_channel(linear_points, lookback=500, optimize=False)
        assert "error" in result
