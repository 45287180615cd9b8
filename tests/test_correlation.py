"""Tests for returns, alignment and the correlation engine.

Covers:
1. Simple returns and date alignment
2. Pearson edge cases (mismatch, empty, zero variance)
3. Cross-correlation lag convention and symmetry
4. Lead/lag selection including the first-wins tie-break
5. Rolling correlation and beta
6. The two-stock report and benchmark reactions
"""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from marketlens.core.exceptions import InvalidParameterError, PreconditionError
from marketlens.correlation import (
    LagCorrelation,
    align_by_date,
    analyze_benchmark_moves,
    analyze_stock_correlation,
    beta,
    compute_returns,
    correlation_strength,
    cross_correlation,
    find_leading_stock,
    pearson,
    rolling_correlation,
)
from marketlens.correlation.config import CorrelationConfig


def _random_walk(seed: int, n: int = 120) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return 100.0 * np.cumprod(1 + rng.normal(0, 0.01, n))


# ===========================================================================
# RETURNS & ALIGNMENT
# ===========================================================================


class TestComputeReturns:
    """Simple daily returns."""

    def test_length_and_values(self, points_factory):
        closes = [100.0, 110.0, 99.0, 99.0, 120.0]
        returns = compute_returns(points_factory(closes))

        assert len(returns) == len(closes) - 1
        for i, r in enumerate(returns, start=1):
            expected = (closes[i] - closes[i - 1]) / closes[i - 1]
            assert r.value == pytest.approx(expected)

    def test_input_order_does_not_matter(self, points_factory):
        records = points_factory([10.0, 11.0, 12.0])
        forward = compute_returns(records)
        backward = compute_returns(list(reversed(records)))
        assert [r.value for r in forward] == [r.value for r in backward]

    def test_fewer_than_two_points(self, points_factory):
        assert compute_returns([]) == []
        assert compute_returns(points_factory([5.0])) == []

    def test_zero_previous_close_is_skipped(self, points_factory):
        returns = compute_returns(points_factory([10.0, 0.0, 5.0, 6.0]))
        values = [r.value for r in returns]
        assert len(values) == 2
        assert values[0] == pytest.approx(-1.0)
        assert values[1] == pytest.approx(0.2)
        assert all(np.isfinite(values))

    def test_to_dict_uses_return_key(self, points_factory):
        record = compute_returns(points_factory([1.0, 2.0]))[0].to_dict()
        assert record["return"] == pytest.approx(1.0)
        assert "date" in record


class TestAlignByDate:
    """Intersection of two return series."""

    def test_equal_lengths_bounded_by_shorter(self, points_factory):
        a = compute_returns(points_factory(range(1, 30)))
        b = compute_returns(points_factory(range(1, 20), start=date(2023, 1, 9)))
        aligned = align_by_date(a, b)

        assert len(aligned.returns1) == len(aligned.returns2) == len(aligned.dates)
        assert len(aligned) <= min(len(a), len(b))
        assert list(aligned.dates) == sorted(aligned.dates)

    def test_order_independent(self, points_factory):
        a = compute_returns(points_factory(range(1, 15)))
        b = compute_returns(points_factory(range(5, 19)))
        forward = align_by_date(a, b)
        backward = align_by_date(list(reversed(a)), list(reversed(b)))
        assert forward.dates == backward.dates
        assert np.array_equal(forward.returns1, backward.returns1)

    def test_no_overlap_is_empty(self, points_factory):
        a = compute_returns(points_factory(range(1, 10), start=date(2020, 1, 1)))
        b = compute_returns(points_factory(range(1, 10), start=date(2022, 1, 3)))
        aligned = align_by_date(a, b)
        assert aligned.is_empty
        assert len(aligned.returns1) == 0


# ===========================================================================
# PEARSON & STRENGTH
# ===========================================================================


class TestPearson:
    """Pearson coefficient and its neutral outcomes."""

    def test_identical_series_is_one(self):
        x = np.array([0.01, -0.02, 0.03, 0.005, -0.01])
        assert pearson(x, x) == pytest.approx(1.0)

    def test_inverse_series_is_minus_one(self):
        x = np.array([1.0, 2.0, 3.0, 4.0])
        assert pearson(x, -x) == pytest.approx(-1.0)

    def test_symmetric(self):
        x = _random_walk(1)
        y = _random_walk(2)
        assert pearson(x, y) == pytest.approx(pearson(y, x))

    def test_mismatched_lengths_return_zero(self):
        assert pearson([1.0, 2.0, 3.0], [1.0, 2.0]) == 0.0

    def test_empty_returns_zero(self):
        assert pearson([], []) == 0.0

    def test_zero_variance_returns_zero(self):
        assert pearson([1.0, 1.0, 1.0], [1.0, 2.0, 3.0]) == 0.0

    def test_non_finite_returns_zero(self):
        assert pearson([1.0, np.nan, 3.0], [1.0, 2.0, 3.0]) == 0.0

    def test_bounded(self):
        for seed in range(5):
            r = pearson(_random_walk(seed), _random_walk(seed + 10))
            assert -1.0 <= r <= 1.0


class TestCorrelationStrength:
    @pytest.mark.parametrize(
        "value,label",
        [
            (0.0, "weak"),
            (0.29, "weak"),
            (0.3, "moderate"),
            (-0.49, "moderate"),
            (0.5, "strong"),
            (0.69, "strong"),
            (0.7, "very strong"),
            (-0.95, "very strong"),
        ],
    )
    def test_buckets(self, value, label):
        assert correlation_strength(value) == label


# ===========================================================================
# CROSS-CORRELATION & LEAD/LAG
# ===========================================================================


class TestCrossCorrelation:
    """Lagged correlation over [-max_lag, max_lag]."""

    def test_entry_count_and_order(self):
        x = _random_walk(3)
        results = cross_correlation(x, _random_walk(4), max_lag=5)
        assert len(results) == 11
        assert [r.lag for r in results] == list(range(-5, 6))

    def test_lag_zero_equals_pearson(self):
        x = _random_walk(5)
        y = _random_walk(6)
        lag0 = next(r for r in cross_correlation(x, y, 4) if r.lag == 0)
        assert lag0.correlation == pytest.approx(pearson(x, y))

    def test_identical_series_symmetric_with_peak_at_zero(self):
        x = np.diff(np.log(_random_walk(7, 200)))
        results = {r.lag: r.correlation for r in cross_correlation(x, x, 10)}

        assert results[0] == pytest.approx(1.0)
        for lag in range(1, 11):
            assert results[lag] == pytest.approx(results[-lag])
            assert results[lag] < results[0]

    def test_positive_lag_pairs_later_x_with_earlier_y(self):
        # x repeats y two days later
        rng = np.random.default_rng(8)
        y = rng.normal(0, 1, 150)
        x = np.concatenate([rng.normal(0, 1, 2), y[:-2]])
        results = cross_correlation(x, y, 5)
        best = max(results, key=lambda r: abs(r.correlation))
        assert best.lag == 2

    def test_mismatched_lengths_raise(self):
        with pytest.raises(PreconditionError):
            cross_correlation([1.0, 2.0, 3.0], [1.0, 2.0], 1)

    def test_negative_max_lag_raises(self):
        with pytest.raises(InvalidParameterError):
            cross_correlation([1.0, 2.0], [1.0, 2.0], -1)

    def test_lag_beyond_length_is_zero(self):
        results = cross_correlation([1.0, 2.0, 4.0], [2.0, 1.0, 3.0], max_lag=5)
        far = [r for r in results if abs(r.lag) >= 3]
        assert all(r.correlation == 0.0 for r in far)


class TestFindLeadingStock:
    """Best lag selection and interpretation."""

    def test_positive_lag_first_symbol_leads(self):
        lags = [LagCorrelation(-1, 0.1), LagCorrelation(0, 0.2), LagCorrelation(3, 0.6)]
        result = find_leading_stock(lags, "AAA", "BBB")
        assert result.lag == 3
        assert result.leader == "AAA"
        assert result.follower == "BBB"
        assert result.lead_days == 3
        assert "AAA leads BBB by 3 days" in result.interpretation

    def test_negative_lag_second_symbol_leads(self):
        lags = [LagCorrelation(-2, -0.8), LagCorrelation(0, 0.5)]
        result = find_leading_stock(lags, "AAA", "BBB")
        assert result.leader == "BBB"
        assert result.strength == "very strong"
        assert "negative" in result.interpretation

    def test_zero_lag_has_no_leader(self):
        result = find_leading_stock([LagCorrelation(0, 0.4)], "AAA", "BBB")
        assert result.leader is None
        assert "No clear leader" in result.interpretation

    def test_tie_keeps_first_encountered(self):
        lags = [LagCorrelation(-2, 0.5), LagCorrelation(0, -0.5), LagCorrelation(2, 0.5)]
        assert find_leading_stock(lags, "A", "B").lag == -2

    def test_empty_input(self):
        result = find_leading_stock([], "A", "B")
        assert result.lag == 0
        assert result.correlation == 0.0


class TestRollingCorrelation:
    def test_length_and_dates(self):
        x = _random_walk(9, 50)
        y = _random_walk(10, 50)
        dates = [date(2024, 1, 1)] * 49 + [date(2024, 3, 1)]
        points = rolling_correlation(x, y, dates, window=20)

        assert len(points) == 50 - 20 + 1
        assert points[-1].date == date(2024, 3, 1)
        assert points[0].correlation == pytest.approx(pearson(x[:20], y[:20]))

    def test_shorter_than_window_is_empty(self):
        assert rolling_correlation([1.0, 2.0], [2.0, 1.0], [date(2024, 1, 1)] * 2, window=5) == []

    def test_mismatched_lengths_raise(self):
        with pytest.raises(PreconditionError):
            rolling_correlation([1.0, 2.0], [1.0], [date(2024, 1, 1)] * 2, window=1)

    def test_window_must_be_positive(self):
        with pytest.raises(InvalidParameterError):
            rolling_correlation([1.0], [1.0], [date(2024, 1, 1)], window=0)


class TestBeta:
    def test_scaled_series(self):
        market = np.array([0.01, -0.02, 0.015, 0.0, 0.03])
        assert beta(2 * market, market) == pytest.approx(2.0)

    def test_flat_market_is_zero(self):
        assert beta([0.1, 0.2, 0.3], [0.0, 0.0, 0.0]) == 0.0

    def test_mismatch_is_zero(self):
        assert beta([0.1, 0.2], [0.1]) == 0.0


# ===========================================================================
# REPORTS
# ===========================================================================


class TestAnalyzeStockCorrelation:
    """Full two-stock record."""

    def test_report_shape(self, points_factory):
        a = points_factory(_random_walk(11, 200))
        b = points_factory(_random_walk(12, 200))
        report = analyze_stock_correlation(a, b, "AAA", "BBB", max_lag=5, window=20)

        assert report["symbol1"] == "AAA"
        assert report["data_points"] == 199
        assert len(report["cross_correlation"]) == 11
        assert len(report["rolling_correlation"]) == 199 - 20 + 1
        assert report["correlation"]["strength"] in {"Weak", "Moderate", "Strong", "Very Strong"}
        assert set(report["summary"]) == {"avg_return1", "avg_return2", "volatility1", "volatility2"}

    def test_identical_series_correlate_perfectly(self, points_factory):
        a = points_factory(_random_walk(13, 100))
        report = analyze_stock_correlation(a, a, "AAA", "AAA", max_lag=3, window=10)
        assert report["correlation"]["value"] == pytest.approx(1.0)
        assert report["lead_lag"]["best_lag"] == 0
        assert report["beta"] == pytest.approx(1.0)

    def test_empty_series_is_error_record(self, points_factory):
        report = analyze_stock_correlation([], points_factory([1, 2, 3]), "AAA", "BBB")
        assert report == {"error": "No data available for AAA"}

    def test_no_overlap_is_error_record(self, points_factory):
        a = points_factory(range(1, 20), start=date(2015, 1, 1))
        b = points_factory(range(1, 20), start=date(2023, 1, 2))
        report = analyze_stock_correlation(a, b, "AAA", "BBB", years=20)
        assert "error" in report
        assert "overlapping" in report["error"]

    def test_config_overrides(self, points_factory):
        config = CorrelationConfig(max_lag=2, rolling_window=5)
        a = points_factory(_random_walk(14, 40))
        b = points_factory(_random_walk(15, 40))
        report = analyze_stock_correlation(a, b, "A", "B", config=config)
        assert len(report["cross_correlation"]) == 5


class TestBenchmarkMoves:
    """Stock reactions to large benchmark days."""

    def test_largest_up_moves_ranked(self, points_factory):
        bench = [100, 101, 110, 108, 109, 120, 119, 118, 117, 116, 115, 114, 113, 112]
        stock = [50, 50, 52, 51, 51, 55, 54, 54, 53, 53, 52, 52, 51, 51]
        reactions = analyze_benchmark_moves(points_factory(stock), points_factory(bench), "up", top_n=2)

        assert len(reactions) == 2
        assert reactions[0].benchmark_change > reactions[1].benchmark_change > 0
        assert reactions[0].stock_same_day == pytest.approx((55 - 51) / 51 * 100)
        assert 7 in reactions[0].stock_after
        assert reactions[0].to_dict()["stock_after_1d"] == pytest.approx(round((54 - 55) / 55 * 100, 2))

    def test_down_moves(self, points_factory):
        bench = [100, 90, 95, 96, 97]
        reactions = analyze_benchmark_moves(points_factory(bench), points_factory(bench), "down")
        assert len(reactions) == 1
        assert reactions[0].benchmark_change == pytest.approx(-10.0)

    def test_zero_top_n_returns_nothing(self, points_factory):
        bench = [100, 90, 95, 96, 97]
        assert analyze_benchmark_moves(points_factory(bench), points_factory(bench), "up", top_n=0) == []

    def test_missing_future_horizons_omitted(self, points_factory):
        bench = [100, 100, 100, 120]
        reactions = analyze_benchmark_moves(points_factory(bench), points_factory(bench), "up")
        assert reactions[0].stock_after == {}

    def test_invalid_direction(self, points_factory):
        with pytest.raises(InvalidParameterError):
            analyze_benchmark_moves(points_factory([1, 2]), points_factory([1, 2]), "sideways")
