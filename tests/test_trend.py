import random

import pytest

from app.trend import TREND_SLOPE_THRESHOLD, analyze_trend


def series(make_reading, values, start_day=10):
    return [make_reading(f"2024-01-{start_day + i:02d}", v) for i, v in enumerate(values)]


@pytest.mark.parametrize("threshold", [0.0, 0.3, 1.0])
def test_insufficient_history_returns_none(make_reading, threshold):
    assert analyze_trend([], threshold) is None
    assert analyze_trend([make_reading("2024-01-15", 0.5)], threshold) is None


def test_two_readings_are_enough(make_reading):
    assert analyze_trend(series(make_reading, [0.4, 0.5]), 0.3) is not None


def test_basic_statistics(make_reading):
    result = analyze_trend(series(make_reading, [0.3, 0.5, 0.7]), 0.3)
    assert result.avg_moisture == pytest.approx(0.5)
    assert result.min_moisture == 0.3
    assert result.max_moisture == 0.7
    # population std of (0.3, 0.5, 0.7)
    assert result.volatility == pytest.approx((0.08 / 3) ** 0.5)


def test_constant_series_has_zero_volatility(make_reading):
    result = analyze_trend(series(make_reading, [0.5, 0.5, 0.5]), 0.3)
    assert result.volatility == 0
    assert result.direction == "stable"


def test_direction_up_and_down(make_reading):
    up = analyze_trend(series(make_reading, [0.2, 0.3, 0.4, 0.5, 0.6, 0.7]), 0.3)
    down = analyze_trend(series(make_reading, [0.7, 0.6, 0.5, 0.4, 0.3, 0.2]), 0.3)
    assert up.direction == "up"
    assert down.direction == "down"


def test_small_wobble_is_stable(make_reading):
    result = analyze_trend(series(make_reading, [0.5, 0.501, 0.499, 0.5]), 0.3)
    assert result.direction == "stable"


def test_slope_sensitivity_constant():
    # tuned by hand; changing it changes every up/down call the UI shows
    assert TREND_SLOPE_THRESHOLD == 0.005


def test_slope_just_above_sensitivity_is_up(make_reading):
    # step of 0.006 per reading -> slope 0.006
    values = [0.4 + 0.006 * i for i in range(5)]
    assert analyze_trend(series(make_reading, values), 0.3).direction == "up"


def test_slope_just_below_sensitivity_is_stable(make_reading):
    values = [0.4 + 0.004 * i for i in range(5)]
    assert analyze_trend(series(make_reading, values), 0.3).direction == "stable"


def test_input_order_does_not_matter(make_reading):
    readings = [
        make_reading("2024-01-15", 0.7),
        make_reading("2024-01-10", 0.2),
        make_reading("2024-01-12", 0.4),
        make_reading("2024-01-13", 0.5),
        make_reading("2024-01-11", 0.35),
    ]
    baseline = analyze_trend(readings, 0.3)
    assert baseline.direction == "up"

    rng = random.Random(7)
    for _ in range(10):
        shuffled = readings[:]
        rng.shuffle(shuffled)
        assert analyze_trend(shuffled, 0.3) == baseline


def test_change_percent(make_reading):
    assert analyze_trend(series(make_reading, [0.4, 0.6]), 0.3).change_percent == pytest.approx(50)
    assert analyze_trend(series(make_reading, [0.6, 0.3]), 0.3).change_percent == pytest.approx(-50)


def test_change_percent_with_zero_first_reading(make_reading):
    assert analyze_trend(series(make_reading, [0.0, 0.5]), 0.3).change_percent == 0


def test_change_percent_uses_chronological_ends(make_reading):
    readings = [make_reading("2024-01-15", 0.6), make_reading("2024-01-14", 0.4)]
    assert analyze_trend(readings, 0.3).change_percent == pytest.approx(50)


def test_threshold_counts(make_reading):
    result = analyze_trend(series(make_reading, [0.2, 0.4, 0.5]), 0.3)
    assert result.days_above_threshold == 2
    assert result.days_below_threshold == 1


def test_threshold_boundary_counts_as_above(make_reading):
    result = analyze_trend(series(make_reading, [0.3, 0.3]), 0.3)
    assert result.days_above_threshold == 2
    assert result.days_below_threshold == 0


def test_all_below_threshold(make_reading):
    result = analyze_trend(series(make_reading, [0.1, 0.2]), 0.3)
    assert (result.days_above_threshold, result.days_below_threshold) == (0, 2)


@pytest.mark.parametrize("threshold", [0.0, 0.25, 0.5, 0.75, 1.0])
def test_threshold_counts_cover_every_reading(make_reading, threshold):
    values = [0.0, 0.25, 0.4, 0.5, 0.75, 0.9, 1.0]
    result = analyze_trend(series(make_reading, values), threshold)
    assert result.days_above_threshold + result.days_below_threshold == len(values)


def test_prediction_follows_trend(make_reading):
    up = analyze_trend(series(make_reading, [0.4, 0.5, 0.6, 0.7]), 0.3)
    down = analyze_trend(series(make_reading, [0.7, 0.6, 0.5, 0.4]), 0.3)
    assert up.prediction > 0.7
    assert up.prediction == pytest.approx(0.8)
    assert down.prediction < 0.4


def test_prediction_is_clamped(make_reading):
    high = analyze_trend(series(make_reading, [0.8, 0.95, 1.0]), 0.3)
    low = analyze_trend(series(make_reading, [0.15, 0.05, 0.0]), 0.3)
    assert high.prediction == 1.0
    assert low.prediction == 0.0


def test_repeat_calls_are_identical(make_reading):
    readings = series(make_reading, [0.31, 0.42, 0.38, 0.55, 0.47])
    first = analyze_trend(readings, 0.4)
    second = analyze_trend(readings, 0.4)
    assert first.model_dump_json() == second.model_dump_json()
