from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .schemas import MoistureReading, TrendAnalysis

# Regression slope (moisture index per reading) below which a series is "stable".
TREND_SLOPE_THRESHOLD = 0.005


def analyze_trend(readings: Sequence[MoistureReading], threshold: float) -> Optional[TrendAnalysis]:
    """
    Summarize a moisture series against an alert threshold.

    Returns None with fewer than two readings: there is no history to fit yet.
    Readings may arrive in any order; they are put in date order first so the
    result only depends on the set of readings.
    """
    if len(readings) < 2:
        return None

    ordered = sorted(readings, key=lambda r: (r.observation_date, r.moisture_index))
    y = np.array([r.moisture_index for r in ordered], dtype="float64")
    n = y.size

    avg = float(y.mean())
    volatility = float(y.std())  # population std (ddof=0)

    # OLS slope of moisture against reading index 0..n-1
    x = np.arange(n, dtype="float64")
    dx = x - (n - 1) / 2
    denom = float(np.sum(dx ** 2))
    slope = float(np.sum(dx * (y - avg)) / denom) if denom else 0.0

    direction = "stable"
    if slope > TREND_SLOPE_THRESHOLD:
        direction = "up"
    elif slope < -TREND_SLOPE_THRESHOLD:
        direction = "down"

    first, last = float(y[0]), float(y[-1])
    change_percent = (last - first) / first * 100 if first != 0 else 0.0

    above = int(np.count_nonzero(y >= threshold))

    return TrendAnalysis(
        direction=direction,
        change_percent=change_percent,
        avg_moisture=avg,
        min_moisture=float(y.min()),
        max_moisture=float(y.max()),
        volatility=volatility,
        days_above_threshold=above,
        days_below_threshold=n - above,
        prediction=min(1.0, max(0.0, last + slope)),
    )
