"""
Soil moisture index from Sentinel-1 VV backscatter.

Higher (less negative) VV means wetter soil. Over bare and sparsely vegetated
fields VV sits roughly between -20 dB (dry) and -8 dB (saturated); values
outside that band are treated as noise and clamped.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterable, List, Optional, Tuple

from .schemas import BackscatterObservation, MoistureReading, MoistureStats

VV_MIN = -20.0  # very dry soil
VV_MAX = -8.0   # saturated soil

# Earth Engine reducers emit this when a scene has no valid pixels over the field
INVALID_BACKSCATTER = -999.0

STATS_TREND_WINDOW = 3
STATS_TREND_DELTA = 0.05


def to_moisture_index(vv_db: float) -> float:
    clamped = max(VV_MIN, min(VV_MAX, vv_db))
    return round((clamped - VV_MIN) / (VV_MAX - VV_MIN), 3)


def dedupe_by_date(readings: Iterable[MoistureReading]) -> List[MoistureReading]:
    """Newest first, one reading per observation date (first one wins)."""
    ordered = sorted(readings, key=lambda r: r.observation_date, reverse=True)
    seen = set()
    out = []
    for r in ordered:
        if r.observation_date in seen:
            continue
        seen.add(r.observation_date)
        out.append(r)
    return out


def readings_from_backscatter(
    observations: Iterable[BackscatterObservation],
    source: str = "sentinel1",
) -> List[MoistureReading]:
    """Normalize raw acquisitions into moisture readings, newest first."""
    readings = [
        MoistureReading(
            observation_date=o.observation_date,
            moisture_index=to_moisture_index(o.vv_mean_db),
            vv_backscatter=round(o.vv_mean_db, 2),
            vh_backscatter=round(o.vh_mean_db, 2) if o.vh_mean_db is not None else None,
            source=source,
        )
        for o in observations
        if o.vv_mean_db != INVALID_BACKSCATTER
    ]
    return dedupe_by_date(readings)


def calculate_moisture_stats(readings: List[MoistureReading]) -> Optional[MoistureStats]:
    if not readings:
        return None

    newest_first = sorted(readings, key=lambda r: r.observation_date, reverse=True)
    values = [r.moisture_index for r in newest_first]
    average = sum(values) / len(values)

    # short-term direction: last few acquisitions against the whole window
    trend = "stable"
    if len(values) >= STATS_TREND_WINDOW:
        recent = values[:STATS_TREND_WINDOW]
        diff = sum(recent) / len(recent) - average
        if diff > STATS_TREND_DELTA:
            trend = "up"
        elif diff < -STATS_TREND_DELTA:
            trend = "down"

    return MoistureStats(
        average=round(average, 3),
        min=round(min(values), 3),
        max=round(max(values), 3),
        trend=trend,
        count=len(values),
    )


def get_date_range(days: int = 30, today: Optional[dt.date] = None) -> Tuple[dt.date, dt.date]:
    end = today or dt.date.today()
    return end - dt.timedelta(days=days), end
