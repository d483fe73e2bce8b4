from __future__ import annotations

import datetime as dt
import logging
import os
from collections import OrderedDict
from typing import List, Optional, Tuple

import httpx

from .schemas import DailyRainForecast, WeatherForecast

logger = logging.getLogger(__name__)

OPENWEATHER_KEY = os.environ.get("OPENWEATHER_KEY")
OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/forecast"

# 3-hour steps covering the next 24h
STEPS_PER_DAY = 8


def weather_configured() -> bool:
    return bool(OPENWEATHER_KEY)


async def fetch_forecast(lat: float, lon: float, client: Optional[httpx.AsyncClient] = None) -> dict:
    """Raw 5-day / 3-hour forecast. Raises httpx.HTTPError on transport or status errors."""
    if not OPENWEATHER_KEY:
        raise RuntimeError("OPENWEATHER_KEY not set")
    params = {"lat": lat, "lon": lon, "appid": OPENWEATHER_KEY, "units": "metric"}

    if client is None:
        async with httpx.AsyncClient(timeout=15) as own:
            r = await own.get(OPENWEATHER_URL, params=params)
    else:
        r = await client.get(OPENWEATHER_URL, params=params)
    r.raise_for_status()
    return r.json()


def _step_rain(step: dict) -> float:
    return float((step.get("rain") or {}).get("3h", 0.0) or 0.0)


def _step_date(step: dict, utc_offset_s: int = 0) -> dt.date:
    # calendar day at the field, not in UTC
    return dt.datetime.fromtimestamp(step["dt"] + utc_offset_s, tz=dt.timezone.utc).date()


def summarize_forecast(data: dict) -> Tuple[Optional[WeatherForecast], List[DailyRainForecast]]:
    """Collapse forecast steps into the next-24h outlook and per-day rain."""
    steps = data.get("list", []) or []
    if not steps:
        return None, []

    head = steps[:STEPS_PER_DAY]
    temps = [s["main"]["temp"] for s in head]
    hums = [s["main"]["humidity"] for s in head]
    today = WeatherForecast(
        rain_probability=max(float(s.get("pop", 0.0)) for s in head),
        expected_rain_mm=round(sum(_step_rain(s) for s in head), 1),
        temperature=round(sum(temps) / len(temps), 1),
        humidity=round(sum(hums) / len(hums), 1),
    )

    # OpenWeatherMap reports the location's shift from UTC in seconds
    utc_offset_s = int((data.get("city") or {}).get("timezone", 0) or 0)

    days: "OrderedDict[dt.date, dict]" = OrderedDict()
    for s in steps:
        d = days.setdefault(_step_date(s, utc_offset_s), {"pop": 0.0, "rain": 0.0})
        d["pop"] = max(d["pop"], float(s.get("pop", 0.0)))
        d["rain"] += _step_rain(s)

    daily = [
        DailyRainForecast(date=day, rain_probability=v["pop"], expected_rain_mm=round(v["rain"], 1))
        for day, v in days.items()
    ]
    logger.debug("forecast summarized: %d steps, %d days", len(steps), len(daily))
    return today, daily


async def get_field_weather(
    lat: Optional[float], lon: Optional[float], client: Optional[httpx.AsyncClient] = None
) -> Tuple[Optional[WeatherForecast], List[DailyRainForecast]]:
    """Forecast for a field, or (None, []) when it can't be had."""
    if lat is None or lon is None or not weather_configured():
        return None, []
    try:
        data = await fetch_forecast(lat, lon, client=client)
    except httpx.HTTPError as e:
        logger.warning("weather unavailable for (%.4f, %.4f): %s", lat, lon, e)
        return None, []
    except ValueError as e:
        logger.warning("weather response for (%.4f, %.4f) is not JSON: %s", lat, lon, e)
        return None, []

    try:
        return summarize_forecast(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("malformed forecast for (%.4f, %.4f): %r", lat, lon, e)
        return None, []
