"""
Irrigation need and 7-day schedule, after the FAO-56 crop water approach.

Moisture values are fractions in [0, 1]. Water depths are mm over the field,
volumes are liters (mm x ha x 10 000).
"""
from __future__ import annotations

import datetime as dt
import math
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence

from .schemas import (
    CropCoefficients,
    DailyRainForecast,
    IrrigationFactors,
    IrrigationRecommendation,
    ScheduleDay,
    WeatherForecast,
)

DEFAULT_CROP = "other"

CROP_WATER_COEFFICIENTS: Mapping[str, CropCoefficients] = MappingProxyType({
    "wheat": CropCoefficients(initial_kc=0.3, mid_kc=1.15, end_kc=0.25, root_depth_m=1.5, base_water_need_mm_per_day=5.5),
    "winter_wheat": CropCoefficients(initial_kc=0.3, mid_kc=1.15, end_kc=0.25, root_depth_m=1.5, base_water_need_mm_per_day=5.0),
    "maize": CropCoefficients(initial_kc=0.3, mid_kc=1.2, end_kc=0.6, root_depth_m=1.7, base_water_need_mm_per_day=6.5),
    "rapeseed": CropCoefficients(initial_kc=0.35, mid_kc=1.15, end_kc=0.35, root_depth_m=1.5, base_water_need_mm_per_day=5.0),
    "potatoes": CropCoefficients(initial_kc=0.5, mid_kc=1.15, end_kc=0.75, root_depth_m=0.6, base_water_need_mm_per_day=5.5),
    "sugar_beet": CropCoefficients(initial_kc=0.35, mid_kc=1.2, end_kc=0.7, root_depth_m=1.2, base_water_need_mm_per_day=6.0),
    "barley": CropCoefficients(initial_kc=0.3, mid_kc=1.15, end_kc=0.25, root_depth_m=1.2, base_water_need_mm_per_day=5.0),
    "rye": CropCoefficients(initial_kc=0.3, mid_kc=1.1, end_kc=0.25, root_depth_m=1.5, base_water_need_mm_per_day=4.5),
    "oats": CropCoefficients(initial_kc=0.3, mid_kc=1.15, end_kc=0.25, root_depth_m=1.2, base_water_need_mm_per_day=5.0),
    DEFAULT_CROP: CropCoefficients(initial_kc=0.35, mid_kc=1.1, end_kc=0.5, root_depth_m=1.0, base_water_need_mm_per_day=5.0),
})

# mm of plant-available water per meter of root zone
SOIL_CAPACITY_MM_PER_M = 150.0

CRITICAL_MOISTURE = 0.20
LOW_MOISTURE = 0.30
MEDIUM_DEFICIT = 0.15
LOW_DEFICIT = 0.05

# share of forecast rain that actually reaches the root zone
EFFECTIVE_RAIN_FACTOR = 0.7

MAX_DAILY_IRRIGATION_MM = 25.0
SCHEDULE_DAYS = 7
MAX_LEAD_DAYS = 7

MESSAGES = {
    "critical": "Krytycznie niski poziom wilgotności - natychmiastowe nawodnienie wymagane!",
    "high": "Niski poziom wilgotności - zalecane pilne nawodnienie.",
    "medium": "Umiarkowany deficyt wody - rozważ nawodnienie w ciągu 2-3 dni.",
    "low": "Niewielki deficyt wody - monitoruj sytuację.",
    "none": "Poziom wilgotności optymalny - nawodnienie nie jest wymagane.",
}
RAIN_NOTE = " Prognozowane opady mogą uzupełnić niedobór."

REASON_MAX_DOSE = "Maksymalna dawka dzienna"
REASON_TOP_UP = "Uzupełnienie niedoboru wody"
REASON_NO_NEED = "Brak potrzeby nawadniania"
REASON_WAIT_RAIN = "Oczekuj na opady"

_DOWNGRADE = {"high": "medium", "medium": "low"}


def get_crop_coefficients(crop_type: Optional[str]) -> CropCoefficients:
    key = (crop_type or DEFAULT_CROP).strip().lower()
    return CROP_WATER_COEFFICIENTS.get(key, CROP_WATER_COEFFICIENTS[DEFAULT_CROP])


def get_crop_stage(planting_date: Optional[dt.date] = None, today: Optional[dt.date] = None) -> str:
    # peak-demand stage when we don't know when the crop went in
    if planting_date is None:
        return "mid"

    days = ((today or dt.date.today()) - planting_date).days
    if days < 20:
        return "initial"
    if days < 50:
        return "development"
    if days < 100:
        return "mid"
    return "late"


def get_crop_coefficient(crop_type: Optional[str], stage: str) -> float:
    c = get_crop_coefficients(crop_type)
    if stage == "initial":
        return c.initial_kc
    if stage == "development":
        # FAO-56 interpolates between Kc_ini and Kc_mid here
        return (c.initial_kc + c.mid_kc) / 2
    if stage == "mid":
        return c.mid_kc
    return c.end_kc


def calculate_evapotranspiration(temperature: float, humidity: float) -> float:
    """Simplified Hargreaves ET0 in mm/day, clamped to [0, 10]."""
    et0 = 0.0023 * (temperature + 17.8) * math.sqrt(max(0.0, 30 - humidity / 3))
    return max(0.0, min(10.0, et0))


def optimal_moisture_for(stage: str) -> float:
    if stage == "mid":
        return 0.6
    if stage == "initial":
        return 0.5
    return 0.45


def classify_urgency(soil_moisture: float, deficit: float) -> str:
    if soil_moisture < CRITICAL_MOISTURE:
        return "critical"
    if soil_moisture < LOW_MOISTURE:
        return "high"
    if deficit > MEDIUM_DEFICIT:
        return "medium"
    if deficit > LOW_DEFICIT:
        return "low"
    return "none"


def calculate_irrigation_need(
    crop_type: Optional[str],
    soil_moisture: float,
    area_hectares: float,
    weather: Optional[WeatherForecast] = None,
    planting_date: Optional[dt.date] = None,
    today: Optional[dt.date] = None,
) -> IrrigationRecommendation:
    today = today or dt.date.today()
    coeffs = get_crop_coefficients(crop_type)
    stage = get_crop_stage(planting_date, today)
    kc = get_crop_coefficient(crop_type, stage)

    optimal = optimal_moisture_for(stage)
    deficit = max(0.0, optimal - soil_moisture)

    if weather is not None:
        daily_need = calculate_evapotranspiration(weather.temperature, weather.humidity) * kc
    else:
        daily_need = coeffs.base_water_need_mm_per_day * kc

    # water needed to bring the root zone back to the target
    soil_capacity = coeffs.root_depth_m * SOIL_CAPACITY_MM_PER_M
    water_needed = deficit * soil_capacity

    effective = water_needed
    if weather is not None and weather.rain_probability > 0.5 and weather.expected_rain_mm > 5:
        effective = max(0.0, water_needed - weather.expected_rain_mm * EFFECTIVE_RAIN_FACTOR)

    urgency = classify_urgency(soil_moisture, deficit)
    message = MESSAGES[urgency]

    if (
        weather is not None
        and weather.rain_probability > 0.7
        and weather.expected_rain_mm > 10
        and urgency != "critical"
    ):
        message += RAIN_NOTE
        urgency = _DOWNGRADE.get(urgency, urgency)

    next_date = None
    if urgency != "none":
        # linear drawdown until the critical line, capped at a week
        if daily_need > 0:
            days = max(0.0, (soil_moisture - CRITICAL_MOISTURE) / (daily_need / soil_capacity))
        else:
            days = float(MAX_LEAD_DAYS)
        next_date = today + dt.timedelta(days=int(min(days, MAX_LEAD_DAYS)))

    return IrrigationRecommendation(
        needs_irrigation=urgency != "none",
        urgency=urgency,
        water_amount_mm=round(effective, 1),
        water_volume_liters=round(effective * area_hectares * 10_000),
        next_irrigation_date=next_date,
        message=message,
        factors=IrrigationFactors(
            soil_moisture=soil_moisture,
            optimal_moisture=optimal,
            deficit=deficit,
            crop_stage=stage,
            daily_need_mm=round(daily_need, 1),
        ),
    )


def generate_irrigation_schedule(
    recommendation: IrrigationRecommendation,
    weather_forecast: Optional[Sequence[DailyRainForecast]] = None,
    today: Optional[dt.date] = None,
) -> List[ScheduleDay]:
    """Spread the recommended amount over the next 7 days, rain first."""
    today = today or dt.date.today()
    by_date = {f.date: f for f in (weather_forecast or [])}

    total = recommendation.water_amount_mm
    allocated = 0.0
    rain_credit = 0.0
    schedule = []

    for i in range(SCHEDULE_DAYS):
        day = today + dt.timedelta(days=i)
        forecast = by_date.get(day)

        recommended = False
        amount = 0.0
        note = None

        if forecast is not None and forecast.rain_probability > 0.6:
            note = (
                f"Prognoza: {round(forecast.rain_probability * 100)}% szans na opady "
                f"({forecast.expected_rain_mm:.1f} mm)"
            )
            rain_credit += forecast.expected_rain_mm * EFFECTIVE_RAIN_FACTOR

        # recomputed from the total each day so the last top-up lands exactly on it
        remaining = max(0.0, total - allocated - rain_credit)

        if remaining > 0 and (forecast is None or forecast.rain_probability < 0.5):
            recommended = True
            amount = min(remaining, MAX_DAILY_IRRIGATION_MM)
            allocated += amount
            reason = REASON_MAX_DOSE if amount >= MAX_DAILY_IRRIGATION_MM else REASON_TOP_UP
        elif remaining <= 0:
            reason = REASON_NO_NEED
        else:
            reason = REASON_WAIT_RAIN

        schedule.append(ScheduleDay(
            date=day,
            recommended=recommended,
            water_amount_mm=amount,
            reason=reason,
            weather_note=note,
        ))

    return schedule


def format_water_volume(liters: float) -> str:
    if liters >= 1_000_000:
        return f"{liters / 1_000_000:.1f} tys. m³"
    if liters >= 1000:
        return f"{liters / 1000:.1f} m³"
    return f"{liters:g} l"
