from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field as PField, field_validator

TrendDirection = Literal["up", "down", "stable"]
Urgency = Literal["none", "low", "medium", "high", "critical"]
CropStage = Literal["initial", "development", "mid", "late"]
IrrigationMethod = Literal["sprinkler", "drip", "flood", "manual", "other"]


# ---------------------------
# Moisture readings
# ---------------------------
class BackscatterObservation(BaseModel):
    """One Sentinel-1 acquisition already reduced to field means (dB)."""
    observation_date: dt.date
    vv_mean_db: float
    vh_mean_db: Optional[float] = None


class MoistureReading(BaseModel):
    observation_date: dt.date
    moisture_index: float = PField(ge=0, le=1)
    vv_backscatter: Optional[float] = None
    vh_backscatter: Optional[float] = None
    source: str = "sentinel1"

    class Config:
        from_attributes = True


class MoistureStats(BaseModel):
    average: float
    min: float
    max: float
    trend: TrendDirection
    count: int


class TrendAnalysis(BaseModel):
    direction: TrendDirection
    change_percent: float
    avg_moisture: float
    min_moisture: float
    max_moisture: float
    volatility: float = PField(ge=0)
    days_above_threshold: int
    days_below_threshold: int
    prediction: float = PField(ge=0, le=1)


# ---------------------------
# Weather
# ---------------------------
class WeatherForecast(BaseModel):
    rain_probability: float = PField(0.0, ge=0, le=1)
    expected_rain_mm: float = PField(0.0, ge=0)
    temperature: float = 20.0  # °C
    humidity: float = PField(50.0, ge=0, le=100)  # %


class DailyRainForecast(BaseModel):
    date: dt.date
    rain_probability: float = PField(ge=0, le=1)
    expected_rain_mm: float = PField(0.0, ge=0)


# ---------------------------
# Irrigation
# ---------------------------
class CropCoefficients(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_kc: float
    mid_kc: float
    end_kc: float
    root_depth_m: float
    base_water_need_mm_per_day: float


class IrrigationFactors(BaseModel):
    soil_moisture: float
    optimal_moisture: float
    deficit: float
    crop_stage: CropStage
    daily_need_mm: float


class IrrigationRecommendation(BaseModel):
    needs_irrigation: bool
    urgency: Urgency
    water_amount_mm: float = PField(ge=0)
    water_volume_liters: float = PField(ge=0)
    next_irrigation_date: Optional[dt.date] = None
    message: str
    factors: IrrigationFactors


class ScheduleDay(BaseModel):
    date: dt.date
    recommended: bool
    water_amount_mm: float = PField(ge=0)
    reason: str
    weather_note: Optional[str] = None


# ---------------------------
# API payloads
# ---------------------------
class VVIndexIn(BaseModel):
    vv_db: float


class VVIndexOut(BaseModel):
    vv_db: float
    moisture_index: float


class TrendRequest(BaseModel):
    readings: List[MoistureReading]
    threshold: float = PField(0.3, ge=0, le=1)


class TrendOut(BaseModel):
    reading_count: int
    threshold: float
    trend: Optional[TrendAnalysis] = None


class IrrigationRequest(BaseModel):
    crop_type: str = "other"
    soil_moisture: float = PField(..., ge=0, le=1)
    area_hectares: float = PField(..., gt=0)
    weather: Optional[WeatherForecast] = None
    planting_date: Optional[dt.date] = None
    forecast: List[DailyRainForecast] = PField(default_factory=list)


class IrrigationPlanOut(BaseModel):
    recommendation: IrrigationRecommendation
    schedule: List[ScheduleDay]
    water_volume_display: str


class FieldCreate(BaseModel):
    name: str
    crop_type: str = "other"
    area_hectares: Optional[float] = PField(None, gt=0)
    geometry: Optional[dict] = None
    planting_date: Optional[dt.date] = None
    alert_threshold: float = PField(0.30, ge=0, le=1)

    @field_validator("name", "crop_type")
    @classmethod
    def nonempty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("crop_type")
    @classmethod
    def crop_key(cls, v: str) -> str:
        # crop table keys are lowercase snake_case
        return v.lower().replace(" ", "_")


class FieldOut(BaseModel):
    id: int
    name: str
    crop_type: str
    area_hectares: float
    centroid_lat: Optional[float] = None
    centroid_lon: Optional[float] = None
    planting_date: Optional[dt.date] = None
    alert_threshold: float

    class Config:
        from_attributes = True


class MoistureIngestOut(BaseModel):
    field_id: int
    received: int
    inserted: int
    skipped: int


class MoistureHistoryOut(BaseModel):
    field_id: int
    start_date: dt.date
    end_date: dt.date
    readings: List[MoistureReading]
    stats: Optional[MoistureStats] = None


class IrrigationEventCreate(BaseModel):
    irrigation_date: dt.date
    water_amount_mm: float = PField(..., gt=0)
    duration_minutes: Optional[int] = PField(None, gt=0)
    method: Optional[IrrigationMethod] = None
    notes: Optional[str] = None


class IrrigationEventOut(BaseModel):
    id: int
    field_id: int
    irrigation_date: dt.date
    water_amount_mm: float
    water_volume_liters: float
    duration_minutes: Optional[int] = None
    method: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class SeasonStats(BaseModel):
    total_water_mm: float
    irrigation_count: int


class FieldIrrigationOut(BaseModel):
    field_id: int
    field_name: str
    crop_type: str
    area_hectares: float
    current_moisture: float
    weather: Optional[WeatherForecast] = None
    recommendation: IrrigationRecommendation
    schedule: List[ScheduleDay]
    water_volume_display: str
    history: List[IrrigationEventOut]
    season: SeasonStats
