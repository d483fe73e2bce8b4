from __future__ import annotations

import datetime as dt
import json
import logging
import math
from typing import List

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import get_db
from .irrigation import calculate_irrigation_need, format_water_volume, generate_irrigation_schedule
from .models import Field, IrrigationEvent, MoistureReading
from .schemas import (
    FieldCreate,
    FieldIrrigationOut,
    FieldOut,
    IrrigationEventCreate,
    IrrigationEventOut,
    IrrigationPlanOut,
    IrrigationRequest,
    SeasonStats,
)
from .weather import get_field_weather

logger = logging.getLogger(__name__)

# -------- Router (NO prefix) --------
router = APIRouter()

# moisture assumed for a field with no satellite readings yet
DEFAULT_SOIL_MOISTURE = 0.5
HISTORY_DAYS = 30
HISTORY_LIMIT = 20

# -------- Helpers --------
def _close_ring(coords: list[list[float]]) -> list[list[float]]:
    if coords and coords[0] != coords[-1]:
        return coords + [coords[0]]
    return coords

def _centroid_and_area(positions: list[list[float]]) -> tuple[float, float, float]:
    """positions: [[lon,lat], ...] (closed). Returns centroid_lat, centroid_lon, area_ha."""
    lats = [p[1] for p in positions]
    lons = [p[0] for p in positions]
    lat0 = sum(lats) / len(lats)
    lon0 = sum(lons) / len(lons)

    # local equirectangular projection around the vertex mean
    m_per_deg_lat = 111_132.0
    m_per_deg_lon = 111_320.0 * math.cos(math.radians(lat0))
    xy = [((lon - lon0) * m_per_deg_lon, (lat - lat0) * m_per_deg_lat) for lon, lat in zip(lons, lats)]

    A2 = Cx = Cy = 0.0
    for i in range(len(xy) - 1):
        x1, y1 = xy[i]
        x2, y2 = xy[i + 1]
        cross = x1 * y2 - x2 * y1
        A2 += cross
        Cx += (x1 + x2) * cross
        Cy += (y1 + y2) * cross
    A = abs(A2) / 2.0  # m²
    cx = Cx / (3 * A2) if A2 != 0 else 0.0
    cy = Cy / (3 * A2) if A2 != 0 else 0.0

    centroid_lon = lon0 + (cx / m_per_deg_lon)
    centroid_lat = lat0 + (cy / m_per_deg_lat)
    return float(centroid_lat), float(centroid_lon), A / 10_000.0

def _polygon_ring(geometry: dict) -> list[list[float]]:
    if not isinstance(geometry, dict) or "type" not in geometry or "coordinates" not in geometry:
        raise HTTPException(status_code=422, detail="geometry must be a GeoJSON Polygon")
    if geometry.get("type") != "Polygon":
        raise HTTPException(status_code=422, detail="Only GeoJSON Polygon is supported")
    rings = geometry.get("coordinates") or []
    if not rings or not isinstance(rings[0], list) or len(rings[0]) < 3:
        raise HTTPException(status_code=422, detail="Polygon must have at least 3 coordinates")
    return _close_ring(rings[0])

def get_field_or_404(db: Session, field_id: int) -> Field:
    rec = db.query(Field).filter(Field.id == field_id).first()
    if not rec:
        raise HTTPException(status_code=404, detail="Field not found")
    return rec

def _latest_moisture(db: Session, field_id: int) -> float:
    row = (
        db.query(MoistureReading)
        .filter(MoistureReading.field_id == field_id)
        .order_by(MoistureReading.observation_date.desc())
        .first()
    )
    return row.moisture_index if row else DEFAULT_SOIL_MOISTURE

# -------- Routes --------
@router.post("/irrigation/plan", response_model=IrrigationPlanOut)
def plan_irrigation(payload: IrrigationRequest):
    """Recommendation and 7-day schedule from explicit inputs; nothing is stored."""
    today = dt.date.today()
    rec = calculate_irrigation_need(
        payload.crop_type,
        payload.soil_moisture,
        payload.area_hectares,
        weather=payload.weather,
        planting_date=payload.planting_date,
        today=today,
    )
    schedule = generate_irrigation_schedule(rec, payload.forecast, today=today)
    return IrrigationPlanOut(
        recommendation=rec,
        schedule=schedule,
        water_volume_display=format_water_volume(rec.water_volume_liters),
    )

@router.get("/fields", response_model=List[FieldOut])
def list_fields(db: Session = Depends(get_db)):
    return db.query(Field).order_by(Field.id.desc()).all()

@router.post("/fields", response_model=FieldOut, status_code=status.HTTP_201_CREATED)
def create_field(payload: FieldCreate, db: Session = Depends(get_db)):
    """
    Accepts either an explicit `area_hectares` or a GeoJSON Polygon under
    `geometry`; with a polygon the area and centroid are computed server-side.
    """
    centroid_lat = centroid_lon = None
    polygon = None
    area_ha = payload.area_hectares

    if payload.geometry is not None:
        outer = _polygon_ring(payload.geometry)
        centroid_lat, centroid_lon, computed = _centroid_and_area(outer)
        polygon = json.dumps({"type": "Polygon", "coordinates": [outer]})
        if area_ha is None:
            area_ha = round(computed, 2)

    if not area_ha or area_ha <= 0:
        raise HTTPException(status_code=422, detail="area_hectares or a non-degenerate geometry is required")

    rec = Field(
        name=payload.name,
        crop_type=payload.crop_type,
        area_hectares=area_ha,
        centroid_lat=centroid_lat,
        centroid_lon=centroid_lon,
        polygon_geojson=polygon,
        planting_date=payload.planting_date,
        alert_threshold=payload.alert_threshold,
    )
    try:
        db.add(rec)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("field insert failed: %s", e)
        raise HTTPException(status_code=500, detail="Insert failed")
    db.refresh(rec)
    logger.info("created field %s (%s, %.2f ha)", rec.id, rec.crop_type, rec.area_hectares)
    return rec

@router.get("/fields/{field_id}", response_model=FieldOut)
def get_field(field_id: int, db: Session = Depends(get_db)):
    return get_field_or_404(db, field_id)

def _field_snapshot(db: Session, field_id: int, today: dt.date):
    """Everything the field view needs from the database, in one blocking call."""
    f = get_field_or_404(db, field_id)
    soil_moisture = _latest_moisture(db, field_id)

    history = (
        db.query(IrrigationEvent)
        .filter(IrrigationEvent.field_id == field_id)
        .filter(IrrigationEvent.irrigation_date >= today - dt.timedelta(days=HISTORY_DAYS))
        .order_by(IrrigationEvent.irrigation_date.desc())
        .limit(HISTORY_LIMIT)
        .all()
    )

    total_mm, count = (
        db.query(func.coalesce(func.sum(IrrigationEvent.water_amount_mm), 0.0), func.count(IrrigationEvent.id))
        .filter(IrrigationEvent.field_id == field_id)
        .filter(IrrigationEvent.irrigation_date >= dt.date(today.year, 1, 1))
        .one()
    )
    season = SeasonStats(total_water_mm=round(float(total_mm), 1), irrigation_count=int(count))
    return f, soil_moisture, [IrrigationEventOut.model_validate(e) for e in history], season

@router.get("/fields/{field_id}/irrigation", response_model=FieldIrrigationOut)
async def get_field_irrigation(field_id: int, db: Session = Depends(get_db)):
    today = dt.date.today()
    # the Session is sync; keep it off the event loop
    f, soil_moisture, history, season = await run_in_threadpool(_field_snapshot, db, field_id, today)
    weather, daily = await get_field_weather(f.centroid_lat, f.centroid_lon)

    rec = calculate_irrigation_need(
        f.crop_type,
        soil_moisture,
        f.area_hectares,
        weather=weather,
        planting_date=f.planting_date,
        today=today,
    )
    schedule = generate_irrigation_schedule(rec, daily, today=today)

    return FieldIrrigationOut(
        field_id=f.id,
        field_name=f.name,
        crop_type=f.crop_type,
        area_hectares=f.area_hectares,
        current_moisture=soil_moisture,
        weather=weather,
        recommendation=rec,
        schedule=schedule,
        water_volume_display=format_water_volume(rec.water_volume_liters),
        history=history,
        season=season,
    )

@router.post(
    "/fields/{field_id}/irrigation/events",
    response_model=IrrigationEventOut,
    status_code=status.HTTP_201_CREATED,
)
def log_irrigation_event(field_id: int, body: IrrigationEventCreate, db: Session = Depends(get_db)):
    f = get_field_or_404(db, field_id)
    ev = IrrigationEvent(
        field_id=f.id,
        irrigation_date=body.irrigation_date,
        water_amount_mm=body.water_amount_mm,
        water_volume_liters=body.water_amount_mm * f.area_hectares * 10_000,
        duration_minutes=body.duration_minutes,
        method=body.method,
        notes=body.notes,
    )
    try:
        db.add(ev)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("irrigation event insert failed for field %s: %s", field_id, e)
        raise HTTPException(status_code=500, detail="Failed to create irrigation event")
    db.refresh(ev)
    return ev
