from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .db import get_db
from .moisture import calculate_moisture_stats, get_date_range, readings_from_backscatter, to_moisture_index
from .routes_irrigation import get_field_or_404
from .schemas import (
    BackscatterObservation,
    MoistureHistoryOut,
    MoistureIngestOut,
    MoistureReading,
    TrendOut,
    TrendRequest,
    VVIndexIn,
    VVIndexOut,
)
from .trend import analyze_trend

logger = logging.getLogger(__name__)

router = APIRouter()


def _readings_between(db: Session, field_id: int, start, end) -> List[MoistureReading]:
    rows = (
        db.query(models.MoistureReading)
        .filter(models.MoistureReading.field_id == field_id)
        .filter(models.MoistureReading.observation_date >= start)
        .filter(models.MoistureReading.observation_date <= end)
        .order_by(models.MoistureReading.observation_date.desc())
        .all()
    )
    return [MoistureReading.model_validate(r) for r in rows]


@router.post("/moisture/index", response_model=VVIndexOut)
def moisture_index(payload: VVIndexIn):
    return VVIndexOut(vv_db=payload.vv_db, moisture_index=to_moisture_index(payload.vv_db))


@router.post("/analysis/trend", response_model=TrendOut)
def trend_from_readings(payload: TrendRequest):
    return TrendOut(
        reading_count=len(payload.readings),
        threshold=payload.threshold,
        trend=analyze_trend(payload.readings, payload.threshold),
    )


@router.post("/fields/{field_id}/moisture", response_model=MoistureIngestOut)
def ingest_moisture(field_id: int, observations: List[BackscatterObservation], db: Session = Depends(get_db)):
    """
    Store normalized readings for raw backscatter acquisitions.
    Stored readings are never overwritten: dates already on file are skipped.
    """
    get_field_or_404(db, field_id)
    readings = readings_from_backscatter(observations)

    existing = set()
    if readings:
        existing = {
            d for (d,) in db.query(models.MoistureReading.observation_date)
            .filter(models.MoistureReading.field_id == field_id)
            .filter(models.MoistureReading.observation_date.in_([r.observation_date for r in readings]))
        }

    new = [r for r in readings if r.observation_date not in existing]
    try:
        db.add_all([models.MoistureReading(field_id=field_id, **r.model_dump()) for r in new])
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("moisture insert failed for field %s: %s", field_id, e)
        raise HTTPException(status_code=500, detail="Insert failed")

    logger.info("field %s: %d observations, %d new readings", field_id, len(observations), len(new))
    return MoistureIngestOut(
        field_id=field_id,
        received=len(observations),
        inserted=len(new),
        skipped=len(observations) - len(new),
    )


@router.get("/fields/{field_id}/moisture", response_model=MoistureHistoryOut)
def moisture_history(field_id: int, days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    get_field_or_404(db, field_id)
    start, end = get_date_range(days)
    readings = _readings_between(db, field_id, start, end)
    return MoistureHistoryOut(
        field_id=field_id,
        start_date=start,
        end_date=end,
        readings=readings,
        stats=calculate_moisture_stats(readings),
    )


@router.get("/fields/{field_id}/trend", response_model=TrendOut)
def field_trend(field_id: int, days: int = Query(90, ge=1, le=365), db: Session = Depends(get_db)):
    f = get_field_or_404(db, field_id)
    start, end = get_date_range(days)
    readings = _readings_between(db, field_id, start, end)
    return TrendOut(
        reading_count=len(readings),
        threshold=f.alert_threshold,
        trend=analyze_trend(readings, f.alert_threshold),
    )
