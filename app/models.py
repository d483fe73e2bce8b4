from sqlalchemy import (
    Column, Integer, String, Float, Text, Date, DateTime, ForeignKey, UniqueConstraint, func
)
from .db import Base

class Field(Base):
    __tablename__ = "fields"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    crop_type = Column(String(80), nullable=False, default="other")
    area_hectares = Column(Float, nullable=False)
    centroid_lat = Column(Float, nullable=True)
    centroid_lon = Column(Float, nullable=True)
    polygon_geojson = Column(Text, nullable=True)
    planting_date = Column(Date, nullable=True)
    alert_threshold = Column(Float, nullable=False, default=0.30)

class MoistureReading(Base):
    __tablename__ = "moisture_readings"
    __table_args__ = (UniqueConstraint("field_id", "observation_date", name="uq_reading_field_date"),)

    id = Column(Integer, primary_key=True)
    field_id = Column(Integer, ForeignKey("fields.id", ondelete="CASCADE"), index=True, nullable=False)
    observation_date = Column(Date, index=True, nullable=False)
    moisture_index = Column(Float, nullable=False)
    vv_backscatter = Column(Float, nullable=True)
    vh_backscatter = Column(Float, nullable=True)
    source = Column(String(40), default="sentinel1")
    processed_at = Column(DateTime(timezone=True), server_default=func.now())

class IrrigationEvent(Base):
    __tablename__ = "irrigation_events"

    id = Column(Integer, primary_key=True)
    field_id = Column(Integer, ForeignKey("fields.id", ondelete="CASCADE"), index=True, nullable=False)
    irrigation_date = Column(Date, index=True, nullable=False)
    water_amount_mm = Column(Float, nullable=False)
    water_volume_liters = Column(Float, nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    method = Column(String(20), nullable=True)  # sprinkler | drip | flood | manual | other
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
