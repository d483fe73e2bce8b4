import datetime as dt
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("OPENWEATHER_KEY", None)

import pytest
from fastapi.testclient import TestClient

from app.db import Base, engine
from app.main import app
from app.schemas import MoistureReading


@pytest.fixture
def client():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_reading():
    def _make(day, moisture):
        if isinstance(day, str):
            day = dt.date.fromisoformat(day)
        return MoistureReading(observation_date=day, moisture_index=moisture, vv_backscatter=-14, vh_backscatter=-18)
    return _make
