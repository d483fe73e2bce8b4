# app/main.py
import logging
import os

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401  (registers tables on Base)
from .db import Base, engine, ping
from .routes_irrigation import router as irrigation_router
from .routes_moisture import router as moisture_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Soil Moisture & Irrigation API")

# Allow mobile/web clients (restrict CORS_ORIGINS in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/healthz")
def healthz():
    try:
        ping()
    except SQLAlchemyError as e:
        logger.error("database unreachable: %s", e)
        return JSONResponse({"ok": False, "db": "down"}, status_code=503)
    return {"ok": True, "db": "up"}

app.include_router(moisture_router)
app.include_router(irrigation_router)
