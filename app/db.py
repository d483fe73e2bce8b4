# app/db.py
import os
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool


def _to_psycopg_v3_url(url: str) -> str:
    # Force SQLAlchemy to use psycopg v3 dialect
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url

def _ensure_sslmode_require(url: str) -> str:
    # Append sslmode=require if missing (hosted Postgres needs SSL)
    parsed = urlparse(url)
    q = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if "sslmode" not in q:
        q["sslmode"] = "require"
    return urlunparse(parsed._replace(query=urlencode(q)))

def normalize_database_url(url: str) -> str:
    if url.startswith("sqlite"):
        return url
    return _ensure_sslmode_require(_to_psycopg_v3_url(url))

def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs = {"connect_args": {"check_same_thread": False}}
    # in-memory SQLite lives inside a single connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


# Load DATABASE_URL from environment; default to local SQLite under ./data
DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./data/app.db"))

# If using local relative SQLite, ensure folder exists
if DATABASE_URL.startswith("sqlite:///./"):
    os.makedirs(os.path.dirname(DATABASE_URL[len("sqlite:///"):]), exist_ok=True)

engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

# Dependency to get a DB session per request
def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def ping() -> None:
    # Raises if DB is unreachable
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
