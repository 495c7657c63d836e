# =============================================================================
# 🗄️ database.py
# -----------------------------------------------------------------------------
# SQLAlchemy configuration for the property item QR service.
# Supports SQLite (local/dev/tests) and Postgres through DATABASE_URL.
# =============================================================================

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# 🔹 load .env (DATABASE_URL etc.)
load_dotenv()

SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qr_items.db")


def build_engine(url: str) -> Engine:
    """
    Creates an engine for the given URL.
    In-memory SQLite shares one connection so every session sees the same data.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    # pool_pre_ping = detects dropped connections
    return create_engine(url, pool_pre_ping=True, pool_recycle=280)


engine = build_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# 🔹 base class for all models
Base = declarative_base()
