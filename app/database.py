# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL in production; SQLite URLs are accepted
for local runs and tests.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from app.config import settings


def build_engine(url: str):
    """Create an engine with pool options suited to the backend behind `url`."""
    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Models are imported here so SQLAlchemy knows about them.
    """
    from app.models.access_event import AccessEvent   # noqa

    Base.metadata.create_all(bind=bind or engine)
