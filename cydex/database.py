"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for sources, entities and the change log.
"""

from pathlib import Path
from sqlalchemy import (
    create_engine,
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    JSON,
    Text,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from .clock import utcnow

Base = declarative_base()


class Source(Base):
    """Scrape target with rate and parsing policy."""

    __tablename__ = "sources"

    id = Column(String, primary_key=True)
    agency = Column(String, nullable=False)
    url = Column(String, nullable=False)
    parse_type = Column(String, nullable=False, default="html")  # html, json, pdf, csv
    selector = Column(String, nullable=True)
    territory = Column(String, nullable=False, default="national")
    rate_limit_rps = Column(Float, nullable=False, default=1.0)
    enabled = Column(Boolean, nullable=False, default=True)
    last_status = Column(Integer, nullable=True)
    last_hash = Column(String, nullable=True)
    last_fetch = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Entity(Base):
    """Critical-infrastructure office record."""

    __tablename__ = "entities"

    id = Column(String, primary_key=True)  # agency-normalized-office-name
    agency = Column(String, nullable=False)
    office_name = Column(String, nullable=False)
    role_type = Column(String, nullable=False)  # regional, field, resident, sector, lab
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    county_fips = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    sectors = Column(JSON, nullable=False, default=list)
    functions = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False, default=5)
    last_verified = Column(DateTime, nullable=True)
    source_url = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    icon_set = Column(String, nullable=True)
    icon_src = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class Change(Base):
    """Append-only audit record."""

    __tablename__ = "changes"

    id = Column(String, primary_key=True)
    entity_id = Column(String, nullable=False, index=True)
    change_type = Column(String, nullable=False)  # scraped, merged, updated
    diff = Column(JSON, nullable=True)
    source_url = Column(String, nullable=True)
    ts = Column(DateTime, nullable=False, default=utcnow)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()
