"""
SQLAlchemy persistence for the hierarchical model cache.

Provides:
- CachedFatigueModel: one row per user holding the latest fitted model and
  the fingerprint of the history it was built from
- SQLModelCache: ModelCache backend over a session factory
- Engine/session helpers shared by the CLI and API
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from training_analytics.model_cache import ModelCache
from training_analytics.schemas import HierarchicalFatigueModel

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///training_analytics.db"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CachedFatigueModel(Base):
    """
    Cached hierarchical fatigue model.

    Attributes:
        id: Primary key
        user_id: Owning user (unique; rows are upserted)
        fingerprint: History fingerprint the model was fitted on
        model_data: HierarchicalFatigueModel as JSON
        updated_at: When the row was last written
    """

    __tablename__ = "cached_fatigue_models"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, unique=True, nullable=False, index=True)
    fingerprint = Column(String, nullable=False)
    model_data = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<CachedFatigueModel(user_id='{self.user_id}', fingerprint='{self.fingerprint}')>"


class SQLModelCache(ModelCache):
    """ModelCache backed by the cached_fatigue_models table."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get(self, user_id: str, fingerprint: str) -> Optional[HierarchicalFatigueModel]:
        with self.session_factory() as db:
            row = db.execute(
                select(CachedFatigueModel).where(CachedFatigueModel.user_id == user_id)
            ).scalar_one_or_none()
            if row is None or row.fingerprint != fingerprint:
                return None
            return HierarchicalFatigueModel.model_validate(row.model_data)

    def put(self, user_id: str, fingerprint: str, model: HierarchicalFatigueModel) -> None:
        with self.session_factory() as db:
            row = db.execute(
                select(CachedFatigueModel).where(CachedFatigueModel.user_id == user_id)
            ).scalar_one_or_none()
            if row is None:
                row = CachedFatigueModel(user_id=user_id)
                db.add(row)
            row.fingerprint = fingerprint
            row.model_data = model.model_dump(mode="json")
            db.commit()


# Database connection and session management

def get_engine(database_url: str = DEFAULT_DATABASE_URL):
    """
    Create SQLAlchemy engine.

    Args:
        database_url: Database connection string (default: SQLite file)

    Returns:
        SQLAlchemy Engine instance
    """
    return create_engine(database_url, echo=False)


def get_session_factory(engine):
    """Session factory bound to an engine."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_database(database_url: str = DEFAULT_DATABASE_URL) -> SQLModelCache:
    """
    Create tables and return a cache backed by them.

    Args:
        database_url: Database connection string

    Returns:
        SQLModelCache bound to a fresh engine
    """
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)
    return SQLModelCache(get_session_factory(engine))
