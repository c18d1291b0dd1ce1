"""Utility to create database tables."""

from sqlalchemy.engine import Engine

from .database import engine as default_engine
from .models import Base


def create_tables(engine: Engine | None = None) -> None:
    """Create all database tables using the SQLAlchemy metadata."""
    Base.metadata.create_all(bind=engine or default_engine)


if __name__ == "__main__":
    create_tables()
