"""Database configuration and helper functions.

This module defines the SQLAlchemy engine and session factory used by
the realtime core and the REST routes. The ``Base`` class is imported
by the models module to declare ORM models. Request handlers get
sessions through ``collab.services.repository.ProjectRepository``.
"""

from __future__ import annotations

import os, time
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

# e.g. postgresql+psycopg2://collab:collab@db:5432/collab
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./collab.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# The pool_pre_ping flag ensures broken connections are detected and
# recycled automatically.
engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for declarative models."""


def wait_for_db(max_tries: int = 60, delay_seconds: float = 1.0):
    """Poll the DB until a trivial query works (or give up)."""
    last_err = None
    for attempt in range(1, max_tries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception as e:
            last_err = e
            time.sleep(delay_seconds)
    raise RuntimeError(f"Database not ready after {max_tries} tries") from last_err
