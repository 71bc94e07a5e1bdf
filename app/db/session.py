# app/db/session.py

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
elif settings.DATABASE_URL.startswith("postgres"):
    connect_args = {"options": "-c timezone=utc"}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Unit of work for a ledger operation: the transaction row, balance updates
    and promotion usage either all commit together or are all rolled back.
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("Rolling back unit of work.")
        db.rollback()
        raise
