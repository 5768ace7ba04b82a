"""
Database Configuration
"""
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from typing import Generator, Iterator

from ledger_engine.core.config import settings

# Database URL
db_url = settings.DATABASE_URL

# Create engine
engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if "sqlite" in db_url else {},
    echo=settings.DEBUG
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base model
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Ensures the session is closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run the wrapped block as one unit of work.

    Commits when the block exits normally; rolls back and re-raises on any
    error so no partial write becomes visible.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """Initialize database tables"""
    # Import all models to register them with Base
    from ledger_engine.models import (
        Tenant, Account, JournalEntry, JournalLine, ActivityLog,
        TrialBalanceSnapshot, Warehouse, Item, StockMove, Invoice, InvoiceLine
    )
    Base.metadata.create_all(bind=engine)
