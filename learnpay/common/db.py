"""Engine and session factory for the ledger database."""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from learnpay.common.config import settings


def build_engine(dsn: str):
    """Postgres in deployments; SQLite is accepted for local runs."""

    if dsn.startswith("sqlite"):
        return create_engine(dsn, connect_args={"check_same_thread": False})
    return create_engine(dsn, pool_pre_ping=True)


engine = build_engine(settings.database_dsn)
# Ledger views are built from ORM rows after commit, so rows must not expire.
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
