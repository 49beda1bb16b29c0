import sqlite3

from databases import Database
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def create_database(database_url: str) -> Database:
    """Build the async query handle; the caller owns connect()/disconnect()."""
    return Database(database_url)


def create_schema(database_url: str) -> None:
    # import so every table is registered on Base.metadata
    from invoicing import models  # noqa: F401

    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def rec_to_dict(rec) -> dict:
    if rec is None:
        return {}
    return dict(rec._mapping)


def is_unique_violation(exc: Exception) -> bool:
    """Unique-constraint failure from asyncpg (SQLSTATE 23505) or sqlite3."""
    if getattr(exc, "sqlstate", None) == "23505":
        return True
    return isinstance(exc, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(exc)

