"""
Database setup for the workflow store.

Table definitions, engine construction and the error guard that turns
SQLAlchemy failures into PersistenceError. Workflows are stored as one
JSON document per row; runs live in a parallel table.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from sigflow.domain.workflow.errors import PersistenceError

logger = logging.getLogger(__name__)

metadata = MetaData()

workflow_table = Table(
    "t_workflow",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("flow_json", JSON, nullable=False),
    Column("create_at", DateTime(timezone=True), nullable=False),
    Column("update_at", DateTime(timezone=True), nullable=False),
    Column("del_flag", Boolean, nullable=False, default=False),
)

workflow_run_table = Table(
    "t_workflow_run",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("workflow_id", String(36), nullable=False, index=True),
    Column("params", JSON, nullable=False),
    Column("start_date", DateTime(timezone=True), nullable=False),
    Column("end_date", DateTime(timezone=True), nullable=True),
    Column("run_type", String(16), nullable=False),
    Column("state", String(16), nullable=False),
    Column("profit", JSON, nullable=False),
    Column("node_states", JSON, nullable=False),
)


def create_db_engine(url: str) -> Engine:
    """Build a SQLAlchemy engine for the workflow store.

    In-memory SQLite shares one connection so every session sees the
    same database.
    """
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(url, **options)
    return create_engine(url, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    """Create the workflow tables if they do not exist.

    Raises:
        PersistenceError: If the database cannot be reached.
    """
    with persistence_guard("init_schema"):
        metadata.create_all(engine)
    logger.info("Workflow store schema ready.")


@contextmanager
def persistence_guard(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy errors as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Database error during %s: %s", operation, type(exc).__name__)
        raise PersistenceError(operation, type(exc).__name__) from exc


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
