"""
Database engine, session factory, and metadata shared across the engine.

Nothing here is a process-wide singleton: embedding applications (and tests)
build their own engine and session factory and hand sessions to services.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, declarative_base, sessionmaker

from .core.config import Settings, get_settings

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()


def create_db_engine(
    url: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    **engine_kwargs: Any,
) -> Engine:
    """
    Create an engine for ``url`` (defaults to ``settings.database_url``).

    SQLite connections are shareable across threads and wait on the database
    file lock instead of failing immediately.
    """
    settings = settings or get_settings()
    resolved_url = url or settings.database_url
    connect_args: Dict[str, Any] = dict(engine_kwargs.pop("connect_args", {}) or {})
    if resolved_url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)

    engine = create_engine(
        resolved_url,
        echo=settings.database_echo,
        connect_args=connect_args,
        **engine_kwargs,
    )
    logger.info("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all engine tables (development and tests)."""
    from . import models  # noqa: F401  # register mappers

    Base.metadata.create_all(bind=engine)
