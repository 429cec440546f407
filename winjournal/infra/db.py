"""Database engine helpers for the remote collection store."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..config import load_settings


@lru_cache()
def get_engine(database_url: str | None = None) -> Engine:
    """Return a cached engine for ``database_url`` (defaults to settings).

    Engines connect lazily, so building one never touches the network.
    """

    url = database_url or load_settings().database_url
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)
