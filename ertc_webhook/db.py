"""Async SQLAlchemy connection manager.

One ``Database`` is built per process (see the app lifespan in
``ertc_webhook.api.server``) and handed to whatever needs a session.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ertc_webhook.config import Settings
from ertc_webhook.models.submission import Base

logger = logging.getLogger("ertc.db")


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


class Database:
    """Owns the async engine, the session factory and the connection state."""

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs: Any) -> None:
        self.url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a manager with pool options suited to the configured backend."""
        url = settings.database_url
        if _is_sqlite_memory(url):
            # Every session must see the same in-memory database.
            kwargs: dict[str, Any] = {"poolclass": StaticPool}
        elif url.startswith("sqlite"):
            kwargs = {}
        else:
            kwargs = {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
            }
        return cls(url, echo=(settings.app_env == "development"), **kwargs)

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Create missing tables and mark the manager as connected."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._connected = True
        logger.info("Connected to database %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()
        self._connected = False
        logger.info("Database connections released")

    def session(self) -> AsyncSession:
        """Return a new session; use it as ``async with database.session() as s``."""
        return self.session_factory()
