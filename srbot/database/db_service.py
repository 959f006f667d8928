# srbot/database/db_service.py
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional, AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .base import Base
from .models import UserFlags  # registers the table on Base.metadata

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///data/srbot.db"


class DBService:
    """
    Owns the async engine and session factory for the bot's own tables.
    In TESTING_MODE, TEST_DATABASE_URL (default: in-memory SQLite) wins over the given URL.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        if os.getenv("TESTING_MODE") == "true":
            url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
            logger.info(f"DBService: TESTING_MODE active, using '{url}'.")
        else:
            url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        engine_kwargs = {}
        if url.startswith("sqlite") and ":memory:" in url:
            # One shared connection, otherwise every session sees an empty database.
            engine_kwargs["poolclass"] = StaticPool

        self.database_url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self.engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
        )
        logger.info(f"DBService initialized (URL: {url}).")

    async def initialize_database(self) -> None:
        """Creates missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("DBService: database schema ensured.")

    def get_session_factory(self):
        return self._session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("DBService: engine disposed.")
