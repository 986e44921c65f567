"""Database connection lifecycle."""

from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from actionplan.database.base import Base, engine
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DatabaseClient:
    """Startup checks, schema creation and health probing over one engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def connect(self) -> None:
        """Fail fast if the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        LOGGER.info("Database connection successful")

    async def disconnect(self) -> None:
        await self.engine.dispose()
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create missing tables; existing ones are left untouched."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        LOGGER.info("Database tables created/verified")

    async def health_check(self) -> Dict[str, Any]:
        try:
            async with self.engine.connect() as conn:
                await conn.scalar(text("SELECT 1"))
        except Exception as e:
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}
        return {"status": "healthy", "connected": True, "database": "postgresql"}


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = True) -> None:
    """Connect and optionally create missing tables."""
    await db_client.connect()
    if create_tables:
        await db_client.create_tables()


async def close_database() -> None:
    await db_client.disconnect()
