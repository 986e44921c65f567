"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from actionplan.api.v1.router import api_router
from actionplan.core.config import settings
from actionplan.database.client import close_database, init_database
from actionplan.utils.logging import get_logger, set_package_level

LOGGER = get_logger(__name__, level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    set_package_level(settings.log_level)
    LOGGER.info(
        "Starting application",
        extra={"version": settings.app_version, "environment": settings.environment},
    )

    try:
        await init_database(create_tables=True)
    except Exception as e:
        # Health checks report "degraded" until the database is reachable
        LOGGER.error("Failed to initialize database", exc_info=True, extra={"error": str(e)})

    yield

    await close_database()
    LOGGER.info("Application stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Turns extracted document facts into tracked, dependency-ordered action plans",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"], operation_id="get_public_root_metadata")
async def root() -> Dict[str, str]:
    return {
        "message": "Server is running",
        "version": settings.app_version,
        "health": f"{settings.api_v1_prefix}/health",
    }


app.include_router(api_router, prefix=settings.api_v1_prefix)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "actionplan.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
