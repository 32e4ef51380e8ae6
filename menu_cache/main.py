import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from menu_cache.core.config import AUTO_CREATE_SQLITE_SCHEMA, CORS_ORIGINS, DATABASE_URL
from menu_cache.core.database import Base, engine
from menu_cache.core.logging_setup import configure_logging
from menu_cache.core.startup_checks import (
    apply_migrations,
    ensure_migrations_applied,
    validate_database_environment,
)
from menu_cache.deps import shutdown_menu_service
from menu_cache.middleware.observability import ObservabilityMiddleware
import menu_cache.models  # registers tables before create_all

from menu_cache.routers.internal_metrics import router as internal_metrics_router
from menu_cache.routers.manual_submission import router as manual_submission_router
from menu_cache.routers.menu_data import router as menu_data_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield
    shutdown_menu_service()


app = FastAPI(
    title="Tenant Menu Cache API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            if AUTO_CREATE_SQLITE_SCHEMA:
                Base.metadata.create_all(bind=engine)
            logger.info("%s sqlite schema ready url=%s", STARTUP_PREFIX, DATABASE_URL)
            return
        apply_migrations(alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


# Routers
app.include_router(menu_data_router)
app.include_router(manual_submission_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
