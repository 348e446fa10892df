import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import get_settings
from src.api.routes import admin_schedule, cron
from src.app_shell.config import validate_ops_rules
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load rules, check the host and bring the schema up to date before serving."""
    settings = get_settings()

    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(
            rules,
            settings.data_dir,
            environment=settings.environment,
            cron_secret=settings.cron_secret,
        )
        applied = SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()
    except Exception:
        logger.critical("Scheduler startup failed", exc_info=True)
        raise

    app.state.rules = rules
    app.state.environment = settings.environment
    logger.info(
        "Scheduler ready: rules %s, %d migration(s) applied, db=%s",
        settings.rules_path,
        len(applied),
        settings.db_path,
    )

    yield

    logger.info("Scheduler shutting down")


app = FastAPI(
    title="Content Scheduler API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(
    admin_schedule.router, prefix="/api/admin/scheduling", tags=["Admin Scheduling"]
)
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])


@app.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    return {
        "status": "ok",
        "service": "scheduler",
        "environment": getattr(request.app.state, "environment", None),
    }
