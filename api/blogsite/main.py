from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from dotenv import load_dotenv

# Settings are read at import time, so .env has to be loaded first
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.staticfiles import StaticFiles  # noqa: E402

from .db import engine  # noqa: E402
from .errors import register_exception_handlers  # noqa: E402
from .media_vault import VAULT_URL_PREFIX  # noqa: E402
from .routers import auth, blogs, comments, system  # noqa: E402
from .settings import CORS_ORIGINS, LOG_LEVEL, RUN_MIGRATIONS  # noqa: E402

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    # Keep the logging set up by basicConfig below
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        alembic_cfg = _alembic_config()
        script = ScriptDirectory.from_config(alembic_cfg)
        head = script.get_current_head()

        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_rev = context.get_current_revision()
        finally:
            # Ensure connection is closed before calling command.upgrade
            engine.dispose()

        if current_rev == head:
            logger.info(f"Database is up to date (revision: {current_rev}), skipping migrations.")
            return

        logger.info(f"Current revision: {current_rev}, target revision: {head}. Running migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    if RUN_MIGRATIONS:
        run_migrations()
    else:
        logger.info("run_startup_tasks: RUN_MIGRATIONS is off, skipping migrations.")
    _STARTUP_COMPLETE = True
    logger.info("Startup tasks completed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't accept requests until migrations are done
    run_startup_tasks()
    logger.info("Blog API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Blogsite API",
    version="1.0.0",
    description="Blogging backend: articles, likes, views and threaded comments",
    lifespan=lifespan,
)

if "*" in CORS_ORIGINS:
    logger.warning(
        "CORS is configured to allow all origins. "
        "Browsers reject credentialed requests with a wildcard origin; set CORS_ORIGINS to specific domains."
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

register_exception_handlers(app)

app.include_router(system.router)
app.include_router(auth.router)
app.include_router(blogs.router)
app.include_router(comments.router)


# Mount vault directory for serving uploaded covers and avatars
vault_location = os.environ.get("VAULT_LOCATION")
if vault_location:
    vault_path = Path(vault_location)
    if not vault_path.exists():
        vault_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created vault directory {vault_location}")
    app.mount(VAULT_URL_PREFIX, StaticFiles(directory=str(vault_path)), name="vault")
    logger.info(f"Mounted vault at {VAULT_URL_PREFIX} from {vault_location}")
else:
    logger.warning("VAULT_LOCATION is not set; uploaded images will not be served")
