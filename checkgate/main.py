"""CheckGate — host and cluster resource monitoring.

FastAPI entry point. The lifespan owns the collection loop: tables are
created, the orchestrator is started, and on shutdown it is stopped after
any in-flight cycle has finished.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.router import api_router
from .database import close_engine, create_tables, get_engine
from .dependencies import get_app_config, get_orchestrator
from .middleware.error_handler import register_error_handlers
from .utils.logging import get_logger, setup_logging

config = get_app_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("checkgate.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("checkgate_starting", host=config.host, port=config.port, cluster_source=config.cluster_source)

    await create_tables(get_engine(config))
    orchestrator = get_orchestrator()
    await orchestrator.start()

    yield

    logger.info("checkgate_shutting_down")
    await orchestrator.stop()
    await close_engine()
    logger.info("checkgate_stopped")


app = FastAPI(
    title=config.app_name,
    description="Host and cluster resource monitoring",
    version=__version__,
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(api_router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok", "version": __version__}


def main():
    """Run the CheckGate server."""
    uvicorn.run(
        "checkgate.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
