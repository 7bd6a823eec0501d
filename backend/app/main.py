"""HTTP API application (read-only view of stored signals)."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from app.api import router
from app.config import Settings, get_settings
from app.storage import get_database, init_database

logger = logging.getLogger(__name__)

API_TITLE = "Crypto Signals"
API_VERSION = "0.1.0"

NOISY_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "httpx", "httpcore", "asyncio")


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        f"API starting: {len(settings.symbols)} symbols, "
        f"interval={settings.interval}, profile={settings.strategy}"
    )
    await init_database()

    yield

    try:
        await get_database().close()
    except Exception as e:
        logger.warning(f"Error closing database: {e}")
    logger.info("API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API; signals are served under /api."""
    settings = settings or get_settings()
    api = FastAPI(
        title=API_TITLE,
        description="EMA+RSI+MACD signals for crypto futures and their outcomes",
        version=API_VERSION,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    api.include_router(router, prefix="/api")

    @api.get("/")
    async def index():
        return {"name": API_TITLE, "version": API_VERSION, "docs": "/docs"}

    @api.get("/health")
    async def health():
        return {"status": "healthy"}

    return api


app = create_app()


def main(verbose: bool = False):
    """Serve the API with uvicorn."""
    import uvicorn

    configure_logging(verbose)
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if verbose else "info")
