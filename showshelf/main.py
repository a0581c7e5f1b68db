from fastapi import FastAPI
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from showshelf import __version__
from showshelf.api import library as library_api
from showshelf.database import Database
from showshelf.services.library import Library
from showshelf.startup import get_log_level_from_db, init_config, load_scan_settings
from showshelf.utils.logger import change_log_level_runtime, setup_logging


logger = logging.getLogger(__name__)


def create_app(database_url: Optional[str] = None, log_dir: Optional[str] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ✅ Setup Logging FIRST
        setup_logging("INFO", log_dir=log_dir)
        logger.info("Starting ShowShelf...")

        database = Database(database_url)
        try:
            database.init_db()
            init_config(database)
        except Exception as e:
            logger.error(f"✗ Database init failed: {e}")
            database.dispose()
            raise

        level = get_log_level_from_db(database)
        if level and level != "INFO":
            change_log_level_runtime(level)

        with database.session() as db:
            settings = load_scan_settings(db)
        app.state.database = database
        app.state.library = Library(database, settings=settings)
        logger.info(f"✓ Library ready ({database.url})")

        yield

        # Shutdown
        logger.info("Shutting down ShowShelf...")
        database.dispose()

    app = FastAPI(
        title="ShowShelf - Local Show Library",
        description="Index lokaler Serien-Verzeichnisse mit Wiedergabe-Fortschritt",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(library_api.router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    @app.get("/")
    async def root():
        return JSONResponse({
            "app": "ShowShelf",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        })

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
