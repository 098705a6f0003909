"""FastAPI application for the A/B slot firmware flasher."""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from flasher.api.routes import router
from flasher.config import create_device_driver, load_settings
from flasher.services.image_worker import LocalImageWorker
from flasher.services.process import ShutdownGuard
from flasher.services.reporter import ReportService
from flasher.services.session import FlashSession
from flasher.services.state_manager import SessionState
from flasher.utils.logging import setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown hooks.

    Startup:
    - Load settings and initialize logger
    - Create the SessionState singleton
    - Instantiate the configured device driver
    - Start optional status reporting
    - Initialize the flash session in the background

    Shutdown:
    - Stop reporting and log shutdown message
    """
    settings = load_settings()
    logger = setup_logger("flasher", settings.log_file, level=settings.log_level_value)
    logger.info("Flasher starting up...")

    state = SessionState()

    try:
        device = create_device_driver(settings.device_driver)
    except Exception as e:
        logger.error(f"Failed to create device driver {settings.device_driver}: {e}", exc_info=True)
        device = None

    reporter: Optional[ReportService] = None
    if settings.report_url:
        reporter = ReportService(settings.report_url, state=state)
        reporter.start()

    worker = LocalImageWorker(settings.cache_dir)
    session = FlashSession(
        device=device,
        manifest_url=settings.manifest_url,
        storage_dir=settings.cache_dir,
        state=state,
    )
    app.state.session = session
    init_task = asyncio.create_task(session.initialize(worker))

    logger.info(f"Flasher ready on port {settings.port}")

    yield

    # Shutdown
    logger.info("Flasher shutting down...")
    if not init_task.done():
        init_task.cancel()
    if reporter is not None:
        await reporter.stop()


# Create FastAPI application
app = FastAPI(
    title="A/B Slot Firmware Flasher",
    description="Flash session service for dual-slot devices",
    version="1.0.0",
    lifespan=lifespan,
)

# Register API routes
app.include_router(router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "flasher", "version": "1.0.0"}


class GuardedServer(uvicorn.Server):
    """uvicorn server that asks for confirmation before exiting mid-session."""

    def __init__(self, config: uvicorn.Config, guard: Optional[ShutdownGuard] = None):
        super().__init__(config)
        self.guard = guard or ShutdownGuard()

    def handle_exit(self, sig, frame) -> None:
        if not self.guard.should_exit():
            return
        super().handle_exit(sig, frame)


def main():
    """Main entry point for running the server."""
    settings = load_settings()
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
        access_log=True,
    )
    GuardedServer(config).run()


if __name__ == "__main__":
    main()
