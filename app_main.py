"""Application entry point for the Classroom Quiz API."""

from __future__ import annotations

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.row_store import InMemoryRowStore
from classroom_app.server.api_server import run_api_server
from classroom_app.utils.logging_config import configure_logging
from classroom_app.utils.settings import get_settings


def main() -> None:
    """Initialize logging, build the services, and serve the API."""
    settings = get_settings()
    logger = configure_logging(settings.log_level.upper())
    logger.info("Starting Classroom Quiz on %s:%d", settings.host, settings.port)

    manager = ClassroomManager(store=InMemoryRowStore(), shuffle_seed=settings.shuffle_seed)
    run_api_server(manager, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
