"""Entry point for the API server."""

import contextlib

import structlog
import uvicorn

from deskspace.app import create_app
from deskspace.config import Settings
from deskspace.logging import configure_logging

logger = structlog.get_logger()


def main() -> None:
    """Entry point for python -m deskspace."""
    settings = Settings()
    configure_logging(debug=settings.debug)

    app = create_app(settings)
    logger.info("server_starting", host=settings.host, port=settings.port)

    # uvicorn handles SIGTERM/SIGINT and runs the lifespan shutdown itself
    with contextlib.suppress(KeyboardInterrupt):
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level="warning",
            access_log=False,
        )


if __name__ == "__main__":
    main()
