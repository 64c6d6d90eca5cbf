"""Entry point for the bill scanner API server."""

import uvicorn

from billscan.api.app import app
from billscan.utils.config import load_config
from billscan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    """Serve the API on the configured host and port."""
    config = load_config()
    setup_logging(config.log_level)
    logger.info("Starting bill scanner API on %s:%d", config.server.host, config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
