#!/usr/bin/env python
"""Development entrypoint: serve snapbox with Flask's built-in server."""
from loguru import logger

from controller.config import AppConfig
from controller.logger import configure_logging
from web.app import create_app


def main():
    config = AppConfig()
    configure_logging(config.log_level, config.log_dir)

    app = create_app(config=config)
    logger.info("Photo library: {}", config.library_dir)
    try:
        # threaded: /stream holds its connection open
        app.run(host=config.host, port=config.port, threaded=True, use_reloader=False)
    finally:
        app.controller.stop()


if __name__ == "__main__":
    main()
