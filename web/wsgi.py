"""
WSGI entrypoint for production (gunicorn/systemd).

This module should have no side effects beyond logging setup and creating the Flask app (which starts the controller).
"""
from controller.config import AppConfig
from controller.logger import configure_logging
from web.app import create_app

config = AppConfig()
configure_logging(config.log_level, config.log_dir)

app = create_app(config=config)
