"""Logging setup for the API process."""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the root logger. Safe to call repeatedly."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not any(getattr(handler, "_app_handler", False) for handler in root.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler._app_handler = True
        root.addHandler(console_handler)

    # SQL statements are logged through DB_ECHO, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
