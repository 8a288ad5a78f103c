import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def init_logging(module_name: str, log_filename: str, log_dir: str | None = None) -> logging.Logger:
    """Return a logger writing to the project's ``logs`` directory."""
    if log_dir is None:
        base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        log_dir = os.path.join(base_dir, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, log_filename)

    logger = logging.getLogger(module_name)
    logger.setLevel(logging.INFO)

    if not any(
        isinstance(handler, RotatingFileHandler)
        and getattr(handler, "baseFilename", None) == os.path.abspath(log_path)
        for handler in logger.handlers
    ):
        file_handler = RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def configure_console_logging(level: int = logging.INFO) -> None:
    """Send root log records to stderr using :data:`LOG_FORMAT`."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
