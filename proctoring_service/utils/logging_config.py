"""
Logging setup for the proctoring service

Console output always; rotating files when LOG_TO_FILE is set. Proctoring
lines ("[PROCTOR] session=...") get their own file so a session can be
reconstructed without the request noise.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Iterable

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request or frame at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "absl")


class ProctorEventFilter(logging.Filter):
    """Passes only structured proctoring lines"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.getMessage().startswith("[PROCTOR]")


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    service_name: str = "proctoring-service",
    level: str = "INFO",
    log_to_file: bool = False,
    log_dir: str = "logs",
    quiet: Iterable[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        service_name: prefix for log file names
        level: DEBUG, INFO, WARNING or ERROR
        log_to_file: also write {service}.log, {service}_errors.log and
            {service}_proctor.log under log_dir
        log_dir: directory for the rotating files
        quiet: logger names raised to WARNING

    Returns:
        The service logger
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        handlers.append(_rotating_handler(directory / f"{service_name}.log", logging.DEBUG, 10, 5))
        handlers.append(_rotating_handler(directory / f"{service_name}_errors.log", logging.ERROR, 5, 3))

        proctor_handler = _rotating_handler(directory / f"{service_name}_proctor.log", logging.DEBUG, 10, 5)
        proctor_handler.addFilter(ProctorEventFilter())
        handlers.append(proctor_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured: level={level} files={'on' if log_to_file else 'off'}")
    return logger
