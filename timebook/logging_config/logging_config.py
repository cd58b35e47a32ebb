import logging
import logging.handlers
import os
from pathlib import Path


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10_000_000  # 10MB
LOG_BACKUPS = 5

# Handlers installed by the last setup_logging call
_installed_handlers: list[logging.Handler] = []


def _rotating_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(app_name: str = "timebook", log_dir: Path | str | None = None) -> Path:
    """Send logs to the console, a rotating log file and a separate error log

    Args:
        app_name: Name to use for log files
        log_dir: Directory of the log files, LOG_DIR or data/logs by default

    Returns:
        The directory the log files are written to

    """
    log_path = Path(log_dir or os.getenv("LOG_DIR", "data/logs"))
    os.makedirs(log_path, exist_ok=True)
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        raise OSError(f"Unknown LOG_LEVEL: {os.getenv('LOG_LEVEL')}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Calling twice must not duplicate every line
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    _installed_handlers.extend(
        [
            console_handler,
            _rotating_handler(log_path / f"{app_name}.log", level),
            _rotating_handler(log_path / f"{app_name}-error.log", logging.ERROR),
        ]
    )
    for handler in _installed_handlers:
        root_logger.addHandler(handler)

    return log_path
