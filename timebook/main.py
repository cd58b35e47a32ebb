import logging
import os
from typing import TypedDict

import uvicorn
from dotenv import load_dotenv

from timebook.api.main import create_app
from timebook.logging_config.logging_config import setup_logging
from timebook.store import STORAGE_BACKENDS, create_store


class AppConfig(TypedDict):
    """Configuration for the application"""

    DATA_DIR: str
    STORAGE: str
    AUTO_CREATE_PROJECTS: bool
    HOST: str
    PORT: int


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> AppConfig:
    """Load configuration from environment variables"""
    load_dotenv()

    storage = os.getenv("TIMEBOOK_STORAGE", "workbook").strip().lower()
    if storage not in STORAGE_BACKENDS:
        raise OSError(f"TIMEBOOK_STORAGE must be one of: {', '.join(STORAGE_BACKENDS)}")

    port = os.getenv("TIMEBOOK_PORT", "8000")
    if not port.isdigit():
        raise OSError(f"TIMEBOOK_PORT must be a port number, got {port!r}")

    return {
        "DATA_DIR": os.getenv("TIMEBOOK_DATA_DIR", "data"),
        "STORAGE": storage,
        "AUTO_CREATE_PROJECTS": _parse_bool(os.getenv("TIMEBOOK_AUTO_CREATE_PROJECTS", "true")),
        "HOST": os.getenv("TIMEBOOK_HOST", "127.0.0.1"),
        "PORT": int(port),
    }


# ruff: noqa: D103
def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting Timebook")

    config = load_config()
    store = create_store(
        storage=config["STORAGE"],
        data_dir=config["DATA_DIR"],
        auto_create_projects=config["AUTO_CREATE_PROJECTS"],
    )
    app = create_app(store)

    logger.info(f"Serving {config['STORAGE']} store from {config['DATA_DIR']} on {config['HOST']}:{config['PORT']}")
    uvicorn.run(app, host=config["HOST"], port=config["PORT"])


if __name__ == "__main__":
    main()
