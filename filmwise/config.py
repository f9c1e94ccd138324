from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent.parent

load_dotenv(ROOT / ".env")

APP_VERSION = "1.0.0"

# Every statement issued by the store helpers must finish within this window.
QUERY_TIMEOUT_SECONDS = 3.0

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 3
MAX_PER_PAGE = 50

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config:
    ENV = os.getenv("ENV", "development")
    APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "4000"))

    DATABASE_PATH = os.getenv("DATABASE_PATH", str(ROOT / "filmwise.db"))
    QUERY_TIMEOUT = float(os.getenv("QUERY_TIMEOUT", str(QUERY_TIMEOUT_SECONDS)))

    JWT_SECRET = os.getenv("JWT_SECRET", "jwt-secret")
    JWT_TTL_HOURS = int(os.getenv("JWT_TTL_HOURS", "24"))

    # seeded (or promoted) as the admin account at startup when both are set
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")

    # "local" keeps uploads on disk, "cloudinary" pushes them to Cloudinary
    IMAGE_STORE = os.getenv("IMAGE_STORE", "local")
    IMAGE_UPLOAD_FOLDER = os.getenv("IMAGE_UPLOAD_FOLDER", str(ROOT / "uploads" / "images"))
    CLOUD_NAME = os.getenv("CLOUD_NAME", "")
    CLD_API_KEY = os.getenv("CLD_API_KEY", "")
    CLD_API_SECRET = os.getenv("CLD_API_SECRET", "")
    IMAGE_BASE_URL = os.getenv("IMAGE_BASE_URL", "")
    MAX_IMAGE_BYTES = 10 << 20

    FILMWISE_CONFIG = os.getenv("FILMWISE_CONFIG", str(ROOT / "filmwise_config.yaml"))


def load_yaml_config(path: str | os.PathLike | None) -> dict[str, Any]:
    """Load the optional YAML settings file. A missing file yields an empty dict."""
    if not path:
        return {}
    config_file = Path(path)
    if not config_file.exists():
        return {}
    with open(config_file, "r") as f:
        data = yaml.safe_load(f)
    return data or {}


def setup_logging(settings: dict[str, Any]) -> logging.Logger:
    """Configure the `filmwise` logger from the `logging` section of the YAML file."""
    log_config = settings.get("logging", {}) or {}
    log_level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)

    logger = logging.getLogger("filmwise")
    logger.setLevel(log_level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    log_file = log_config.get("file")
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=log_config.get("max_bytes", 10485760),
            backupCount=log_config.get("backup_count", 5),
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
