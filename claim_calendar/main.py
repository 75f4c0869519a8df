# claim_calendar/main.py
import logging
import os
from pathlib import Path
from typing import TypedDict

import uvicorn
from dotenv import load_dotenv

from claim_calendar.claims.memory import CustomerWorkMemory
from claim_calendar.claims.normalizer import EntryNormalizer
from claim_calendar.claims.tracker import ClaimTracker
from claim_calendar.claims.week import FULL_WEEK
from claim_calendar.db.kv_store import SQLiteKeyValueStore
from claim_calendar.logging_config.logging_config import setup_logging
from claim_calendar.monday.client import DEFAULT_BOARD_ID, MondayClient


class AppConfig(TypedDict):
    """Configuration for the application"""

    MONDAY_API_KEY: str | None
    MONDAY_BOARD_ID: str
    MONDAY_API_URL: str
    MONDAY_API_VERSION: str
    WEEK_DAYS: int
    DATA_DIR: str
    API_HOST: str
    API_PORT: int


def load_config() -> AppConfig:
    """Load configuration from environment variables"""
    load_dotenv()

    required_vars = {
        "MONDAY_BOARD_ID": os.getenv("MONDAY_BOARD_ID", DEFAULT_BOARD_ID),
        "MONDAY_API_URL": os.getenv("MONDAY_API_URL", MondayClient.API_URL),
        "MONDAY_API_VERSION": os.getenv("MONDAY_API_VERSION", MondayClient.API_VERSION),
        "DATA_DIR": os.getenv("DATA_DIR", "/data"),
    }

    missing = [k for k, v in required_vars.items() if not v]
    if missing:
        raise OSError(f"Missing required environment variables: {', '.join(missing)}")

    try:
        week_days = int(os.getenv("WEEK_DAYS", str(FULL_WEEK)))
        api_port = int(os.getenv("API_PORT", "8000"))
    except ValueError as e:
        raise OSError(f"Invalid numeric environment variable: {e}") from e

    return {
        **required_vars,
        "MONDAY_API_KEY": os.getenv("MONDAY_API_KEY") or None,
        "WEEK_DAYS": week_days,
        "API_HOST": os.getenv("API_HOST", "127.0.0.1"),
        "API_PORT": api_port,
    }


def build_tracker(config: AppConfig) -> ClaimTracker:
    """Wire the client, normalizer, storage and memory together"""
    store = SQLiteKeyValueStore(Path(config["DATA_DIR"]))
    monday_client = MondayClient(
        api_key=config["MONDAY_API_KEY"],
        api_url=config["MONDAY_API_URL"],
        api_version=config["MONDAY_API_VERSION"],
        logger=logging.getLogger("claim_calendar.monday"),
    )
    return ClaimTracker(
        monday_client=monday_client,
        normalizer=EntryNormalizer(logger=logging.getLogger("claim_calendar.normalizer")),
        memory=CustomerWorkMemory(store),
        store=store,
        board_id=config["MONDAY_BOARD_ID"],
        week_days=config["WEEK_DAYS"],
    )


# ruff: noqa: D103
def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting Claim Calendar")

    config = load_config()

    logger.info(f"Serving API on {config['API_HOST']}:{config['API_PORT']}")
    uvicorn.run(
        "claim_calendar.api.main:app",
        host=config["API_HOST"],
        port=config["API_PORT"],
        log_config=None,
    )


if __name__ == "__main__":
    main()
