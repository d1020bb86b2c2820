"""Runtime configuration for dealerledger.

Configuration is an explicit value passed to the services that need it; there
is no process-wide preference object.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LedgerConfig:
    """Settings shared by the store factory, the services and the CLI."""

    database_path: Optional[str] = None
    log_level: str = "WARNING"
    max_write_retries: int = 3
    currency_symbol: str = "₹"


def load_config(environ: Optional[dict[str, str]] = None) -> LedgerConfig:
    """Build a LedgerConfig from environment variables.

    Reads DEALERLEDGER_DB_PATH, DEALERLEDGER_LOG_LEVEL,
    DEALERLEDGER_MAX_WRITE_RETRIES and DEALERLEDGER_CURRENCY.

    Raises:
        ValueError: If DEALERLEDGER_MAX_WRITE_RETRIES is not a positive integer
    """
    env = os.environ if environ is None else environ
    retries_raw = env.get("DEALERLEDGER_MAX_WRITE_RETRIES", "3")
    try:
        retries = int(retries_raw)
    except ValueError:
        raise ValueError(f"DEALERLEDGER_MAX_WRITE_RETRIES must be an integer, got '{retries_raw}'")
    if retries < 1:
        raise ValueError(f"DEALERLEDGER_MAX_WRITE_RETRIES must be at least 1, got {retries}")

    return LedgerConfig(
        database_path=env.get("DEALERLEDGER_DB_PATH"),
        log_level=env.get("DEALERLEDGER_LOG_LEVEL", "WARNING").upper(),
        max_write_retries=retries,
        currency_symbol=env.get("DEALERLEDGER_CURRENCY", "₹"),
    )


def configure_logging(config: LedgerConfig) -> None:
    """Configure root logging at the configured level."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
