"""Application configuration for the light-mining bot.

Central configuration module powered by Pydantic v2.  Settings are loaded from
environment variables (with ``.env`` file support).  Wallet and proxy lists
live in separate files referenced by ``wallets_file`` / ``proxies_file``.

Key exports:
    BotSettings: Root settings model (instantiate once in ``main.py``).
    BASE_DIR / CONFIG_DIR / LOGS_DIR: Canonical project paths.
"""

# pylint: disable=no-member

import logging
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``lightmining/``)."""

CONFIG_DIR: Path = BASE_DIR / "config"
"""Directory containing runtime input files (wallets, proxies)."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

logger: logging.Logger = logging.getLogger(__name__)


class BotSettings(BaseSettings):
    """Root configuration model for the light-mining bot.

    All fields can be set via environment variables or a ``.env`` file
    (e.g. ``CYCLE_INTERVAL_SECONDS=600``).

    Section overview:
        * **Core** -- log level.
        * **Mining API** -- base URL, invitation code.
        * **Inputs** -- wallet and proxy file paths.
        * **Retry policy** -- per-request attempts, per-operation
          attempts, fixed delay between attempts.
        * **Scheduling** -- cycle interval, mining cooldown, wallet
          concurrency.
        * **Chain** -- RPC endpoint and mining contract.
    """

    # Core
    log_level: str = "INFO"

    # Mining API
    api_base_url: str = "https://lightmining-api.taker.xyz/"
    invitation_code: str = "9M8HC"
    # None keeps the transport default
    request_timeout_seconds: Optional[float] = None

    # Inputs
    wallets_file: str = str(CONFIG_DIR / "wallets.json")
    proxies_file: str = str(CONFIG_DIR / "proxy.txt")

    # Retry policy
    # Proxy-rotating attempts per HTTP request
    request_attempts: int = 3
    # Outer attempts per API operation (each runs request_attempts)
    operation_attempts: int = 3
    retry_delay_seconds: float = 3.0

    # Scheduling
    cycle_interval_seconds: float = 3600
    mining_cooldown_seconds: int = 86400
    # 1 = strictly sequential wallets
    max_concurrent_wallets: int = 1
    # Print a rich table of wallet outcomes after every cycle
    show_cycle_table: bool = True

    # Chain
    rpc_url: str = "https://rpc-mainnet.taker.xyz/"
    contract_address: str = "0xB3eFE5105b835E5Dd9D206445Dbd66DF24b912AB"
    activation_receipt_timeout_seconds: float = 300

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
