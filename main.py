"""
Light-mining bot - Main Entry Point

Logs every configured wallet into the mining API through a rotating proxy
pool, starts mining when the 24h cooldown has elapsed, activates it on-chain,
then sleeps an hour and repeats.

Usage:
    python main.py                      # Run continuously
    python main.py --once               # Single pass over all wallets
    python main.py --concurrency 4      # Process up to 4 wallets at a time
    python main.py --wallets w.json --proxies p.txt
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from lightmining.chain import ContractActivator
from lightmining.config import BotSettings
from lightmining.errors import ConfigurationError
from lightmining.http_client import RetryingRequester
from lightmining.logging_setup import setup_logging
from lightmining.orchestrator import MiningOrchestrator, Ticker
from lightmining.proxy_manager import ProxyPool
from lightmining.report import print_cycle_report
from lightmining.session import AuthSession
from lightmining.wallet_manager import load_wallets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Light-mining multi-wallet bot")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--wallets", type=str, help="Path to wallets JSON file")
    parser.add_argument("--proxies", type=str, help="Path to proxy list file")
    parser.add_argument("--concurrency", type=int, help="Wallets processed concurrently")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL")
    parser.add_argument("--no-table", action="store_true", help="Skip the per-cycle summary table")
    return parser


def build_orchestrator(settings: BotSettings) -> MiningOrchestrator:
    """Wire the pool, API client and activator from *settings*.

    Raises:
        ConfigurationError: Wallet or proxy inputs are unusable.
    """
    wallets = load_wallets(settings.wallets_file)
    pool = ProxyPool.from_file(settings.proxies_file)

    requester = RetryingRequester(
        pool,
        settings.api_base_url,
        max_attempts=settings.request_attempts,
        retry_delay=settings.retry_delay_seconds,
        timeout=settings.request_timeout_seconds,
    )
    auth = AuthSession(
        requester,
        settings.invitation_code,
        attempts=settings.operation_attempts,
        retry_delay=settings.retry_delay_seconds,
        cooldown=settings.mining_cooldown_seconds,
    )
    activator = ContractActivator(
        settings.rpc_url,
        settings.contract_address,
        receipt_timeout=settings.activation_receipt_timeout_seconds,
    )
    return MiningOrchestrator(
        wallets,
        auth,
        activator,
        Ticker(settings.cycle_interval_seconds),
        max_concurrent=settings.max_concurrent_wallets,
        reporter=print_cycle_report if settings.show_cycle_table else None,
    )


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main execution loop.

    1. Parses command line arguments and loads settings.
    2. Sets up logging.
    3. Loads wallets and proxies (exit code 1 if unusable).
    4. Runs the orchestrator until SIGTERM / Ctrl-C (or one cycle with --once).
    """
    args = build_parser().parse_args(argv)

    settings = BotSettings()
    if args.wallets:
        settings.wallets_file = args.wallets
    if args.proxies:
        settings.proxies_file = args.proxies
    if args.concurrency:
        settings.max_concurrent_wallets = args.concurrency
    if args.no_table:
        settings.show_cycle_table = False
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings.log_level)

    try:
        orchestrator = build_orchestrator(settings)
    except ConfigurationError as e:
        logger.error("[CONFIG] %s. Exiting...", e)
        return 1

    def handle_sigterm():
        logger.info("Received SIGTERM. Initiating graceful shutdown...")
        orchestrator.stop()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, handle_sigterm)

    try:
        await orchestrator.run_forever(max_cycles=1 if args.once else None)
    except ConfigurationError as e:
        logger.error("[CONFIG] %s. Exiting...", e)
        return 1
    finally:
        if sys.platform != "win32":
            loop.remove_signal_handler(signal.SIGTERM)
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Stopping (KeyboardInterrupt)...")


if __name__ == "__main__":
    run()
