"""Per-wallet mining state machine and the daemon cycle loop.

For every wallet, every cycle::

    NonceRequested -> Signed -> LoggedIn -> UserChecked -> StatusChecked
        -> Eligible -> Started -> Activated
        -> NotEligible

Any failed step ends the wallet's pass for this cycle and the loop moves on
to the next wallet.  After all wallets the orchestrator waits
``cycle_interval`` seconds and starts over, forever, until :meth:`stop` is
called.

Classes:
    WalletOutcome: Where a wallet's pass ended.
    WalletReport: Outcome plus context for one wallet pass.
    CycleReport: All wallet reports of one cycle.
    Ticker: Interruptible fixed-interval wait between cycles.
    MiningOrchestrator: Drives :class:`AuthSession` and the activator.
"""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from lightmining.chain import Activator
from lightmining.errors import ConfigurationError
from lightmining.http_client import SleepFunc
from lightmining.session import AuthSession
from lightmining.utils import format_timestamp
from lightmining.wallet_manager import Wallet

logger = logging.getLogger(__name__)


class WalletOutcome(Enum):
    NONCE_FAILED = "nonce_failed"
    SIGN_FAILED = "sign_failed"
    LOGIN_FAILED = "login_failed"
    USER_FAILED = "user_failed"
    NOT_BOUND = "not_bound"  # no Twitter/X handle linked
    STATUS_FAILED = "status_failed"
    NOT_ELIGIBLE = "not_eligible"
    START_FAILED = "start_failed"
    ACTIVATION_FAILED = "activation_failed"
    ACTIVATED = "activated"
    ERROR = "error"  # unexpected exception


@dataclass
class WalletReport:
    """Result of one wallet's pass through the state machine.

    Attributes:
        address: Wallet address.
        outcome: Final state reached.
        next_eligible_time: Next allowed start (Unix seconds), when the
            mining status was fetched.
        tx_hash: Activation transaction hash, when activated.
        error: Error that ended the pass, if any.
    """

    address: str
    outcome: WalletOutcome
    next_eligible_time: Optional[int] = None
    tx_hash: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def started(self) -> bool:
        return self.outcome in (
            WalletOutcome.ACTIVATED, WalletOutcome.ACTIVATION_FAILED,
        )


@dataclass
class CycleReport:
    started_at: float
    reports: List[WalletReport] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return dict(Counter(r.outcome.value for r in self.reports))

    def summary(self) -> str:
        counts = self.counts()
        parts = [f"{name}={counts[name]}" for name in sorted(counts)]
        return f"{len(self.reports)} wallets: " + ", ".join(parts)


class Ticker:
    """Fixed-interval wait that returns early when a stop event is set.

    Args:
        interval: Seconds between ticks.
        sleep: Optional awaitable sleep; when given it replaces the
            event-based wait (tests use it to skip real time).
    """

    def __init__(
        self, interval: float, sleep: Optional[SleepFunc] = None,
    ) -> None:
        self.interval = interval
        self.sleep = sleep

    async def wait(self, stop_event: asyncio.Event) -> bool:
        """Wait one interval.

        Returns:
            ``True`` if the interval elapsed, ``False`` if stopped.
        """
        if self.sleep is not None:
            await self.sleep(self.interval)
            return not stop_event.is_set()
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            return False
        except asyncio.TimeoutError:
            return True


class MiningOrchestrator:
    """Process all wallets once per cycle, forever.

    Args:
        wallets: Wallets to mine for, processed in order.
        auth: API operations client.
        activator: On-chain activation collaborator.
        ticker: Wait between cycles.
        max_concurrent: ``1`` processes wallets sequentially; higher
            values run them as concurrent tasks bounded by a semaphore.
        clock: Returns the current Unix time in seconds.
        reporter: Called with each finished :class:`CycleReport`.
    """

    def __init__(
        self,
        wallets: Sequence[Wallet],
        auth: AuthSession,
        activator: Activator,
        ticker: Ticker,
        max_concurrent: int = 1,
        clock: Callable[[], float] = time.time,
        reporter: Optional[Callable[[CycleReport], None]] = None,
    ) -> None:
        self.wallets = list(wallets)
        self.auth = auth
        self.activator = activator
        self.ticker = ticker
        self.max_concurrent = max(1, max_concurrent)
        self.clock = clock
        self.reporter = reporter
        self._stop_event = asyncio.Event()
        self.cycles_completed = 0
        self.last_report: Optional[CycleReport] = None

    async def process_wallet(self, wallet: Wallet) -> WalletReport:
        """Run the state machine for one wallet."""
        address = wallet.address

        nonce_result = await self.auth.get_nonce(address)
        if not nonce_result.ok:
            logger.error("[WALLET] Unable to get nonce for wallet: %s", address)
            return WalletReport(
                address, WalletOutcome.NONCE_FAILED, error=nonce_result.error,
            )
        nonce = nonce_result.value

        sign_result = self.auth.sign(nonce, wallet.secret())
        if not sign_result.ok:
            logger.error("[WALLET] Unable to sign message for wallet: %s", address)
            return WalletReport(
                address, WalletOutcome.SIGN_FAILED, error=sign_result.error,
            )

        logger.info("[WALLET] Logging in wallet: %s", address)
        login_result = await self.auth.login(address, nonce, sign_result.value)
        if not login_result.ok:
            logger.error("[WALLET] Login failed for wallet: %s", address)
            return WalletReport(
                address, WalletOutcome.LOGIN_FAILED, error=login_result.error,
            )
        session = login_result.value
        logger.info("[WALLET] Login successful")

        logger.info("[WALLET] Checking user info...")
        user_result = await self.auth.get_user(session.token)
        if not user_result.ok:
            logger.error("[WALLET] Unable to get user info for wallet: %s", address)
            return WalletReport(
                address, WalletOutcome.USER_FAILED, error=user_result.error,
            )
        user = user_result.value
        logger.info(
            "[WALLET] User info: userId=%s twitter=%s totalReward=%s",
            user.user_id, user.tw_name, user.total_reward,
        )
        if not user.has_social_binding:
            logger.error(
                "[WALLET] Wallet %s has no Twitter/X account bound, skipping...",
                address,
            )
            return WalletReport(address, WalletOutcome.NOT_BOUND)

        logger.info("[WALLET] Checking mining status...")
        status_result = await self.auth.get_miner_status(session.token)
        if not status_result.ok:
            logger.error(
                "[WALLET] Unable to get mining status for wallet: %s", address,
            )
            return WalletReport(
                address, WalletOutcome.STATUS_FAILED, error=status_result.error,
            )
        status = status_result.value
        next_time = status.next_eligible_time
        logger.info(
            "[WALLET] Last mining time: %s",
            format_timestamp(status.last_mining_time),
        )

        if not status.is_eligible(self.clock()):
            logger.warning(
                "[WALLET] Mining already started, next mining time: %s",
                format_timestamp(next_time),
            )
            return WalletReport(
                address, WalletOutcome.NOT_ELIGIBLE, next_eligible_time=next_time,
            )

        logger.info("[WALLET] Starting mining for wallet: %s", address)
        start_result = await self.auth.start_mine(session.token)
        if not start_result.ok:
            logger.error("[WALLET] Unable to start mining for wallet: %s", address)
            return WalletReport(
                address, WalletOutcome.START_FAILED,
                next_eligible_time=next_time, error=start_result.error,
            )
        logger.info("[WALLET] Start mining response: %s", start_result.value)

        logger.info("[WALLET] Activating on-chain mining for wallet: %s", address)
        tx_hash = await self.activator.activate(wallet.secret())
        if not tx_hash:
            logger.error(
                "[WALLET] Wallet already started mining today "
                "or has insufficient balance",
            )
            return WalletReport(
                address, WalletOutcome.ACTIVATION_FAILED,
                next_eligible_time=next_time,
            )
        return WalletReport(
            address, WalletOutcome.ACTIVATED,
            next_eligible_time=next_time, tx_hash=tx_hash,
        )

    async def _safe_process(self, wallet: Wallet) -> WalletReport:
        try:
            return await self.process_wallet(wallet)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "[WALLET] Unexpected error processing %s: %s",
                wallet.address, e, exc_info=True,
            )
            return WalletReport(wallet.address, WalletOutcome.ERROR, error=e)

    async def run_cycle(self) -> CycleReport:
        """Process every wallet once."""
        report = CycleReport(started_at=self.clock())
        logger.warning("[CYCLE] === Server may respond slowly, please be patient ===")
        logger.info("[CYCLE] Processing all wallets: %d", len(self.wallets))

        if self.max_concurrent == 1:
            for wallet in self.wallets:
                if self._stop_event.is_set():
                    break
                report.reports.append(await self._safe_process(wallet))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def bounded(wallet: Wallet) -> WalletReport:
                async with semaphore:
                    return await self._safe_process(wallet)

            tasks = [asyncio.ensure_future(bounded(w)) for w in self.wallets]
            try:
                report.reports.extend(await asyncio.gather(*tasks))
            except BaseException:
                # A fatal error in one wallet must not leave the rest running
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        self.cycles_completed += 1
        self.last_report = report
        logger.info("[CYCLE] Cycle complete -- %s", report.summary())
        if self.reporter is not None:
            self.reporter(report)
        return report

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Run cycles until :meth:`stop` is called.

        Args:
            max_cycles: Stop after this many cycles (``None`` = never);
                ``--once`` uses ``1``.
        """
        logger.info("[CYCLE] Mining orchestrator started.")
        while not self._stop_event.is_set():
            await self.run_cycle()
            if max_cycles is not None and self.cycles_completed >= max_cycles:
                break
            logger.info(
                "[CYCLE] All wallets processed, cooling down %.0f seconds "
                "before the next check...",
                self.ticker.interval,
            )
            if not await self.ticker.wait(self._stop_event):
                break
        logger.info("[CYCLE] Mining orchestrator stopped.")

    def stop(self) -> None:
        self._stop_event.set()
