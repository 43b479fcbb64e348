"""Mining API operations: login handshake, user info, mining status.

Every network operation wraps the :class:`RetryingRequester` in its own
outer retry loop, so one logical call can reach ``operation_attempts x
request_attempts`` HTTP attempts before giving up.  Operations never raise
for expected failures; they return a :class:`Result` the orchestrator can
turn into "skip this wallet".

API envelopes look like ``{"code": 200, "data": {...}}``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from lightmining.errors import ApplicationError, Result, SigningError
from lightmining.http_client import RetryingRequester, SleepFunc
from lightmining.wallet_manager import sign_message

logger = logging.getLogger(__name__)

# Endpoints (relative to the API origin)
NONCE_PATH = "wallet/generateNonce"
LOGIN_PATH = "wallet/login"
USER_INFO_PATH = "user/getUserInfo"
MINING_TIME_PATH = "assignment/totalMiningTime"
START_MINING_PATH = "assignment/startMining"

DAY_SECONDS = 24 * 60 * 60

Signer = Callable[[str, str], str]


@dataclass(frozen=True)
class Session:
    """Bearer token for one wallet, valid for a single processing pass."""

    token: str
    wallet_address: str


@dataclass(frozen=True)
class UserInfo:
    user_id: Optional[Any]
    tw_name: Optional[str]
    total_reward: Optional[Any]

    @property
    def has_social_binding(self) -> bool:
        return bool(self.tw_name)


@dataclass(frozen=True)
class MinerStatus:
    """Snapshot of the wallet's last mining activation.

    Attributes:
        last_mining_time: Unix seconds of the last start, ``0`` if never.
        cooldown: Seconds between two allowed starts.
    """

    last_mining_time: int
    cooldown: int = DAY_SECONDS

    @property
    def next_eligible_time(self) -> int:
        return self.last_mining_time + self.cooldown

    def is_eligible(self, now: float) -> bool:
        """Mining may start only strictly after the cooldown has elapsed."""
        return now > self.next_eligible_time


def _payload(envelope: Any) -> Dict[str, Any]:
    """Return the ``data`` object of an API envelope, or ``{}``."""
    if isinstance(envelope, dict):
        data = envelope.get("data")
        if isinstance(data, dict):
            return data
    return {}


class AuthSession:
    """Client for the mining API built on a :class:`RetryingRequester`.

    Args:
        requester: Proxy-rotating request layer.
        invitation_code: Code sent with every login.
        attempts: Outer attempts per operation.
        retry_delay: Seconds between outer attempts.
        cooldown: Mining cooldown used to build :class:`MinerStatus`.
        signer: ``(message, private_key) -> signature``; raises
            :class:`SigningError` on failure.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        requester: RetryingRequester,
        invitation_code: str,
        attempts: int = 3,
        retry_delay: float = 3.0,
        cooldown: int = DAY_SECONDS,
        signer: Signer = sign_message,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.requester = requester
        self.invitation_code = invitation_code
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self.cooldown = cooldown
        self.signer = signer
        self.sleep = sleep

    async def _with_retries(
        self,
        label: str,
        call: Callable[[], Awaitable[Result[Any]]],
    ) -> Result[Any]:
        """Run *call* up to ``self.attempts`` times with a fixed delay."""
        result: Result[Any] = Result()
        for attempt in range(1, self.attempts + 1):
            result = await call()
            if result.ok:
                return result
            remaining = self.attempts - attempt
            if remaining > 0:
                logger.error("[API] Failed to %s: %s", label, result.error)
                logger.warning(
                    "[RETRY] Retrying %s... (%d attempts left)",
                    label, remaining,
                )
                await self.sleep(self.retry_delay)
        logger.error(
            "[API] Still unable to %s after retries: %s", label, result.error,
        )
        return result

    async def get_nonce(self, address: str) -> Result[str]:
        result = await self._with_retries(
            "generate nonce",
            lambda: self.requester.post(NONCE_PATH, {"walletAddress": address}),
        )
        if not result.ok:
            return result
        nonce = _payload(result.value).get("nonce")
        if not nonce:
            return Result.failure(
                ApplicationError(f"No nonce returned for {address}")
            )
        return Result.success(str(nonce))

    def sign(self, nonce: str, private_key: str) -> Result[str]:
        """Sign the login nonce locally; failures are not retried."""
        try:
            return Result.success(self.signer(nonce, private_key))
        except SigningError as exc:
            logger.error("[SIGN] %s", exc)
            return Result.failure(exc)

    async def login(
        self, address: str, nonce: str, signature: str,
    ) -> Result[Session]:
        body = {
            "address": address,
            "invitationCode": self.invitation_code,
            "message": nonce,
            "signature": signature,
        }
        result = await self._with_retries(
            "log in", lambda: self.requester.post(LOGIN_PATH, body),
        )
        if not result.ok:
            return result
        token = _payload(result.value).get("token")
        if not token:
            return Result.failure(
                ApplicationError(f"Login for {address} returned no token")
            )
        return Result.success(Session(token=token, wallet_address=address))

    async def get_user(self, token: str) -> Result[UserInfo]:
        result = await self._with_retries(
            "fetch user info",
            lambda: self.requester.get(USER_INFO_PATH, token),
        )
        if not result.ok:
            return result
        data = _payload(result.value)
        if not data:
            return Result.failure(ApplicationError("User info missing data"))
        return Result.success(UserInfo(
            user_id=data.get("userId"),
            tw_name=data.get("twName"),
            total_reward=data.get("totalReward"),
        ))

    async def get_miner_status(self, token: str) -> Result[MinerStatus]:
        result = await self._with_retries(
            "fetch mining status",
            lambda: self.requester.get(MINING_TIME_PATH, token),
        )
        if not result.ok:
            return result
        envelope = result.value
        if not isinstance(envelope, dict) or envelope.get("data") is None:
            return Result.failure(
                ApplicationError("Mining status missing data")
            )
        last = _payload(envelope).get("lastMiningTime") or 0
        return Result.success(
            MinerStatus(last_mining_time=int(last), cooldown=self.cooldown)
        )

    async def start_mine(self, token: str) -> Result[Any]:
        result = await self._with_retries(
            "start mining",
            lambda: self.requester.post(START_MINING_PATH, {}, token=token),
        )
        if not result.ok:
            return result
        if result.value is None:
            return Result.failure(
                ApplicationError("Start mining returned an empty response")
            )
        return result
