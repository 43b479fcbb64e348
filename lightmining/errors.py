"""Error taxonomy and result type for the light-mining bot.

Every layer below the orchestrator reports failures through these types
so that a caller can tell a missing field from a flaky proxy from a fatal
misconfiguration without inspecting exception messages.

Classes:
    ErrorKind: Enum classifying failures for retry / abort decisions.
    BotError: Base exception carrying an :class:`ErrorKind`.
    ConfigurationError: Missing input files, unsupported proxy protocol.
    TransportError: Connection, proxy, timeout or non-2xx failures.
    ApplicationError: API answered but the envelope lacks expected data.
    SigningError: Local message signing failed.
    Result: Tagged success / failure container returned by API calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Classification of errors for retry and abort decisions.

    Error Categories:
    - CONFIGURATION: Bad or missing inputs (fatal, process exits)
    - TRANSPORT: Network / proxy / HTTP status failures (retried)
    - APPLICATION: Success envelope without expected fields (wallet skipped)
    - SIGNING: Local cryptographic failure (not retried, wallet skipped)
    """
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    APPLICATION = "application"
    SIGNING = "signing"


class BotError(Exception):
    """Base class for all errors raised by the bot."""

    kind: ErrorKind = ErrorKind.APPLICATION


class ConfigurationError(BotError):
    kind = ErrorKind.CONFIGURATION


class TransportError(BotError):
    """A request could not be completed through the given proxy.

    Attributes:
        proxy: Masked proxy URL the request was routed through.
        status: HTTP status code, or ``None`` for connection errors.
    """

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        proxy: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.proxy = proxy
        self.status = status


class ApplicationError(BotError):
    kind = ErrorKind.APPLICATION


class SigningError(BotError):
    kind = ErrorKind.SIGNING


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation that may fail without raising.

    Attributes:
        value: Payload on success.
        error: The :class:`BotError` on failure, ``None`` on success.
    """

    value: Optional[T] = None
    error: Optional[BotError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BotError) -> "Result[T]":
        return cls(error=error)

    def __bool__(self) -> bool:
        return self.ok
