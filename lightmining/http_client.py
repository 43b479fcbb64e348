"""Proxied HTTP transport and proxy-rotating retry layer.

Classes:
    ProxiedHttpClient: One-shot aiohttp client bound to a single proxy.
    RetryingRequester: Bounded retry loop that rotates to the next proxy
        from the :class:`ProxyPool` on every attempt.

Retry flow for one request::

    attempt 1 -> proxy[i]   -- fail --> sleep 3s
    attempt 2 -> proxy[i+1] -- fail --> sleep 3s
    attempt 3 -> proxy[i+2] -- fail --> Result.failure(last error)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urljoin

import aiohttp
from aiohttp_socks import ProxyConnector, ProxyError, ProxyType

from lightmining.errors import ConfigurationError, Result, TransportError
from lightmining.proxy_manager import ProxyDescriptor, ProxyPool

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class ProxiedHttpClient:
    """Issue JSON requests to the mining API through one proxy.

    A fresh ``aiohttp.ClientSession`` is opened per request so that each
    attempt gets its own transport bound to its own proxy.

    Args:
        proxy: Proxy to route through.
        base_url: API origin; request paths are resolved against it.
        timeout: Total timeout in seconds, ``None`` for the aiohttp
            default.

    Raises:
        ConfigurationError: The proxy protocol is not ``http`` or
            ``socks5``.
    """

    def __init__(
        self,
        proxy: ProxyDescriptor,
        base_url: str,
        timeout: Optional[float] = None,
    ) -> None:
        if proxy.protocol not in ("http", "socks5"):
            logger.error(
                "[PROXY] Unsupported proxy protocol: %s", proxy.protocol,
            )
            raise ConfigurationError(
                f"Unsupported proxy protocol: {proxy.protocol}"
            )
        self.proxy = proxy
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout

    def _transport(
        self,
    ) -> Tuple[Optional[aiohttp.BaseConnector], Optional[str], Optional[aiohttp.BasicAuth]]:
        """Return ``(connector, proxy_url, proxy_auth)`` for one request.

        HTTP proxy credentials travel as ``proxy_auth`` rather than URL
        userinfo, so reserved characters in a password need no escaping.
        """
        if self.proxy.protocol == "socks5":
            connector = ProxyConnector(
                proxy_type=ProxyType.SOCKS5,
                host=self.proxy.host,
                port=self.proxy.port,
                username=self.proxy.username,
                password=self.proxy.password,
            )
            return connector, None, None
        proxy_auth = None
        if self.proxy.has_auth:
            proxy_auth = aiohttp.BasicAuth(
                self.proxy.username, self.proxy.password or "",
            )
        return None, self.proxy.endpoint(), proxy_auth

    async def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            TransportError: Connection / proxy failure, timeout, non-2xx
                status or a body that is not JSON.
        """
        url = urljoin(self.base_url, path.lstrip("/"))
        connector, proxy_url, proxy_auth = self._transport()

        session_kwargs: Dict[str, Any] = {}
        if connector is not None:
            session_kwargs["connector"] = connector
        if self.timeout:
            session_kwargs["timeout"] = aiohttp.ClientTimeout(
                total=self.timeout,
            )

        masked = self.proxy.masked()
        try:
            async with aiohttp.ClientSession(**session_kwargs) as session:
                async with session.request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    proxy=proxy_url,
                    proxy_auth=proxy_auth,
                ) as resp:
                    if not 200 <= resp.status < 300:
                        body = await resp.text()
                        raise TransportError(
                            f"HTTP {resp.status} from {path}: {body[:200]}",
                            proxy=masked,
                            status=resp.status,
                        )
                    return await resp.json(content_type=None)
        except TransportError:
            raise
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Request to {path} timed out", proxy=masked,
            ) from e
        except (aiohttp.ClientError, ProxyError, OSError, ValueError) as e:
            raise TransportError(
                f"{type(e).__name__}: {e}", proxy=masked,
            ) from e


ClientFactory = Callable[..., ProxiedHttpClient]


class RetryingRequester:
    """Send API requests with bounded retry and proxy rotation.

    Each attempt takes the next proxy from the pool, so a failed request is
    never retried against the same proxy.  Exhaustion is reported as a
    failed :class:`Result` carrying the last :class:`TransportError`.

    Args:
        pool: Shared proxy pool.
        base_url: Mining API origin.
        max_attempts: Default attempts per request.
        retry_delay: Seconds to wait between attempts.
        timeout: Per-request timeout passed to the client.
        client_factory: Builds a client for ``(proxy, base_url,
            timeout=...)``; tests inject fakes here.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        pool: ProxyPool,
        base_url: str,
        max_attempts: int = 3,
        retry_delay: float = 3.0,
        timeout: Optional[float] = None,
        client_factory: ClientFactory = ProxiedHttpClient,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.pool = pool
        self.base_url = base_url
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.client_factory = client_factory
        self.sleep = sleep

    async def get(
        self,
        path: str,
        token: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> Result[Any]:
        return await self._request(
            "GET", path, None, self._headers(token), max_attempts,
        )

    async def post(
        self,
        path: str,
        body: Optional[Any] = None,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        max_attempts: Optional[int] = None,
    ) -> Result[Any]:
        merged = dict(headers or {})
        merged.update(self._headers(token))
        return await self._request("POST", path, body, merged, max_attempts)

    @staticmethod
    def _headers(token: Optional[str]) -> Dict[str, str]:
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Any],
        headers: Dict[str, str],
        max_attempts: Optional[int],
    ) -> Result[Any]:
        if max_attempts is None:
            max_attempts = self.max_attempts
        attempts = max(1, max_attempts)
        last_error: Optional[TransportError] = None

        for attempt in range(1, attempts + 1):
            proxy = self.pool.next()
            client = self.client_factory(
                proxy, self.base_url, timeout=self.timeout,
            )
            logger.info("[PROXY] Using proxy: %s", proxy.masked())
            try:
                data = await client.request(
                    method, path, headers=headers or None, json_body=body,
                )
                return Result.success(data)
            except TransportError as e:
                last_error = e
                logger.error(
                    "[HTTP] %s %s via %s failed: %s",
                    method, path, proxy.masked(), e,
                )
                remaining = attempts - attempt
                if remaining > 0:
                    logger.warning(
                        "[RETRY] Retrying with next proxy... "
                        "(%d attempts left)",
                        remaining,
                    )
                    await self.sleep(self.retry_delay)

        logger.error("[HTTP] All %d attempts for %s failed.", attempts, path)
        return Result.failure(last_error)
