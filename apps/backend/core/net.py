"""
HTTP client with classified retries, exponential backoff and cancellation.

Every outcome of a single attempt is one of:
- success (2xx): returned at once
- retryable (network error, timeout, 429 or a configured status): retried after backoff
- terminal (any other non-2xx): raised at once
"""
import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, FrozenSet

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .cancellation import CancellationToken
from .errors import (
    RateLimitedError,
    RetriesExhaustedError,
    RetryableFetchError,
    RetryableStatusError,
    TerminalHTTPError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry policy for one logical request.

    Delay before retry n (1-based) is base_delay * backoff_factor ** (n - 1),
    capped at max_delay. Only 429 is retried among HTTP statuses unless
    retryable_statuses says otherwise.
    """
    max_attempts: int = 4
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    timeout: float = DEFAULT_TIMEOUT
    retryable_statuses: FrozenSet[int] = field(default_factory=lambda: frozenset({429}))


class HTTPClient:
    """HTTP client with browser headers, classified retries and interruptible backoff"""

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            retry_config: Default policy, overridable per call
            user_agent: User-Agent sent with every request
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.retry_config = retry_config or RetryConfig()
        self.user_agent = user_agent or DEFAULT_UA
        self._transport = transport

    def _get_headers(self, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build request headers: fixed browser identity, caller headers on top"""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if custom_headers:
            headers.update(custom_headers)
        return headers

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        token: Optional[CancellationToken] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> httpx.Response:
        return await self.execute(
            "GET", url, params=params, headers=headers, token=token, retry_config=retry_config
        )

    async def execute(
        self,
        method: str,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry_config: Optional[RetryConfig] = None,
        token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """
        Issue one logical request, retrying retryable failures.

        Args:
            method: HTTP method
            url: URL to request
            body: dict/list sent as JSON, str/bytes sent as-is
            headers: Extra headers merged over the defaults
            params: Query parameters
            retry_config: Policy for this call (defaults to the client's)
            token: Cancellation token; backoff sleeps and requests abort when it fires

        Returns:
            The 2xx response

        Raises:
            TerminalHTTPError: non-retryable status
            RetriesExhaustedError: every attempt failed with a retryable error
            OperationCancelled: the token fired
        """
        config = retry_config or self.retry_config
        token = token or CancellationToken()
        request_headers = self._get_headers(headers)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, config.max_attempts)),
            wait=wait_exponential(
                multiplier=config.base_delay,
                exp_base=config.backoff_factor,
                max=config.max_delay,
            ),
            retry=retry_if_exception_type(RetryableFetchError),
            sleep=token.sleep,
            before_sleep=self._log_retry,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    token.raise_if_cancelled()
                    response = await self._attempt(
                        method, url, body, request_headers, params, config, token
                    )
        except RetryError as e:
            last_attempt = e.last_attempt
            last_error = last_attempt.exception()
            logger.error(
                f"[net] Giving up on {method} {url} after {last_attempt.attempt_number} attempts: {last_error}"
            )
            raise RetriesExhaustedError(url, last_attempt.attempt_number, last_error) from last_error

        return response

    async def _attempt(
        self,
        method: str,
        url: str,
        body: Optional[Any],
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]],
        config: RetryConfig,
        token: CancellationToken,
    ) -> httpx.Response:
        """Run a single attempt and classify its outcome"""
        request_kwargs: Dict[str, Any] = {"headers": headers, "params": params}
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        elif body is not None:
            request_kwargs["content"] = body

        timeout = httpx.Timeout(config.timeout)
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=self._transport
        ) as client:
            start_time = time.time()
            try:
                # The deadline covers the whole attempt, body included
                response = await token.guard(asyncio.wait_for(
                    client.request(method.upper(), url, **request_kwargs), timeout=config.timeout
                ))
            except httpx.TransportError as e:
                raise TransientNetworkError(
                    f"{type(e).__name__} requesting {url}: {e}", url=url
                ) from e
            except asyncio.TimeoutError as e:
                raise TransientNetworkError(
                    f"attempt timed out after {config.timeout}s requesting {url}", url=url
                ) from e
            elapsed_ms = int((time.time() - start_time) * 1000)

        status = response.status_code
        logger.info(f"[net] {method.upper()} {status} {url} ({len(response.content)} bytes, {elapsed_ms}ms)")

        if 200 <= status < 300:
            return response
        if status == 429:
            raise RateLimitedError(f"rate limited: {status} {response.reason_phrase}", url=url, status_code=status)
        if status in config.retryable_statuses:
            raise RetryableStatusError(
                f"retryable status: {status} {response.reason_phrase}", url=url, status_code=status
            )
        raise TerminalHTTPError(f"request failed {status}: {response.reason_phrase}", url=url, status_code=status)

    @staticmethod
    def _log_retry(retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"[net] Attempt {retry_state.attempt_number} failed ({error}), retrying in {delay:.2f}s"
        )
