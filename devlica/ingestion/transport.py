"""Rate-limit aware httpx transport for the GitHub API.

Wraps another async transport. Rate-limited responses (403/429) carrying a
usable Retry-After are retried after sleeping; healthy responses that show
the quota nearly spent pause until the window resets so the next burst of
calls does not hit the hard limit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
MAX_WAIT_SECONDS = 15 * 60
LOW_REMAINING_THRESHOLD = 10

SleepFunc = Callable[[float], Awaitable[None]]


class RateLimitExhaustedError(httpx.TransportError):
    """Raised when a request is still rate-limited after MAX_RETRIES attempts."""


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class RateLimitTransport(httpx.AsyncBaseTransport):
    """Throttle proactively and retry on rate-limit responses."""

    def __init__(
        self,
        base: httpx.AsyncBaseTransport | None = None,
        *,
        max_retries: int = MAX_RETRIES,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base = base or httpx.AsyncHTTPTransport()
        self._max_retries = max_retries
        self._sleep = sleep
        self._clock = clock

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        for attempt in range(1, self._max_retries + 1):
            response = await self._base.handle_async_request(request)

            if response.status_code not in (403, 429):
                await self._pause_if_nearly_exhausted(response)
                return response

            retry_after = _parse_int(response.headers.get("Retry-After"))
            if retry_after is None or retry_after <= 0 or retry_after >= MAX_WAIT_SECONDS:
                # Not something we can wait out; let the caller see the error.
                return response

            await response.aclose()
            if attempt == self._max_retries:
                break

            logger.warning(
                "rate limited on %s, retrying in %ds (attempt %d/%d)",
                request.url.path,
                retry_after,
                attempt,
                self._max_retries,
            )
            await self._sleep(retry_after)

        raise RateLimitExhaustedError(
            f"github rate limit: retries exhausted after {self._max_retries} attempts",
            request=request,
        )

    async def _pause_if_nearly_exhausted(self, response: httpx.Response) -> None:
        remaining = _parse_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is None or remaining >= LOW_REMAINING_THRESHOLD:
            return
        reset = _parse_int(response.headers.get("X-RateLimit-Reset"))
        if reset is None:
            return
        wait = reset - self._clock()
        if not 0 < wait < MAX_WAIT_SECONDS:
            return

        logger.warning(
            "approaching github rate limit (%d remaining), pausing %.0fs",
            remaining,
            wait + 1,
        )
        # Release the connection before sleeping.
        await response.aread()
        try:
            await self._sleep(wait + 1)
        except asyncio.CancelledError:
            await response.aclose()
            raise

    async def aclose(self) -> None:
        await self._base.aclose()
