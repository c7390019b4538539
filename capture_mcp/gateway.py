"""Rate-limited request gateway shared by every tool shaper.

One gateway instance owns one pacing state per upstream API family. Every
outbound HTTP call passes through `RequestGateway.gated_call`, which:

1. Queues the caller behind the family's previous caller (strict FIFO).
2. Once at the head of the queue, sleeps until at least ``min_interval_ms`` has
   passed since the previous release, then records its own release time.
3. Hands the turn to the next waiter and performs exactly one request.
4. Classifies the outcome into an `ApiResponse` - it never raises for upstream,
   network or request-construction failures, and never retries.

Families are paced independently: a slow USAspending queue never delays SAM.gov
or Tango callers.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from .config.loader import get_config
from .config.schemas import CaptureConfig, UpstreamConfig
from .models.api import ApiResponse, FailureKind


class ApiFamily(str, Enum):
    """Upstream API families, each with its own pacing queue."""

    REGISTRY = "sam"
    SPENDING = "spending"
    AGGREGATOR = "aggregator"

    @property
    def label(self) -> str:
        return FAMILY_LABELS[self]


FAMILY_LABELS: dict[ApiFamily, str] = {
    ApiFamily.REGISTRY: "SAM.gov",
    ApiFamily.SPENDING: "USAspending",
    ApiFamily.AGGREGATOR: "Tango",
}

AGGREGATOR_KEY_HEADER = "X-API-Key"
REGISTRY_KEY_PARAM = "api_key"

NETWORK_ERROR_MESSAGE = "Network error: No response received from API"


@dataclass
class RateLimitState:
    """Pacing state for one API family.

    ``pending_tail`` is the turn future of the most recent caller to join the
    queue; the next caller waits on it before reading ``last_call_ms``.
    """

    min_interval_ms: float
    last_call_ms: float | None = None
    pending_tail: asyncio.Future[None] | None = None


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RequestGateway:
    """Paces, sends and classifies every upstream HTTP request."""

    def __init__(
        self,
        config: CaptureConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        """Initialize the gateway.

        Args:
            config: Optional configuration override. If None, loads from get_config()
            http_client: Optional pre-configured HTTPX client (useful for tests)
            clock: Millisecond clock used for pacing (defaults to time.monotonic)
            sleep: Coroutine function used to wait, taking seconds (defaults to asyncio.sleep)
        """
        if config is None:
            config = get_config()

        self.upstreams: dict[ApiFamily, UpstreamConfig] = {
            ApiFamily.REGISTRY: config.upstreams.sam,
            ApiFamily.SPENDING: config.upstreams.spending,
            ApiFamily.AGGREGATOR: config.upstreams.aggregator,
        }
        self.user_agent = config.server.user_agent
        self._states: dict[ApiFamily, RateLimitState] = {
            family: RateLimitState(min_interval_ms=upstream.min_interval_ms)
            for family, upstream in self.upstreams.items()
        }
        self._clock = clock or _monotonic_ms
        self._sleep = sleep or asyncio.sleep
        self._client = http_client or httpx.AsyncClient()

        logger.info(
            "Initialized RequestGateway: "
            + ", ".join(
                f"{family.value}={state.min_interval_ms:g}ms"
                for family, state in self._states.items()
            )
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RequestGateway:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def state(self, family: ApiFamily | str) -> RateLimitState:
        """Return the pacing state for a family."""
        return self._states[ApiFamily(family)]

    async def _wait_for_turn(self, family: ApiFamily) -> float:
        """Block until this caller may release a request for `family`.

        Returns:
            Milliseconds slept for pacing (0 if no wait was needed)
        """
        state = self._states[family]
        previous = state.pending_tail
        turn: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        state.pending_tail = turn

        try:
            if previous is not None and not previous.done():
                # shield: a cancelled waiter must not cancel the turn it is waiting on
                await asyncio.shield(previous)

            waited_ms = 0.0
            if state.last_call_ms is not None:
                elapsed_ms = self._clock() - state.last_call_ms
                if elapsed_ms < state.min_interval_ms:
                    waited_ms = state.min_interval_ms - elapsed_ms
                    logger.debug(
                        f"{family.label} rate limit: waiting {waited_ms:.0f}ms "
                        f"(min interval {state.min_interval_ms:g}ms)"
                    )
                    await self._sleep(waited_ms / 1000.0)

            state.last_call_ms = self._clock()
            return waited_ms
        finally:
            self._pass_turn(previous, turn)

    @staticmethod
    def _pass_turn(previous: asyncio.Future[None] | None, turn: asyncio.Future[None]) -> None:
        """Resolve `turn`, but never before the caller ahead of us has finished."""
        if turn.done():
            return
        if previous is None or previous.done():
            turn.set_result(None)
            return

        def _release(_: asyncio.Future[None]) -> None:
            if not turn.done():
                turn.set_result(None)

        previous.add_done_callback(_release)

    async def gated_call(
        self,
        family: ApiFamily | str,
        perform_request: Callable[[], Awaitable[httpx.Response]],
        *,
        endpoint: str | None = None,
    ) -> ApiResponse:
        """Pace and perform one upstream request.

        Args:
            family: API family whose queue the call joins
            perform_request: Thunk issuing exactly one HTTP request
            endpoint: Endpoint path, used only for logging

        Returns:
            ApiResponse with parsed JSON data on success, or a classified error
        """
        family = ApiFamily(family)
        await self._wait_for_turn(family)
        logger.debug(f"{family.label} request released: {endpoint or '<thunk>'}")

        try:
            response = await perform_request()
        except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as e:
            logger.warning(f"{family.label} request failed, no response: {type(e).__name__}: {e}")
            return ApiResponse.failure(
                f"{NETWORK_ERROR_MESSAGE} ({type(e).__name__})", FailureKind.NETWORK
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, TypeError) as e:
            logger.warning(f"{family.label} request could not be sent: {e}")
            return ApiResponse.failure(f"Request error: {e}", FailureKind.REQUEST)

        if not response.is_success:
            body = self._describe_body(response)
            logger.warning(
                f"{family.label} returned HTTP {response.status_code} for {endpoint or '<thunk>'}"
            )
            return ApiResponse.failure(
                f"API Error {response.status_code}: {body}",
                FailureKind.HTTP_STATUS,
                status_code=response.status_code,
            )

        if not response.content:
            return ApiResponse.ok({}, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"{family.label} returned a non-JSON body for {endpoint or '<thunk>'}")
            return ApiResponse.failure(
                f"Request error: response body is not valid JSON ({e})",
                FailureKind.REQUEST,
                status_code=response.status_code,
            )

        return ApiResponse.ok(data, status_code=response.status_code)

    @staticmethod
    def _describe_body(response: httpx.Response) -> str:
        """Serialize an error body as JSON when possible, raw text otherwise."""
        try:
            return json.dumps(response.json())
        except ValueError:
            return json.dumps(response.text)

    def _request_parts(
        self,
        family: ApiFamily,
        endpoint: str,
        params: dict[str, Any] | None,
        api_key: str | None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        upstream = self.upstreams[family]
        url = f"{upstream.base_url}/{endpoint.lstrip('/')}"
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        query = {key: value for key, value in (params or {}).items() if value is not None}

        if family is ApiFamily.REGISTRY and api_key:
            query[REGISTRY_KEY_PARAM] = api_key
        elif family is ApiFamily.AGGREGATOR and api_key:
            headers[AGGREGATOR_KEY_HEADER] = api_key

        return url, headers, query

    async def get(
        self,
        family: ApiFamily | str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        *,
        api_key: str | None = None,
    ) -> ApiResponse:
        """Issue a gated GET with query parameters."""
        family = ApiFamily(family)
        url, headers, query = self._request_parts(family, endpoint, params, api_key)
        timeout = self.upstreams[family].timeout_seconds

        async def _perform() -> httpx.Response:
            return await self._client.get(url, params=query, headers=headers, timeout=timeout)

        return await self.gated_call(family, _perform, endpoint=endpoint)

    async def post(
        self,
        family: ApiFamily | str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        *,
        api_key: str | None = None,
    ) -> ApiResponse:
        """Issue a gated POST with a JSON body."""
        family = ApiFamily(family)
        url, headers, query = self._request_parts(family, endpoint, None, api_key)
        timeout = self.upstreams[family].timeout_seconds

        async def _perform() -> httpx.Response:
            return await self._client.post(
                url,
                json=payload or {},
                params=query or None,
                headers=headers,
                timeout=timeout,
            )

        return await self.gated_call(family, _perform, endpoint=endpoint)


__all__ = ["ApiFamily", "RateLimitState", "RequestGateway"]
