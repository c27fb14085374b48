"""
Resilient async HTTP gateway for platform, auth and catalog requests.
Every call is bounded by an explicit deadline; there are no retries.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import GatewayError, TimeoutFailure
from shared.utils.logging import get_logger
from shared.utils.metrics import PLATFORM_LATENCY, PLATFORM_REQUESTS

logger = get_logger(__name__)


class ResilientGateway:
    """
    Shared outbound HTTP client.

    Exceeding the deadline cancels the in-flight request and raises
    TimeoutFailure. Other transport errors raise GatewayError. HTTP status
    codes are not interpreted here: the response is returned as-is and the
    caller decides what a non-2xx status means.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def default_timeout_s(self) -> float:
        return self._settings.request_timeout_s

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=self._settings.http_max_connections,
                max_keepalive_connections=20,
            ),
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        platform: str = "unknown",
        params: Any = None,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        json: Any = None,
        content: str | None = None,
        timeout_s: float | None = None,
    ) -> httpx.Response:
        """
        Perform one bounded request.

        Args:
            method: HTTP verb.
            url: Absolute URL.
            platform: Label for logs and metrics.
            params: Query parameters (a list of pairs allows repeated keys).
            headers: Request headers.
            data: Form body.
            json: JSON body.
            content: Raw text body.
            timeout_s: Deadline for the whole call; defaults to request_timeout_s.

        Returns:
            httpx.Response

        Raises:
            TimeoutFailure: The deadline elapsed; the request was cancelled.
            GatewayError: Any other transport failure.
        """
        if not self._client:
            raise RuntimeError("ResilientGateway not started. Call start() first.")

        deadline = timeout_s if timeout_s is not None else self._settings.request_timeout_s
        start_time = time.perf_counter()
        status = "unknown"

        try:
            resp = await asyncio.wait_for(
                self._client.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    data=data,
                    json=json,
                    content=content,
                    timeout=deadline,
                ),
                timeout=deadline,
            )
            status = str(resp.status_code)
            logger.debug(
                "gateway_request_complete",
                platform=platform,
                method=method,
                url=url,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return resp

        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            status = "timeout"
            logger.warning(
                "gateway_request_timeout",
                platform=platform,
                method=method,
                url=url,
                timeout_s=deadline,
            )
            raise TimeoutFailure(url, deadline) from exc

        except httpx.HTTPError as exc:
            status = "error"
            logger.warning(
                "gateway_request_error",
                platform=platform,
                method=method,
                url=url,
                error=str(exc),
            )
            raise GatewayError(url, str(exc) or type(exc).__name__) from exc

        finally:
            PLATFORM_REQUESTS.labels(platform=platform, status=status).inc()
            PLATFORM_LATENCY.labels(platform=platform).observe(time.perf_counter() - start_time)
