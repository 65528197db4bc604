"""Bearer-authenticated GET against the TrueLayer data API.

Uses `httpx.Client` with:
* Base URL from the resolved :class:`Environment`
* The access token passed per call (never cached here)
* Prometheus counter + histogram (labels: env, command, status)

No retries: a failed request is reported once with the provider body.
Tests swap the transport for `httpx.MockTransport`.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx
from prometheus_client import Counter, Histogram

from .commands import Request
from .config import Environment
from .errors import ProviderError

__all__ = ["DataClient"]

_LOG = logging.getLogger(__name__)

_REQUESTS_TOTAL = Counter(
    "tlob_http_requests_total",
    "HTTP requests to the data API",
    labelnames=["env", "command", "status"],
)
_LATENCY_SEC = Histogram(
    "tlob_http_latency_seconds",
    "Latency for data API requests",
    labelnames=["env", "command"],
)


class DataClient:
    def __init__(
        self,
        environment: Environment,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 20,
    ) -> None:
        self._env = environment
        self._client = httpx.Client(base_url=environment.api_base, timeout=timeout, transport=transport)

    def get(self, request: Request, access_token: str) -> Any:
        """Issue *request* and return the decoded JSON body."""
        command = request.command.value
        _LOG.debug(
            "GET %s", request.endpoint, extra={"env": self._env.name, "command": command, "endpoint": request.endpoint}
        )
        start = time.perf_counter()
        try:
            resp = self._client.get(
                request.endpoint,
                params=request.query_params or None,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.RequestError as exc:
            _REQUESTS_TOTAL.labels(self._env.name, command, "error").inc()
            raise ProviderError(f"request to {request.endpoint} failed: {exc}") from exc
        _LATENCY_SEC.labels(self._env.name, command).observe(time.perf_counter() - start)
        _REQUESTS_TOTAL.labels(self._env.name, command, resp.status_code).inc()

        if resp.is_error:
            raise ProviderError(resp.text, status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(resp.text, status_code=resp.status_code) from exc

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DataClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
