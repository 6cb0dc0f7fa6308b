"""HTTP client for the upstream metadata provider (TMDB v3)."""

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from flixr.core.config import Settings
from flixr.core.exceptions import UpstreamError
from flixr.observability.metrics import record_upstream_request
from flixr.observability.tracing import trace_operation
from flixr.tmdb.keys import normalize_path

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Thin async wrapper around a long-lived ``httpx.AsyncClient``.

    Every call carries the deployment's constant parameters (the API
    credential and the adult content flag). They are merged last so a
    caller can never override them. Calls are not retried.

    Example:
        >>> upstream = UpstreamClient("https://api.themoviedb.org/3", "key")
        >>> payload = await upstream.get("/movie/550", {"append_to_response": "credits"})
        >>> payload["title"]
        'Fight Club'
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        include_adult: bool = False,
        timeout: float = 10.0,
        max_connections: int = 100,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the upstream client.

        Args:
            base_url: Provider base URL without trailing slash
            api_key: Provider credential, sent as ``api_key`` on every call
            include_adult: Value of the constant ``adult`` flag
            timeout: Per-request timeout in seconds
            max_connections: Connection pool size
            http_client: Pre-built client (tests inject a MockTransport here)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.include_adult = include_adult
        self.timeout = timeout

        if http_client is not None:
            self._http = http_client
        else:
            self._http = httpx.AsyncClient(
                timeout=timeout,
                limits=httpx.Limits(
                    max_connections=max_connections,
                    max_keepalive_connections=max_connections,
                ),
                headers={"Accept": "application/json"},
            )

        if not api_key:
            logger.warning("Upstream API key is empty, provider calls will be rejected")

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "UpstreamClient":
        return cls(
            base_url=settings.tmdb_base_url,
            api_key=settings.tmdb_api_key,
            include_adult=settings.tmdb_include_adult,
            timeout=settings.tmdb_timeout,
            max_connections=settings.tmdb_max_connections,
            http_client=http_client,
        )

    @property
    def fixed_params(self) -> dict[str, str]:
        """Constant parameters attached to every upstream call."""
        return {
            "api_key": self.api_key,
            "adult": "true" if self.include_adult else "false",
        }

    def build_params(self, params: Mapping[str, Any] | None) -> dict[str, Any]:
        """Merge caller parameters with the constant ones (constants win)."""
        merged: dict[str, Any] = {}
        for name, value in (params or {}).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            merged[name] = value
        merged.update(self.fixed_params)
        return merged

    @trace_operation("upstream.get")
    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        """Perform one GET and return the decoded JSON payload.

        Args:
            path: Upstream-relative path (e.g. ``/movie/top_rated``)
            params: Normalized query parameters

        Returns:
            Decoded JSON body

        Raises:
            UpstreamError: Non-2xx status, timeout, network failure or a
                body that is not valid JSON
        """
        path = normalize_path(path)
        url = f"{self.base_url}{path}"
        start = time.perf_counter()

        try:
            response = await self._http.get(url, params=self.build_params(params))
        except httpx.TimeoutException as e:
            latency_ms = (time.perf_counter() - start) * 1000
            record_upstream_request("timeout", latency_ms)
            logger.warning(f"Upstream timeout after {latency_ms:.0f}ms: {path}")
            raise UpstreamError(
                f"Upstream request timed out: {path}", path=path, timed_out=True
            ) from e
        except httpx.RequestError as e:
            latency_ms = (time.perf_counter() - start) * 1000
            record_upstream_request("error", latency_ms)
            logger.error(f"Upstream request error for {path}: {e}")
            raise UpstreamError(f"Upstream request failed: {e}", path=path) from e

        latency_ms = (time.perf_counter() - start) * 1000

        if not response.is_success:
            record_upstream_request("error", latency_ms, response.status_code)
            logger.warning(
                f"Upstream returned {response.status_code} for {path} "
                f"({latency_ms:.0f}ms)"
            )
            raise UpstreamError(
                f"Upstream returned HTTP {response.status_code}",
                status_code=response.status_code,
                path=path,
                details={"body": response.text[:500]},
            )

        try:
            payload = response.json()
        except ValueError as e:
            record_upstream_request("error", latency_ms, response.status_code)
            raise UpstreamError(
                f"Upstream returned invalid JSON for {path}", path=path
            ) from e

        record_upstream_request("success", latency_ms, response.status_code)
        logger.debug(f"Upstream {path} -> {response.status_code} ({latency_ms:.0f}ms)")
        return payload

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()
