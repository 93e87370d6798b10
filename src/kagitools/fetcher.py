"""Timeout-bounded HTTP client for the Kagi API.

All upstream network I/O goes through a single Fetcher instance shared by
every tool. The Fetcher receives an httpx.AsyncClient via constructor
injection; the server owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from kagitools import __version__
from kagitools.errors import ErrorCode, KagiToolError, UpstreamTimeout
from kagitools.models.kagi import KagiResponse

if TYPE_CHECKING:
    from collections.abc import Mapping

log = structlog.get_logger()


def build_http_client() -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup.

    No client-level timeout: each call is bounded by ``call_with_timeout``
    using the deadline resolved from that tool's config.
    """
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(None),
        headers={"User-Agent": f"kagitools/{__version__}"},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


async def call_with_timeout(
    client: httpx.AsyncClient,
    request: httpx.Request,
    timeout_seconds: float,
) -> httpx.Response:
    """Send ``request`` and return its response, or raise UpstreamTimeout.

    The send is cancelled when the deadline passes, which closes the
    underlying connection. Error statuses are returned, not raised.
    """
    if timeout_seconds <= 0:
        raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds!r}")
    try:
        return await asyncio.wait_for(client.send(request), timeout=timeout_seconds)
    except TimeoutError as exc:
        raise UpstreamTimeout(str(request.url), timeout_seconds) from exc


def _response_detail(response: httpx.Response) -> str:
    try:
        return response.text.strip()
    except (UnicodeDecodeError, LookupError):
        return ""


class Fetcher:
    """Kagi API client: request building, timeout bounding and response interpretation."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    def build_request(
        self, url: str, payload: Mapping[str, Any], *, api_key: str
    ) -> httpx.Request:
        return self._client.build_request(
            "POST",
            url,
            json=dict(payload),
            headers={
                "Authorization": f"Bot {api_key}",
                "Accept": "application/json",
            },
        )

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        api_key: str,
        timeout_seconds: float,
        provider: str,
    ) -> KagiResponse:
        """POST ``payload`` to a Kagi endpoint and return the decoded envelope.

        Raises KagiToolError for timeouts, transport failures, non-2xx
        statuses, undecodable bodies and upstream-reported errors.
        """
        request = self.build_request(url, payload, api_key=api_key)
        try:
            response = await call_with_timeout(self._client, request, timeout_seconds)
        except UpstreamTimeout as exc:
            log.warning("upstream_timeout", provider=provider, timeout=timeout_seconds)
            raise KagiToolError(
                code=ErrorCode.UPSTREAM_TIMEOUT,
                message=f"{provider} API did not respond within {timeout_seconds}s.",
                suggestion="Try again later, or raise timeout_seconds for this tool.",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("upstream_unavailable", provider=provider, error=str(exc))
            raise KagiToolError(
                code=ErrorCode.UPSTREAM_UNAVAILABLE,
                message=f"Network error calling {provider} API: {exc}",
                suggestion="The Kagi API may be temporarily unreachable. Try again later.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            detail = _response_detail(response) or response.reason_phrase
            log.warning("upstream_http_error", provider=provider, status_code=response.status_code)
            raise KagiToolError(
                code=ErrorCode.UPSTREAM_HTTP_ERROR,
                message=f"{provider} API error ({response.status_code}): {detail}",
                suggestion=(
                    "Check the API key and account balance."
                    if response.status_code in (401, 402, 403)
                    else "The Kagi API may be temporarily unavailable."
                ),
                recoverable=response.status_code >= 500 or response.status_code == 429,
                status_code=response.status_code,
            )

        try:
            body = KagiResponse.model_validate_json(response.content)
        except ValidationError as exc:
            log.warning("upstream_bad_response", provider=provider, exc_info=True)
            raise KagiToolError(
                code=ErrorCode.UPSTREAM_BAD_RESPONSE,
                message=f"{provider} API returned an unreadable response.",
                suggestion="The Kagi API may be temporarily unavailable.",
                recoverable=True,
                status_code=response.status_code,
            ) from exc

        error = body.first_error
        if error is not None:
            log.warning("upstream_api_error", provider=provider, upstream_code=error.code)
            raise KagiToolError(
                code=ErrorCode.UPSTREAM_API_ERROR,
                message=f"{provider} API error: {error.msg or 'Unknown error'}",
                suggestion="Review the request parameters and the Kagi account status.",
                recoverable=False,
                status_code=response.status_code,
            )

        log.info(
            "upstream_complete",
            provider=provider,
            status_code=response.status_code,
            upstream_ms=body.meta.ms,
        )
        return body
