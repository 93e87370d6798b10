from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    MISSING_API_KEY = "missing_kagi_api_key"
    TOOL_DISABLED = "tool_disabled"
    INVALID_INPUT = "invalid_input"
    MISSING_INPUT = "missing_input"
    CONFLICTING_INPUT = "conflicting_input"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_HTTP_ERROR = "upstream_http_error"
    UPSTREAM_BAD_RESPONSE = "upstream_bad_response"
    UPSTREAM_API_ERROR = "upstream_api_error"


class KagiToolError(Exception):
    """Raised by tool handlers for all expected failure conditions.

    Caught at the tool boundary (``KagiTool.execute``) and serialised into a
    structured error result, so the calling agent can react to it. Only
    programmer-level failures are allowed to escape a tool call.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
        *,
        docs: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable
        self.docs = docs
        self.status_code = status_code

    def to_dict(self) -> dict:
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "recoverable": self.recoverable,
        }
        if self.status_code is not None:
            error["status_code"] = self.status_code
        if self.docs:
            error["docs"] = self.docs
        return {"error": error}


class UpstreamTimeout(Exception):
    """An upstream call did not complete before its deadline and was cancelled."""

    def __init__(self, url: str, timeout_seconds: float) -> None:
        super().__init__(f"Request to {url} timed out after {timeout_seconds}s")
        self.url = url
        self.timeout_seconds = timeout_seconds
