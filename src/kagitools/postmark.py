"""Postmark inbound email webhook.

``PostmarkWebhookHandler`` is a claim-or-pass ASGI handler: it returns
``False`` without touching the response when the request path is not its
own, and ``True`` once it has written a response. ``WebhookRouter`` (see
transport.py) offers each HTTP request to its handlers in turn.

A valid email is reduced to a short human-readable summary and handed to a
``MessageSink``. The webhook never authenticates the sender.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse

from kagitools.fetcher import call_with_timeout
from kagitools.models.postmark import PostmarkInboundEmail

if TYPE_CHECKING:
    import httpx
    from starlette.types import Receive, Scope, Send

    from kagitools.protocols import MessageSink

log = structlog.get_logger()

DEFAULT_WEBHOOK_PATH = "/webhooks/postmark"
MAX_BODY_CHARS = 1000
FORWARD_TIMEOUT_SECONDS = 10.0


def format_inbound_email(email: PostmarkInboundEmail, max_chars: int = MAX_BODY_CHARS) -> str:
    """Render the message the agent sees for one inbound email."""
    text = email.body_text
    excerpt = text[:max_chars] + ("..." if len(text) > max_chars else "")
    return "\n".join(
        [
            "📧 **New Email**",
            "",
            f"**From:** {email.sender_display}",
            f"**Subject:** {email.subject}",
            "",
            excerpt,
        ]
    )


class LogSink:
    """Writes summaries to the structured log. Default when nothing else is configured."""

    async def send(self, message: str) -> None:
        log.info("postmark_message", message=message)


class HttpForwardSink:
    """POSTs ``{"message": ...}`` to a downstream URL (chat bridge, agent inbox, ...)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        timeout_seconds: float = FORWARD_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._url = url
        self._timeout_seconds = timeout_seconds

    async def send(self, message: str) -> None:
        request = self._client.build_request("POST", self._url, json={"message": message})
        response = await call_with_timeout(self._client, request, self._timeout_seconds)
        response.raise_for_status()


async def _read_body(receive: Receive) -> bytes:
    """Accumulate ``http.request`` chunks until the client signals the end."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnect()
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks)


class PostmarkWebhookHandler:
    def __init__(self, *, path: str = DEFAULT_WEBHOOK_PATH, sink: MessageSink | None = None) -> None:
        self.path = path
        self.sink: MessageSink = sink if sink is not None else LogSink()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> bool:
        if scope["type"] != "http" or scope["path"] != self.path:
            return False

        log.info("postmark_handler_called", method=scope["method"], path=scope["path"])

        if scope["method"] != "POST":
            await JSONResponse(
                {"error": "Method not allowed"},
                status_code=405,
                headers={"Allow": "POST"},
            )(scope, receive, send)
            return True

        try:
            body = await _read_body(receive)
            email = PostmarkInboundEmail.model_validate_json(body)
        except (ValidationError, ClientDisconnect) as exc:
            log.error("postmark_invalid_payload", error=str(exc))
            await JSONResponse({"error": "Invalid payload"}, status_code=400)(scope, receive, send)
            return True

        log.info(
            "postmark_email_received",
            message_id=email.message_id,
            subject=email.subject,
            sender=email.from_,
            body_chars=len(email.body_text),
            attachment_count=len(email.attachments),
        )

        # A valid payload is always acknowledged, forwarded or not.
        try:
            await self.sink.send(format_inbound_email(email))
        except Exception:
            log.error("postmark_forward_failed", message_id=email.message_id, exc_info=True)

        await JSONResponse({"ok": True, "messageId": email.message_id})(scope, receive, send)
        return True
