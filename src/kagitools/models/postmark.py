"""Postmark inbound email webhook payload.

Field names follow Postmark's PascalCase JSON. Only ``MessageID`` is
required; everything else degrades to empty values.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _PostmarkModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PostmarkAddress(_PostmarkModel):
    email: str = Field("", alias="Email")
    name: str = Field("", alias="Name")


class PostmarkHeader(_PostmarkModel):
    name: str = Field("", alias="Name")
    value: str = Field("", alias="Value")


class PostmarkAttachment(_PostmarkModel):
    name: str = Field("", alias="Name")
    content_type: str = Field("", alias="ContentType")
    content_length: int = Field(0, alias="ContentLength")
    # Base64 body; kept out of repr so logs stay small
    content: str = Field("", alias="Content", repr=False)


class PostmarkInboundEmail(_PostmarkModel):
    message_id: str = Field(alias="MessageID", min_length=1)
    from_: str = Field("", alias="From")
    from_full: PostmarkAddress | None = Field(None, alias="FromFull")
    to: str = Field("", alias="To")
    to_full: list[PostmarkAddress] = Field(default_factory=list, alias="ToFull")
    cc: str | None = Field(None, alias="Cc")
    cc_full: list[PostmarkAddress] = Field(default_factory=list, alias="CcFull")
    reply_to: str | None = Field(None, alias="ReplyTo")
    subject: str = Field("", alias="Subject")
    date: str = Field("", alias="Date")
    text_body: str = Field("", alias="TextBody")
    html_body: str = Field("", alias="HtmlBody")
    stripped_text_reply: str | None = Field(None, alias="StrippedTextReply")
    tag: str | None = Field(None, alias="Tag")
    headers: list[PostmarkHeader] = Field(default_factory=list, alias="Headers")
    attachments: list[PostmarkAttachment] = Field(default_factory=list, alias="Attachments")

    @property
    def sender_display(self) -> str:
        if self.from_full is not None and self.from_full.name:
            return self.from_full.name
        return self.from_

    @property
    def body_text(self) -> str:
        """Stripped reply when Postmark found one, else the full text body."""
        return self.stripped_text_reply or self.text_body or ""
