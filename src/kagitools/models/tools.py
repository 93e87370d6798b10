from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, field_validator


class _ToolInput(BaseModel):
    """Validated argument bag. Unknown or mistyped fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="after")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        # Empty or whitespace-only strings count as "not supplied"
        if isinstance(v, str):
            return v.strip() or None
        return v


class FastGPTInput(_ToolInput):
    query: StrictStr
    cache: StrictBool | None = None

    @field_validator("query", mode="after")
    @classmethod
    def query_required(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("query must be a non-empty string")
        return v.strip()


class SummarizeInput(_ToolInput):
    url: StrictStr | None = None
    text: StrictStr | None = None
    engine: StrictStr | None = None
    summary_type: StrictStr | None = None
    target_language: StrictStr | None = None
    cache: StrictBool | None = None


class FastGPTReference(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class FastGPTOutput(BaseModel):
    query: str
    provider: str = "kagi-fastgpt"
    took_ms: int
    answer: str
    tokens: int | None = None
    references: list[FastGPTReference] = []
    api_balance: float | None = None


class SummarizeOutput(BaseModel):
    provider: str = "kagi-summarizer"
    source: str
    engine: str
    summary_type: str
    target_language: str
    took_ms: int
    summary: str
    tokens: int | None = None
    api_balance: float | None = None
