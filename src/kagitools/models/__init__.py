from __future__ import annotations

from kagitools.models.cache import CacheEntry
from kagitools.models.kagi import KagiApiError, KagiData, KagiMeta, KagiReference, KagiResponse
from kagitools.models.postmark import (
    PostmarkAddress,
    PostmarkAttachment,
    PostmarkHeader,
    PostmarkInboundEmail,
)
from kagitools.models.tools import (
    FastGPTInput,
    FastGPTOutput,
    FastGPTReference,
    SummarizeInput,
    SummarizeOutput,
)

__all__ = [
    # cache
    "CacheEntry",
    # upstream
    "KagiApiError",
    "KagiData",
    "KagiMeta",
    "KagiReference",
    "KagiResponse",
    # webhook
    "PostmarkAddress",
    "PostmarkAttachment",
    "PostmarkHeader",
    "PostmarkInboundEmail",
    # tools
    "FastGPTInput",
    "FastGPTOutput",
    "FastGPTReference",
    "SummarizeInput",
    "SummarizeOutput",
]
