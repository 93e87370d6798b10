"""Response envelope shared by the Kagi FastGPT and Summarizer APIs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class KagiMeta(_Lenient):
    id: str | None = None
    node: str | None = None
    ms: int | None = None
    api_balance: float | None = None


class KagiApiError(_Lenient):
    code: int | None = None
    msg: str | None = None


class KagiReference(_Lenient):
    title: str | None = None
    snippet: str | None = None
    url: str | None = None


class KagiData(_Lenient):
    output: str | None = None
    tokens: int | None = None
    references: list[KagiReference] = []


class KagiResponse(_Lenient):
    meta: KagiMeta = KagiMeta()
    data: KagiData | None = None
    # The API sends a list of error objects; a single object is also accepted.
    error: list[KagiApiError] | KagiApiError | None = None

    @property
    def first_error(self) -> KagiApiError | None:
        if self.error is None:
            return None
        if isinstance(self.error, list):
            return self.error[0] if self.error else None
        return self.error
