"""Shared test fixtures for the kagitools test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from kagitools.cache import ResponseCache
from kagitools.config import FastGPTSettings, Settings, SummarizerSettings, ToolsSettings


class FakeClock:
    """Manually advanced UTC clock for cache expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache("test", now=clock)


@pytest.fixture()
def settings() -> Settings:
    """Settings with a configured API key for both tools."""
    return Settings(
        tools=ToolsSettings(
            fastgpt=FastGPTSettings(api_key="test-key"),
            summarizer=SummarizerSettings(api_key="test-key"),
        )
    )


@pytest.fixture()
def fastgpt_body() -> dict:
    return {
        "meta": {"id": "120145ec", "node": "us-east", "ms": 812, "api_balance": 9.5},
        "data": {
            "output": "Python 3.12 was released on October 2, 2023 [1].",
            "tokens": 310,
            "references": [
                {
                    "title": "What's New In Python 3.12",
                    "snippet": "This article explains the new features in Python 3.12",
                    "url": "https://docs.python.org/3/whatsnew/3.12.html",
                }
            ],
        },
    }


@pytest.fixture()
def summarize_body() -> dict:
    return {
        "meta": {"id": "ab23c0", "node": "eu-west", "ms": 1920, "api_balance": 8.25},
        "data": {"output": "The article describes the release.", "tokens": 1204},
    }
