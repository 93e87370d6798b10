"""Unit tests for package version resolution."""

from __future__ import annotations

import importlib.metadata
import importlib.util
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import pytest

import kagitools
from kagitools.fetcher import build_http_client


def test_dunder_version_matches_package_metadata_or_fallback() -> None:
    try:
        expected = version("kagitools")
    except PackageNotFoundError:
        expected = "0.0.0+unknown"

    assert kagitools.__version__ == expected


async def test_user_agent_carries_version() -> None:
    client = build_http_client()
    try:
        assert client.headers["user-agent"] == f"kagitools/{kagitools.__version__}"
    finally:
        await client.aclose()


def test_missing_package_metadata_emits_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise_package_not_found(_name: str) -> str:
        raise PackageNotFoundError

    monkeypatch.setattr(importlib.metadata, "version", _raise_package_not_found)

    init_path = Path(__file__).resolve().parents[2] / "src" / "kagitools" / "__init__.py"
    spec = importlib.util.spec_from_file_location("kagitools_version_test", init_path)
    assert spec is not None
    assert spec.loader is not None

    module = importlib.util.module_from_spec(spec)
    with pytest.warns(RuntimeWarning, match="Package metadata for 'kagitools' not found"):
        spec.loader.exec_module(module)

    assert module.__version__ == "0.0.0+unknown"
