"""Shared fixtures for retrieves tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from retrieves.classifier import GroupPath, classify
from retrieves.config import RetrievesConfig
from retrieves.integrates_client import IntegratesClient
from tests.integrates_fake import ENDPOINT, TOKEN, FakeIntegrates, group_data


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep real tokens and .env files out of the tests."""
    for name in ("INTEGRATES_API_TOKEN", "RETRIEVES_API_TOKEN", "RETRIEVES_SNAPSHOT_OVERRIDE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake() -> FakeIntegrates:
    return FakeIntegrates(group_data([("f-1", "001. SQL injection")]))


@pytest.fixture
def client_factory():
    def make(fake: FakeIntegrates, token: str | None = TOKEN) -> IntegratesClient:
        return IntegratesClient(ENDPOINT, token, max_retries=1, transport=fake.transport)

    return make


@pytest.fixture
def config() -> RetrievesConfig:
    return RetrievesConfig(api_token=TOKEN, endpoint=ENDPOINT, max_retries=1)


@pytest.fixture
def group(tmp_path: Path) -> GroupPath:
    source = tmp_path / "groups" / "acme" / "backend" / "src" / "app.py"
    source.parent.mkdir(parents=True)
    source.write_text("".join(f"line {n}\n" for n in range(1, 31)))
    classified = classify(source)
    assert classified is not None
    return classified
