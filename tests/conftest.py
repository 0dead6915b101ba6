"""Shared pytest fixtures."""

import pytest

from tests.helpers import FakeKupo


@pytest.fixture
def fake_kupo():
    """Empty in-memory indexer; tests fill in matches and datums."""
    return FakeKupo()


@pytest.fixture(autouse=True)
def no_kupo_url_env(monkeypatch):
    """Keep a developer's KUPO_URL from leaking into config tests."""
    monkeypatch.delenv("KUPO_URL", raising=False)
