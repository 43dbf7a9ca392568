"""Pytest configuration for devbrain tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _isolate_devbrain_env(monkeypatch):
    """Keep a developer's own workspace settings out of the tests."""
    monkeypatch.delenv("DEVBRAIN_HOME", raising=False)
    monkeypatch.delenv("DEVBRAIN_LOG_LEVEL", raising=False)
    logging.getLogger("devbrain").handlers.clear()


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: unit=1s, integration=5s. An explicit timeout marker wins."""
    for item in items:
        if item.get_closest_marker("timeout") is not None:
            continue
        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))
