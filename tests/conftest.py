"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import Iterator

import pytest

# The testing plugin is registered through a ``pytest11`` entry point for
# consumers.  Our own suite disables it (``-p no:zeptrion2mqtt``) and loads
# it here instead, so the package is imported after coverage has started.
pytest_plugins = ["zeptrion2mqtt.testing._plugin"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (full bridge with test doubles)"
    )


@pytest.fixture
def _restore_root_logger() -> Iterator[None]:
    """Save and restore root logger handlers and levels.

    ``configure_logging()`` replaces every root handler and adjusts the
    ``httpx`` logger; this puts both back after the test.
    """
    root = logging.getLogger()
    httpx_logger = logging.getLogger("httpx")
    original_handlers = root.handlers[:]
    original_level = root.level
    original_httpx_level = httpx_logger.level
    yield
    for h in root.handlers:
        if h not in original_handlers:
            h.close()
    root.handlers = original_handlers
    root.setLevel(original_level)
    httpx_logger.setLevel(original_httpx_level)
