"""Shared test fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo global structlog configuration made by CLI tests (bound to captured streams)."""
    yield
    structlog.reset_defaults()
