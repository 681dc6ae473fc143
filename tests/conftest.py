"""Shared test harness wiring."""

from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep one test's structlog configuration (and its stream) from leaking into the next."""

    yield
    structlog.reset_defaults()
