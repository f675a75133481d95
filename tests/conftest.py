"""
Shared pytest fixtures and configuration for cronlease tests.

This module provides:
- Auto-marking of tests by directory
- structlog state reset between tests, so ``capture_logs`` keeps working
"""

import sys
from pathlib import Path

import pytest
import structlog

# Ensure the cronlease package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests as unit unless they already carry the integration marker."""
    for item in items:
        if item.get_closest_marker("integration") is None:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration and bound context after each test."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
