"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Generator

import pytest

from src.core.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Settings are cached for the whole process. Start (and leave) every test with a clean cache, so environment
    variables patched by a test only affect that test."""
    get_settings.cache_clear()
    try:
        yield
    finally:
        get_settings.cache_clear()
