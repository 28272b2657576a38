"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import assistant`
and `from tests.utils import ...` work consistently in all tests.
"""

import sys
from pathlib import Path

import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from assistant.settings import Settings  # noqa: E402
from tests.utils import FakeSocket, InMemoryRedis  # noqa: E402


@pytest.fixture
def redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def socket() -> FakeSocket:
    return FakeSocket()


@pytest.fixture
def config() -> Settings:
    return Settings(
        gemini_api_key="test-key",  # pragma: allowlist secret
        max_tool_iterations=10,
        thread_ttl_seconds=600,
    )
