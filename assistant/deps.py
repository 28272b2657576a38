from functools import lru_cache

from redis.asyncio import Redis

from .functions.builtin import build_default_registry
from .functions.registry import ToolRegistry
from .provider.base import AdapterFactory
from .provider.google_sdk import create_google_adapter
from .redis_client import get_redis_client
from .settings import Settings, settings


def get_settings() -> Settings:
    return settings


async def get_redis() -> Redis:
    """
    FastAPI dependency that provides the shared Redis client.

    Tests override this with an in-memory fake.
    """
    return get_redis_client()


@lru_cache
def get_tool_registry() -> ToolRegistry:
    return build_default_registry()


def get_adapter_factory() -> AdapterFactory:
    """
    Factory used by each session to build its own model client.
    """
    return create_google_adapter


__all__ = ["get_adapter_factory", "get_redis", "get_settings", "get_tool_registry"]
