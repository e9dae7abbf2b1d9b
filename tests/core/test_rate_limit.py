"""
Tests for rate limiting.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from academy.core.rate_limit import RateLimitExceeded, check_rate_limit, reset_memory_store


@pytest.fixture(autouse=True)
def clean_memory_store():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.mark.asyncio
async def test_memory_fallback_limits_requests():
    with patch("academy.core.rate_limit.get_redis", return_value=None):
        results = [await check_rate_limit("admin:approve:1", 3, 60) for _ in range(4)]

    assert results == [True, True, True, False]


@pytest.mark.asyncio
async def test_memory_fallback_keys_are_independent():
    with patch("academy.core.rate_limit.get_redis", return_value=None):
        assert await check_rate_limit("admin:approve:1", 1, 60) is True
        assert await check_rate_limit("admin:approve:1", 1, 60) is False
        assert await check_rate_limit("admin:approve:2", 1, 60) is True


def _redis_with_count(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, count, 1, True])
    client = MagicMock()
    client.pipeline.return_value = pipe
    return client


@pytest.mark.asyncio
async def test_redis_allows_under_limit():
    with patch("academy.core.rate_limit.get_redis", return_value=_redis_with_count(2)):
        assert await check_rate_limit("admin:reject:1", 10, 60) is True


@pytest.mark.asyncio
async def test_redis_blocks_at_limit():
    with patch("academy.core.rate_limit.get_redis", return_value=_redis_with_count(10)):
        assert await check_rate_limit("admin:reject:1", 10, 60) is False


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_memory():
    client = _redis_with_count(0)
    client.pipeline.return_value.execute = AsyncMock(side_effect=RedisConnectionError("down"))

    with patch("academy.core.rate_limit.get_redis", return_value=client):
        assert await check_rate_limit("admin:approve:1", 1, 60) is True
        assert await check_rate_limit("admin:approve:1", 1, 60) is False


def test_rate_limit_exceeded_detail():
    error = RateLimitExceeded(10, 60)

    assert error.status_code == 429
    assert error.detail["error"] == "RATE_LIMIT_EXCEEDED"
    assert error.headers == {"Retry-After": "60"}
