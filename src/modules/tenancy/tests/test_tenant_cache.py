"""Unit tests for TenantCache key namespacing and get_or_set."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.modules.tenancy.cache import TenantCache, get_tenant_cache


def _redis_mock():
    client = AsyncMock()
    client.get.return_value = None
    return client


@pytest.mark.asyncio
async def test_keys_are_namespaced_per_tenant():
    client = _redis_mock()
    cache = TenantCache(client)
    org_id = uuid.uuid4()

    await cache.set(org_id, "recurring-invoices:upcoming", {"count": 1}, ttl=60)

    client.set.assert_awaited_once()
    args, kwargs = client.set.call_args
    assert args[0] == f"tenant:{org_id}:recurring-invoices:upcoming"
    assert kwargs["ex"] == 60


@pytest.mark.asyncio
async def test_get_or_set_computes_on_miss_and_caches():
    client = _redis_mock()
    cache = TenantCache(client)
    factory = AsyncMock(return_value={"total": "100.00"})

    value = await cache.get_or_set(uuid.uuid4(), "k", factory)

    assert value == {"total": "100.00"}
    factory.assert_awaited_once()
    client.set.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_or_set_returns_cached_value_without_calling_factory():
    client = _redis_mock()
    client.get.return_value = '{"total": "5.00"}'
    cache = TenantCache(client)
    factory = AsyncMock()

    value = await cache.get_or_set(uuid.uuid4(), "k", factory)

    assert value == {"total": "5.00"}
    factory.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalidate_tenant_deletes_matching_keys():
    org_id = uuid.uuid4()
    keys = [f"tenant:{org_id}:a", f"tenant:{org_id}:b"]

    async def _scan_iter(match, count):
        assert match == f"tenant:{org_id}:*"
        for key in keys:
            yield key

    client = MagicMock()
    client.scan_iter = _scan_iter
    client.delete = AsyncMock(return_value=1)
    cache = TenantCache(client)

    assert await cache.invalidate_tenant(org_id) == 2
    assert client.delete.await_count == 2


def test_get_tenant_cache_reuses_app_instance():
    request = MagicMock()
    request.app.state = MagicMock(spec=[])

    first = get_tenant_cache(request)
    second = get_tenant_cache(request)

    assert isinstance(first, TenantCache)
    assert first is second
