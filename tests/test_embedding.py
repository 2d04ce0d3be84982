"""Tests for the embedding client and the query embedding cache."""

import json

import httpx
import numpy as np
import pytest

from libs.common.errors import EmbeddingDimensionMismatch, ProviderRateLimited, ProviderUnavailable
from libs.embedding.cache import CachedEmbedder
from libs.embedding.client import EmbeddingClient

from tests.fakes import FakeEmbedder, FakeRedis


def make_client(handler, dimension=3) -> EmbeddingClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmbeddingClient("http://embedding:9006/", dimension=dimension, model="mini", http_client=http_client)


@pytest.mark.asyncio
async def test_embed_posts_query_and_returns_vector():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"vectors": [[0.1, 0.2, 0.3]], "model": "mini"})

    client = make_client(handler)
    vector = await client.embed("refund policy")

    assert vector.dtype == np.float32
    assert vector.shape == (3,)
    assert str(requests[0].url) == "http://embedding:9006/api/v1/embed"
    assert json.loads(requests[0].content) == {"items": [{"text": "refund policy"}], "model": "mini"}


@pytest.mark.asyncio
async def test_rate_limit_carries_retry_after():
    client = make_client(lambda request: httpx.Response(429, headers={"Retry-After": "7"}))
    with pytest.raises(ProviderRateLimited) as exc_info:
        await client.embed("query")
    assert exc_info.value.retry_after == 7.0


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 500, 503])
async def test_error_status_is_unavailable(status_code):
    client = make_client(lambda request: httpx.Response(status_code))
    with pytest.raises(ProviderUnavailable):
        await client.embed("query")


@pytest.mark.asyncio
async def test_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        await make_client(handler).embed("query")


@pytest.mark.asyncio
async def test_malformed_payload_is_unavailable():
    client = make_client(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(ProviderUnavailable):
        await client.embed("query")


@pytest.mark.asyncio
async def test_wrong_dimension_is_configuration_error():
    client = make_client(lambda request: httpx.Response(200, json={"vectors": [[0.1, 0.2]]}))
    with pytest.raises(EmbeddingDimensionMismatch):
        await client.embed("query")


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    client = EmbeddingClient("http://embedding", dimension=3, http_client=http_client)
    await client.close()
    assert not http_client.is_closed
    await http_client.aclose()


@pytest.mark.asyncio
async def test_cache_hit_skips_provider(metrics):
    inner = FakeEmbedder()
    redis_client = FakeRedis()
    cached = CachedEmbedder(inner, redis_client, ttl_seconds=60, namespace="mini", metrics=metrics)

    first = await cached.embed("refund policy")
    second = await cached.embed("refund policy")

    assert inner.calls == ["refund policy"]
    np.testing.assert_array_equal(first, second)
    assert list(redis_client.ttls.values()) == [60]
    exposition = metrics.get_metrics()
    assert 'rag_cache_hits_total{cache_type="query_embedding"} 1.0' in exposition
    assert 'rag_cache_misses_total{cache_type="query_embedding"} 1.0' in exposition


@pytest.mark.asyncio
async def test_cache_outage_falls_through():
    inner = FakeEmbedder()
    cached = CachedEmbedder(inner, FakeRedis(fail=True))

    vector = await cached.embed("refund policy")

    assert vector.shape == (inner.dimension,)
    assert inner.calls == ["refund policy"]


@pytest.mark.asyncio
async def test_cache_discards_wrong_dimension_entry():
    inner = FakeEmbedder()
    redis_client = FakeRedis()
    cached = CachedEmbedder(inner, redis_client)
    redis_client.store[cached._cache_key("query")] = json.dumps({"embedding": [1.0, 2.0]}).encode()

    await cached.embed("query")
    assert inner.calls == ["query"]


@pytest.mark.asyncio
async def test_cache_keys_are_namespaced_by_model():
    inner = FakeEmbedder()
    a = CachedEmbedder(inner, FakeRedis(), namespace="model-a")
    b = CachedEmbedder(inner, FakeRedis(), namespace="model-b")
    assert a._cache_key("query") != b._cache_key("query")


@pytest.mark.asyncio
async def test_cache_close_closes_both():
    inner = FakeEmbedder()
    redis_client = FakeRedis()
    await CachedEmbedder(inner, redis_client).close()
    assert inner.closed and redis_client.closed
