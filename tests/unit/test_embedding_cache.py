"""
Unit tests for the cache-aware embedding client
"""

import asyncio

import numpy as np
import pytest

from giftsearch.ml.caching import EmbeddingCache
from giftsearch.ml.embeddings import calculate_cost
from giftsearch.ml.errors import ExternalServiceError

from fakes import FakeClock, FakeEmbeddingProvider, InMemoryCache


def make_cache(ml_config, provider=None, cache=None):
    provider = provider or FakeEmbeddingProvider(dimension=ml_config.embedding.dimension)
    cache = cache or InMemoryCache()
    return EmbeddingCache(provider, cache, ml_config), provider, cache


class TestEmbeddingCache:
    def test_second_lookup_is_cached_and_free(self, ml_config):
        """Same query twice -> one provider call, second lookup costs nothing"""
        embedding_cache, provider, _ = make_cache(ml_config)

        first = asyncio.run(embedding_cache.embed("gift for mom"))
        second = asyncio.run(embedding_cache.embed("gift for mom"))

        assert len(provider.calls) == 1
        assert first.cached is False
        assert first.cost.tokens_used == 5
        assert first.cost.estimated_cost > 0
        assert second.cached is True
        assert second.cost.tokens_used == 0
        assert second.cost.estimated_cost == 0
        np.testing.assert_allclose(first.embedding.vector, second.embedding.vector)

    def test_key_is_normalized(self, ml_config):
        embedding_cache, provider, _ = make_cache(ml_config)

        asyncio.run(embedding_cache.embed("Gift  for MOM"))
        lookup = asyncio.run(embedding_cache.embed("gift for mom"))

        assert lookup.cached is True
        assert len(provider.calls) == 1
        assert embedding_cache.cache_key("Gift for Mom").startswith("embedding:query:")

    def test_entries_written_with_ttl(self, ml_config):
        embedding_cache, _, cache = make_cache(ml_config)

        asyncio.run(embedding_cache.embed("gift for mom"))

        assert cache.set_calls == [(embedding_cache.cache_key("gift for mom"), 3600)]

    def test_expired_entry_calls_provider_again(self, ml_config):
        clock = FakeClock()
        embedding_cache, provider, _ = make_cache(ml_config, cache=InMemoryCache(clock=clock))

        asyncio.run(embedding_cache.embed("gift for mom"))
        clock.advance(3601)
        lookup = asyncio.run(embedding_cache.embed("gift for mom"))

        assert lookup.cached is False
        assert len(provider.calls) == 2

    def test_provider_failure_is_fatal(self, ml_config):
        provider = FakeEmbeddingProvider(error=RuntimeError("429 rate limited"))
        embedding_cache, _, cache = make_cache(ml_config, provider=provider)

        with pytest.raises(ExternalServiceError):
            asyncio.run(embedding_cache.embed("gift for mom"))

        assert cache.store == {}

    def test_provider_timeout_is_fatal(self, ml_config):
        ml_config.timeouts.embedding_seconds = 0.01
        provider = FakeEmbeddingProvider(delay=0.5)
        embedding_cache, _, _ = make_cache(ml_config, provider=provider)

        with pytest.raises(ExternalServiceError):
            asyncio.run(embedding_cache.embed("gift for mom"))

    def test_wrong_dimension_rejected(self, ml_config):
        provider = FakeEmbeddingProvider(vectors={"gift": [0.1, 0.2]})
        embedding_cache, _, _ = make_cache(ml_config, provider=provider)

        with pytest.raises(ExternalServiceError):
            asyncio.run(embedding_cache.embed("gift"))

    def test_non_finite_vector_rejected(self, ml_config):
        provider = FakeEmbeddingProvider(vectors={"gift": [0.1, float("nan"), 0.2, 0.3]})
        embedding_cache, _, _ = make_cache(ml_config, provider=provider)

        with pytest.raises(ExternalServiceError):
            asyncio.run(embedding_cache.embed("gift"))

    def test_cache_outage_falls_back_to_provider(self, ml_config):
        embedding_cache, provider, _ = make_cache(ml_config, cache=InMemoryCache(fail=True))

        lookup = asyncio.run(embedding_cache.embed("gift for mom"))

        assert lookup.cached is False
        assert len(provider.calls) == 1

    def test_malformed_cached_value_is_ignored(self, ml_config):
        embedding_cache, provider, cache = make_cache(ml_config)
        asyncio.run(cache.set(embedding_cache.cache_key("gift"), [1.0, 2.0], ttl=60))

        lookup = asyncio.run(embedding_cache.embed("gift"))

        assert lookup.cached is False
        assert len(provider.calls) == 1

    def test_batch_embeds_unique_misses_once(self, ml_config):
        embedding_cache, provider, _ = make_cache(ml_config)
        asyncio.run(embedding_cache.embed("gift"))

        lookups = asyncio.run(embedding_cache.embed_batch(["gift", "mug", "Mug", "lamp"]))

        assert [lookup.cached for lookup in lookups] == [True, False, False, False]
        assert provider.batch_calls == [["mug", "lamp"]]
        np.testing.assert_allclose(lookups[1].embedding.vector, lookups[2].embedding.vector)

    def test_stats(self, ml_config):
        embedding_cache, _, _ = make_cache(ml_config)

        asyncio.run(embedding_cache.embed("gift"))
        asyncio.run(embedding_cache.embed("gift"))

        stats = embedding_cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["provider_calls"] == 1
        assert stats["total_tokens"] == 5

    def test_invalidate(self, ml_config):
        embedding_cache, provider, _ = make_cache(ml_config)

        asyncio.run(embedding_cache.embed("gift"))
        assert asyncio.run(embedding_cache.invalidate("gift")) is True
        asyncio.run(embedding_cache.embed("gift"))

        assert len(provider.calls) == 2


class TestCost:
    def test_price_table(self, ml_config):
        small = calculate_cost(1_000_000, "text-embedding-3-small", ml_config)
        large = calculate_cost(1_000_000, "text-embedding-3-large", ml_config)
        ada = calculate_cost(500_000, "text-embedding-ada-002", ml_config)

        assert small.estimated_cost == pytest.approx(0.02)
        assert large.estimated_cost == pytest.approx(0.13)
        assert ada.estimated_cost == pytest.approx(0.05)

    def test_unknown_model_priced_as_default(self, ml_config):
        cost = calculate_cost(1_000_000, "some-other-model", ml_config)

        assert cost.estimated_cost == pytest.approx(0.02)
        assert cost.model == "some-other-model"
