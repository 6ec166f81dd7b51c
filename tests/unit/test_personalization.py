"""
Unit tests for preference-based re-ranking
"""

import asyncio

import numpy as np
import pytest

from giftsearch.ml.retrieval import (
    CachedPreferenceStore,
    FusedResult,
    PersonalizationReranker,
    cosine_similarity,
    parse_vector,
)

from fakes import FakeItemStore, FakePreferenceStore, InMemoryCache


def fused(item_id, rrf):
    return FusedResult(
        item_id=item_id, title=f"Item {item_id}", description=None, price=10.0,
        category=None, image_url=None, rrf_score=rrf, final_score=rrf,
    )


PREFERENCE = [1.0, 0.0, 0.0, 0.0]


class TestPersonalizationReranker:
    def test_boost_bounded_by_ceiling(self):
        """final_score stays within [rrf, 1.2 * rrf]"""
        results = [fused("same", 0.016), fused("ortho", 0.0165), fused("opposite", 0.017)]
        items = FakeItemStore(
            {
                "same": [2.0, 0.0, 0.0, 0.0],
                "ortho": [0.0, 1.0, 0.0, 0.0],
                "opposite": [-1.0, 0.0, 0.0, 0.0],
            }
        )
        reranker = PersonalizationReranker(FakePreferenceStore({"u1": PREFERENCE}), items)

        outcome = asyncio.run(reranker.rerank(results, "u1"))
        by_id = {r.item_id: r for r in outcome.results}

        assert outcome.applied is True
        for result in outcome.results:
            assert result.rrf_score <= result.final_score <= result.rrf_score * 1.2 + 1e-12
        assert by_id["same"].final_score == pytest.approx(0.016 * 1.2)
        assert by_id["same"].personalization_boost == pytest.approx(0.2)
        assert by_id["ortho"].final_score == pytest.approx(0.0165)
        assert by_id["opposite"].personalization_boost == 0.0

    def test_resorts_after_boost(self):
        results = [fused("a", 0.0170), fused("b", 0.0165)]
        items = FakeItemStore({"b": PREFERENCE})
        reranker = PersonalizationReranker(FakePreferenceStore({"u1": PREFERENCE}), items)

        outcome = asyncio.run(reranker.rerank(results, "u1"))

        assert [r.item_id for r in outcome.results] == ["b", "a"]

    def test_items_without_embedding_keep_rrf(self):
        results = [fused("a", 0.02), fused("b", 0.01)]
        reranker = PersonalizationReranker(
            FakePreferenceStore({"u1": PREFERENCE}), FakeItemStore({"b": PREFERENCE})
        )

        outcome = asyncio.run(reranker.rerank(results, "u1"))
        by_id = {r.item_id: r for r in outcome.results}

        assert by_id["a"].final_score == 0.02
        assert by_id["b"].final_score == pytest.approx(0.012)

    def test_no_preference_vector_is_noop(self):
        results = [fused("a", 0.02), fused("b", 0.01)]
        reranker = PersonalizationReranker(FakePreferenceStore(), FakeItemStore())

        outcome = asyncio.run(reranker.rerank(results, "new-user"))

        assert outcome.applied is False
        assert outcome.results is results

    def test_store_failure_returns_input(self):
        results = [fused("a", 0.02)]
        reranker = PersonalizationReranker(
            FakePreferenceStore(error=RuntimeError("db down")), FakeItemStore()
        )

        outcome = asyncio.run(reranker.rerank(results, "u1"))

        assert outcome.applied is False
        assert outcome.results == results
        assert results[0].final_score == 0.02

    def test_dimension_mismatch_returns_input(self):
        results = [fused("a", 0.02), fused("b", 0.01)]
        items = FakeItemStore({"a": PREFERENCE, "b": [1.0, 0.0]})
        reranker = PersonalizationReranker(FakePreferenceStore({"u1": PREFERENCE}), items)

        outcome = asyncio.run(reranker.rerank(results, "u1"))

        assert outcome.applied is False
        assert [r.final_score for r in outcome.results] == [0.02, 0.01]

    def test_non_finite_preference_returns_input(self):
        results = [fused("a", 0.02)]
        reranker = PersonalizationReranker(
            FakePreferenceStore({"u1": [float("inf"), 0.0, 0.0, 0.0]}), FakeItemStore({"a": PREFERENCE})
        )

        outcome = asyncio.run(reranker.rerank(results, "u1"))

        assert outcome.applied is False

    def test_without_user_is_noop(self):
        results = [fused("a", 0.02)]
        store = FakePreferenceStore({"u1": PREFERENCE})

        outcome = asyncio.run(PersonalizationReranker(store, FakeItemStore()).rerank(results, None))

        assert outcome.applied is False
        assert store.calls == []

    def test_custom_ceiling(self):
        results = [fused("a", 0.01)]
        reranker = PersonalizationReranker(
            FakePreferenceStore({"u1": PREFERENCE}), FakeItemStore({"a": PREFERENCE}), ceiling=0.5
        )

        outcome = asyncio.run(reranker.rerank(results, "u1"))

        assert outcome.results[0].final_score == pytest.approx(0.015)


class TestCachedPreferenceStore:
    def test_caches_present_vectors(self):
        inner = FakePreferenceStore({"u1": PREFERENCE})
        cache = InMemoryCache()
        store = CachedPreferenceStore(inner, cache, ttl=1800)

        first = asyncio.run(store.get_preference_embedding("u1"))
        second = asyncio.run(store.get_preference_embedding("u1"))

        assert inner.calls == ["u1"]
        np.testing.assert_allclose(first, second)
        assert cache.set_calls == [("embedding:user:preference:u1", 1800)]

    def test_missing_vectors_not_cached(self):
        inner = FakePreferenceStore()
        store = CachedPreferenceStore(inner, InMemoryCache())

        assert asyncio.run(store.get_preference_embedding("u2")) is None
        assert asyncio.run(store.get_preference_embedding("u2")) is None
        assert inner.calls == ["u2", "u2"]

    def test_cache_outage_reads_through(self):
        inner = FakePreferenceStore({"u1": PREFERENCE})
        store = CachedPreferenceStore(inner, InMemoryCache(fail=True))

        vector = asyncio.run(store.get_preference_embedding("u1"))

        np.testing.assert_allclose(vector, PREFERENCE)


class TestVectorHelpers:
    def test_parse_pgvector_text(self):
        np.testing.assert_allclose(parse_vector("[0.1,0.2,0.3]"), [0.1, 0.2, 0.3], rtol=1e-6)

    def test_parse_empty(self):
        assert parse_vector(None) is None
        assert parse_vector("[]") is None
        assert parse_vector([]) is None

    def test_cosine(self):
        assert cosine_similarity([1, 0], [2, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 3]) == pytest.approx(0.0)

    def test_cosine_rejects_zero_vector(self):
        with pytest.raises(ValueError):
            cosine_similarity([0, 0], [1, 0])
