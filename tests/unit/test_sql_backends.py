"""
Unit tests for the SQL-backed search backends and stores

Statements are captured by a recording session and compiled with the
PostgreSQL dialect instead of being executed.
"""

import asyncio
import re
from types import SimpleNamespace

import numpy as np
import pytest

from giftsearch.ml.retrieval import (
    PgVectorBackend,
    PostgresFullTextBackend,
    SearchFilters,
    SqlItemEmbeddingStore,
    SqlPreferenceStore,
)

from fakes import RecordingSession


def product_row(item_id, score_field, score, **fields):
    row = dict(
        id=item_id,
        title=fields.get("title", f"Item {item_id}"),
        description=fields.get("description"),
        price=fields.get("price", 25.0),
        category=fields.get("category"),
        image_url=fields.get("image_url"),
    )
    row[score_field] = score
    return SimpleNamespace(**row)


class TestPostgresFullTextBackend:
    def test_variants_or_into_one_tsquery(self):
        session = RecordingSession()
        backend = PostgresFullTextBackend(lambda: session)

        asyncio.run(backend.search(["tech gifts", "tech gifts electronics"], SearchFilters(), 10))

        compiled = session.compiled()
        sql = str(compiled)
        assert re.search(r"plainto_tsquery\([^)]*\) \|\| plainto_tsquery\(", sql)
        assert "@@" in sql
        assert "ts_rank" in sql
        assert "tech gifts" in compiled.params.values()
        assert "tech gifts electronics" in compiled.params.values()
        assert session.closed is True

    def test_single_query_has_no_or(self):
        session = RecordingSession()
        backend = PostgresFullTextBackend(lambda: session)

        asyncio.run(backend.search(["mug"], SearchFilters(), 10))

        sql = str(session.compiled())
        assert not re.search(r"\) \|\| plainto_tsquery\(", sql)
        assert "@@" in sql

    def test_filters_and_limit_in_sql(self):
        session = RecordingSession()
        backend = PostgresFullTextBackend(lambda: session)
        filters = SearchFilters(category="toys", min_price=5.0, max_price=50.0)

        asyncio.run(backend.search(["lego"], filters, 7))

        compiled = session.compiled()
        sql = str(compiled)
        assert "products.category = " in sql
        assert "products.price >= " in sql
        assert "products.price <= " in sql
        assert "DESC" in sql
        assert "LIMIT" in sql
        params = list(compiled.params.values())
        assert "toys" in params
        assert 5.0 in params and 50.0 in params and 7 in params

    def test_blank_queries_skip_database(self):
        session = RecordingSession()
        backend = PostgresFullTextBackend(lambda: session)

        assert asyncio.run(backend.search(["", "  "], SearchFilters(), 10)) == []
        assert session.statements == []

    def test_rows_become_hits(self):
        session = RecordingSession(
            rows=[product_row(42, "relevance", 0.31, category="mugs", price=None)]
        )
        backend = PostgresFullTextBackend(lambda: session)

        hits = asyncio.run(backend.search(["mug"], SearchFilters(), 10))

        assert hits[0].item_id == "42"
        assert hits[0].score == pytest.approx(0.31)
        assert hits[0].price == 0.0
        assert hits[0].category == "mugs"


class TestPgVectorBackend:
    def test_cosine_distance_and_threshold(self):
        session = RecordingSession()
        backend = PgVectorBackend(lambda: session)

        asyncio.run(
            backend.search(np.array([0.1, 0.2, 0.3], dtype=np.float32), SearchFilters(), 5, 0.6)
        )

        compiled = session.compiled()
        sql = str(compiled)
        assert "<=>" in sql
        assert "products.embedding IS NOT NULL" in sql
        assert re.search(r"- \(products\.embedding <=> %\(\w+\)s\) >= %\(\w+\)s", sql)
        assert 0.6 in compiled.params.values()
        assert "ORDER BY products.embedding <=>" in sql
        assert session.closed is True

    def test_filters_in_sql(self):
        session = RecordingSession()
        backend = PgVectorBackend(lambda: session)
        filters = SearchFilters(category="books", max_price=30.0)

        asyncio.run(backend.search(np.ones(3, dtype=np.float32), filters, 5, 0.5))

        compiled = session.compiled()
        sql = str(compiled)
        assert "products.category = " in sql
        assert "products.price <= " in sql
        assert "books" in compiled.params.values()

    def test_rows_become_hits(self):
        session = RecordingSession(rows=[product_row("p1", "similarity", 0.87)])
        backend = PgVectorBackend(lambda: session)

        hits = asyncio.run(backend.search(np.ones(3, dtype=np.float32), SearchFilters(), 5, 0.5))

        assert [h.item_id for h in hits] == ["p1"]
        assert hits[0].score == pytest.approx(0.87)


class TestSqlStores:
    def test_preference_parsed_from_pgvector_text(self):
        session = RecordingSession(rows=[SimpleNamespace(preference_embedding="[0.5, -0.25,1]")])
        store = SqlPreferenceStore(lambda: session)

        vector = asyncio.run(store.get_preference_embedding("user_1"))

        np.testing.assert_allclose(vector, [0.5, -0.25, 1.0])
        assert vector.dtype == np.float32
        compiled = session.compiled()
        assert "user_profiles.user_id = " in str(compiled)
        assert "user_1" in compiled.params.values()

    def test_missing_profile_and_null_preference(self):
        store = SqlPreferenceStore(lambda: RecordingSession())
        assert asyncio.run(store.get_preference_embedding("nobody")) is None

        session = RecordingSession(rows=[SimpleNamespace(preference_embedding=None)])
        store = SqlPreferenceStore(lambda: session)
        assert asyncio.run(store.get_preference_embedding("new_user")) is None

    def test_item_embeddings_parsed_and_keyed_by_id(self):
        session = RecordingSession(
            rows=[
                SimpleNamespace(id="a", embedding=np.array([1.0, 0.0])),
                SimpleNamespace(id=7, embedding=[0.0, 1.0]),
                SimpleNamespace(id="c", embedding="[]"),
            ]
        )
        store = SqlItemEmbeddingStore(lambda: session)

        embeddings = asyncio.run(store.get_item_embeddings(["a", "7", "c"]))

        assert sorted(embeddings) == ["7", "a"]
        np.testing.assert_allclose(embeddings["7"], [0.0, 1.0])
        sql = str(session.compiled())
        assert "products.id IN" in sql
        assert "products.embedding IS NOT NULL" in sql

    def test_no_ids_skips_database(self):
        session = RecordingSession()
        store = SqlItemEmbeddingStore(lambda: session)

        assert asyncio.run(store.get_item_embeddings([])) == {}
        assert session.statements == []
