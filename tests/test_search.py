from __future__ import annotations

import pytest

from carouselsearch.documents.store import InMemoryDocumentStore
from carouselsearch.embeddings.service import EmbeddingProvider
from carouselsearch.embeddings.store import VectorIndexAccessor
from carouselsearch.engine import RetrievalEngine
from carouselsearch.models import ErrorKind, SearchResult, VectorMatch
from carouselsearch.retrieval.service import LEXICAL, SEMANTIC, RetrievalConfig
from carouselsearch.services.search import SearchService

from conftest import ExplodingStore, FakeVectorIndex, KeywordEmbeddingBackend, SAMPLE_DOCUMENTS


@pytest.fixture
def indexed_engine(make_engine):
    engine = make_engine()
    for doc_id, tenant in (("c1", "user-1"), ("c2", "user-1"), ("c3", "user-2")):
        assert engine.upsert_vector("carousels", doc_id, tenant).indexed
    for doc_id in ("t1", "t2"):
        assert engine.upsert_vector("carouselTemplates", doc_id, "user-1").indexed
    return engine


def test_semantic_search_returns_hydrated_hits_best_first(indexed_engine):
    result = indexed_engine.search_vectors("carousels", "user-1", "remote onboarding")

    assert result.success
    assert result.strategy == SEMANTIC
    assert result.ids[0] == "c1"
    assert "c3" not in result.ids
    top = result.results[0]
    assert top.fields["title"] == "Remote onboarding playbook"
    assert top.to_dict()["id"] == "c1"
    assert top.to_dict()["score"] == top.score


def test_semantic_search_uses_default_top_k_and_scope_filter(indexed_engine, vector_index):
    indexed_engine.search_vectors("carousels", "user-2", "hiring")

    top_k, filter = vector_index.query_calls[-1]
    assert top_k == 6
    assert filter == {"collection": {"$eq": "carousels"}, "tenant_id": {"$eq": "user-2"}}


def test_tenants_never_see_each_other(indexed_engine):
    for tenant, own in (("user-1", {"c1", "c2"}), ("user-2", {"c3"})):
        result = indexed_engine.search_vectors("carousels", tenant, "remote hiring pricing onboarding", top_k=10)
        assert set(result.ids) <= own
        lexical = indexed_engine.fallback_text_search("carousels", tenant, "remote hiring pricing onboarding", top_k=10)
        assert set(lexical.ids) <= own


def test_global_templates_look_the_same_for_every_tenant(indexed_engine):
    first = indexed_engine.search_vectors("carouselTemplates", "user-1", "midnight launch")
    second = indexed_engine.search_vectors("carouselTemplates", "user-2", "midnight launch")
    anonymous = indexed_engine.search_vectors("carouselTemplates", "", "midnight launch")

    assert first.ids[0] == "t1"
    assert first == second == anonymous


def test_index_order_is_preserved():
    class FixedOrderIndex(FakeVectorIndex):
        def query(self, vector, top_k, filter=None):
            self.query_calls.append((top_k, dict(filter or {})))
            return [VectorMatch(id="c2", score=0.2), VectorMatch(id="c1", score=0.9)]

    backend = KeywordEmbeddingBackend()
    service = SearchService(
        EmbeddingProvider.of(backend, dim=backend.dim),
        VectorIndexAccessor.of(FixedOrderIndex()),
        InMemoryDocumentStore(SAMPLE_DOCUMENTS),
    )

    result = service.search_vectors("carousels", "user-1", "anything")

    assert result.ids == ["c2", "c1"]
    assert [hit.score for hit in result.results] == [0.2, 0.9]


def test_no_matches_is_an_empty_semantic_success(make_engine):
    result = make_engine().search_vectors("carousels", "user-1", "remote")

    assert result.success
    assert result.strategy == SEMANTIC
    assert result.results == []


def test_hits_for_missing_or_unreadable_documents_are_skipped(make_engine, store, vector_index):
    engine = make_engine()
    engine.upsert_vector("carousels", "c1", "user-1")
    engine.upsert_vector("carousels", "c2", "user-1")
    store.delete("carousels", "c2")

    assert engine.search_vectors("carousels", "user-1", "pricing onboarding").ids == ["c1"]

    broken = ExplodingStore(SAMPLE_DOCUMENTS, broken_ids=["c1"])
    result = make_engine(store=broken).search_vectors("carousels", "user-1", "pricing onboarding")
    assert result.success
    assert "c1" not in result.ids


def test_unconfigured_semantic_path_matches_fallback_exactly(make_engine):
    engine = make_engine(backend=None, index=None)

    searched = engine.search_vectors("carousels", "user-1", "remote onboarding", top_k=6)
    fallback = engine.fallback_text_search("carousels", "user-1", "remote onboarding", top_k=6)

    assert searched.strategy == LEXICAL
    assert searched == fallback
    assert searched.ids[0] == "c1"


def test_embedding_failure_falls_back_to_lexical(make_engine, vector_index):
    engine = make_engine(backend=KeywordEmbeddingBackend(fail_on="quota"))

    result = engine.search_vectors("carousels", "user-1", "pricing quota")

    assert result.success
    assert result.strategy == LEXICAL
    assert result.ids == ["c2"]
    assert result == engine.fallback_text_search("carousels", "user-1", "pricing quota")
    assert vector_index.query_calls == []


def test_index_errors_fall_back_to_lexical(make_engine, vector_index):
    vector_index.fail_on_query = True
    assert make_engine().search_vectors("carousels", "user-1", "pricing").strategy == LEXICAL

    def unreachable():
        raise ConnectionError("chroma down")

    backend = KeywordEmbeddingBackend()
    engine = RetrievalEngine(
        EmbeddingProvider.of(backend, dim=backend.dim),
        VectorIndexAccessor(unreachable),
        make_engine().store,
    )
    result = engine.search_vectors("carousels", "user-1", "pricing")
    assert result.strategy == LEXICAL
    assert result.ids == ["c2"]


def test_missing_store_fails_both_search_paths(make_engine):
    engine = make_engine(store=None)

    for result in (
        engine.search_vectors("carousels", "user-1", "remote"),
        engine.fallback_text_search("carousels", "user-1", "remote"),
    ):
        assert result.success is False
        assert result.results == []
        assert result.error == "Document store not configured"
        assert result.error_kind is ErrorKind.NOT_CONFIGURED


def test_lexical_store_failure_is_reported(make_engine):
    engine = make_engine(backend=None, store=ExplodingStore(SAMPLE_DOCUMENTS, broken_query=True))

    result = engine.search_vectors("carousels", "user-1", "remote")

    assert result.success is False
    assert result.error == "listing timed out"
    assert result.error_kind is ErrorKind.STORE_FAILURE


@pytest.mark.parametrize("query", ["", "   ", "a", "((("])
def test_odd_queries_never_raise(indexed_engine, make_engine, query):
    assert indexed_engine.search_vectors("carousels", "user-1", query).success
    assert make_engine(backend=None).search_vectors("carousels", "user-1", query).success


def test_empty_lexical_query_returns_nothing(make_engine):
    assert make_engine(backend=None).fallback_text_search("carousels", "user-1", "").results == []


def test_lexical_candidates_are_bounded_by_config(make_engine, store):
    for index in range(20):
        store.put("carousels", f"bulk{index}", {"userId": "user-1", "title": f"Remote note {index}"})
    engine = make_engine(backend=None, config=RetrievalConfig(candidate_limit=5))

    result = engine.fallback_text_search("carousels", "user-1", "remote", top_k=50)

    assert len(result.results) <= 5


def test_strategy_chain_can_be_replaced(store):
    class Broken:
        name = "broken"

        def search(self, request):
            raise RuntimeError("boom")

    class Fixed:
        name = "fixed"

        def search(self, request):
            return SearchResult(success=True, results=[], strategy=self.name)

    service = SearchService(
        EmbeddingProvider.disabled(dim=4),
        VectorIndexAccessor.disabled(),
        store,
        strategies=[Broken(), Fixed()],
    )
    assert service.search_vectors("carousels", "user-1", "remote").strategy == "fixed"

    empty = SearchService(EmbeddingProvider.disabled(dim=4), VectorIndexAccessor.disabled(), store, strategies=[])
    assert empty.search_vectors("carousels", "user-1", "remote").error_kind is ErrorKind.UNEXPECTED
