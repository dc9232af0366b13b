"""Shared fakes for the retrieval engine tests."""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Sequence

import pytest

from carouselsearch.documents.store import InMemoryDocumentStore
from carouselsearch.embeddings.service import EmbeddingProvider
from carouselsearch.embeddings.store import VectorIndexAccessor
from carouselsearch.engine import RetrievalEngine
from carouselsearch.models import IndexEntry, VectorMatch

VOCABULARY = ("remote", "onboarding", "pricing", "hiring", "launch", "review", "midnight", "grid")


class KeywordEmbeddingBackend:
    """Bag-of-keywords vectors so that nearest neighbours are predictable."""

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY, fail_on: str | None = None) -> None:
        self.vocabulary = tuple(vocabulary)
        self.fail_on = fail_on
        self.seen: list[str] = []

    @property
    def dim(self) -> int:
        return len(self.vocabulary) + 1

    def _vector(self, text: str) -> tuple[float, ...]:
        self.seen.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("insufficient_quota")
        lowered = text.lower()
        return tuple(float(lowered.count(word)) for word in self.vocabulary) + (0.01,)

    def embed_documents(self, texts: Sequence[str]) -> list[tuple[float, ...]]:
        return [self._vector(text) for text in texts]

    def embed_query(self, query: str) -> tuple[float, ...]:
        return self._vector(query)


def _cosine(left: Sequence[float], right: Sequence[float]) -> float:
    dot = sum(a * b for a, b in zip(left, right))
    norm = math.sqrt(sum(a * a for a in left)) * math.sqrt(sum(b * b for b in right))
    return dot / norm if norm else 0.0


class FakeVectorIndex:
    """In-memory vector index honouring ``{field: {"$eq": value}}`` filters."""

    def __init__(self) -> None:
        self.entries: dict[str, IndexEntry] = {}
        self.upsert_calls: list[list[IndexEntry]] = []
        self.query_calls: list[tuple[int, dict]] = []
        self.fail_on_query = False
        self.fail_on_upsert = False

    def upsert(self, entries: Sequence[IndexEntry]) -> None:
        if self.fail_on_upsert:
            raise ConnectionError("index write refused")
        self.upsert_calls.append(list(entries))
        for entry in entries:
            self.entries[entry.id] = entry

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> list[VectorMatch]:
        self.query_calls.append((top_k, dict(filter or {})))
        if self.fail_on_query:
            raise ConnectionError("index unreachable")
        matches = [
            VectorMatch(id=entry.id, score=_cosine(vector, entry.vector))
            for entry in self.entries.values()
            if all(entry.metadata.get(key) == condition["$eq"] for key, condition in (filter or {}).items())
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:top_k]


class ExplodingStore(InMemoryDocumentStore):
    """Store whose reads fail for selected ids, or entirely."""

    def __init__(self, *args: Any, broken_ids: Sequence[str] = (), broken_query: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.broken_ids = set(broken_ids)
        self.broken_query = broken_query

    def get(self, collection: str, doc_id: str):
        if doc_id in self.broken_ids:
            raise TimeoutError(f"fetch timed out for {doc_id}")
        return super().get(collection, doc_id)

    def query(self, collection: str, filters: Mapping[str, Any], limit: int):
        if self.broken_query:
            raise TimeoutError("listing timed out")
        return super().query(collection, filters, limit)


SAMPLE_DOCUMENTS: dict[str, dict[str, dict[str, Any]]] = {
    "carousels": {
        "c1": {
            "userId": "user-1",
            "title": "Remote onboarding playbook",
            "description": "Onboarding engineers into a remote team",
            "slides": [{"rawText": "Ship the laptop early"}, {"finalText": "Assign a buddy"}],
            "tags": ["remote", "onboarding"],
        },
        "c2": {
            "userId": "user-1",
            "title": "Pricing page teardown",
            "slides": [{"placeholder": {"title": "Anchor high", "body": "Lead with the enterprise tier"}}],
        },
        "c3": {
            "userId": "user-2",
            "title": "Remote hiring mistakes",
            "hook": "Hiring remote is not hiring local",
        },
    },
    "carouselTemplates": {
        "t1": {"templateName": "Bold launch", "style": "minimal", "theme": {"name": "Midnight"}},
        "t2": {"name": "Quarterly review", "layout": "grid", "tags": ["review"]},
    },
}


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(SAMPLE_DOCUMENTS)


@pytest.fixture
def backend() -> KeywordEmbeddingBackend:
    return KeywordEmbeddingBackend()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def make_engine(store, backend, vector_index) -> Callable[..., RetrievalEngine]:
    """Build an engine from fakes; pass ``None`` to leave a collaborator unconfigured."""

    def build(**overrides: Any) -> RetrievalEngine:
        chosen_backend = overrides.get("backend", backend)
        chosen_index = overrides.get("index", vector_index)
        chosen_store = overrides.get("store", store)
        if chosen_backend is None:
            embedder = EmbeddingProvider.disabled(dim=len(VOCABULARY) + 1)
        else:
            embedder = EmbeddingProvider.of(chosen_backend, dim=chosen_backend.dim)
        accessor = VectorIndexAccessor.disabled() if chosen_index is None else VectorIndexAccessor.of(chosen_index)
        return RetrievalEngine(embedder, accessor, chosen_store, overrides.get("config"))

    return build
