"""CLI for evaluating carouselsearch retrieval accuracy."""

from __future__ import annotations

import argparse
import json
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Sequence
from uuid import uuid4

import chromadb

from carouselsearch.config import Settings, get_settings
from carouselsearch.documents.store import InMemoryDocumentStore
from carouselsearch.embeddings.service import EmbeddingConfig, EmbeddingProvider, build_embedding_provider
from carouselsearch.embeddings.store import ChromaVectorIndex, VectorIndexAccessor
from carouselsearch.engine import RetrievalEngine, retrieval_config_from_settings


@dataclass(frozen=True)
class DocumentFixture:
    id: str
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class QueryFixture:
    question: str
    relevant_document_ids: Sequence[str]


@dataclass(frozen=True)
class EvaluationDataset:
    collection: str
    tenant_id: str | None
    documents: Sequence[DocumentFixture]
    queries: Sequence[QueryFixture]


@dataclass(frozen=True)
class EvaluationResult:
    total_queries: int
    hits: int
    recall_at_k: float
    mean_reciprocal_rank: float
    average_latency_ms: float
    indexed: int
    details: List[dict]

    def to_dict(self) -> dict:
        return {
            "total_queries": self.total_queries,
            "hits": self.hits,
            "recall_at_k": self.recall_at_k,
            "mean_reciprocal_rank": self.mean_reciprocal_rank,
            "average_latency_ms": self.average_latency_ms,
            "indexed": self.indexed,
            "details": self.details,
        }


def load_dataset(path: Path) -> EvaluationDataset:
    data = json.loads(path.read_text(encoding="utf-8"))
    documents = []
    for item in data["documents"]:
        fields = dict(item)
        doc_id = str(fields.pop("id"))
        documents.append(DocumentFixture(id=doc_id, fields=fields))
    queries = [
        QueryFixture(
            question=item["question"],
            relevant_document_ids=item.get("relevant_document_ids", []),
        )
        for item in data["queries"]
    ]
    return EvaluationDataset(
        collection=data.get("collection", "carousels"),
        tenant_id=data.get("tenant_id"),
        documents=documents,
        queries=queries,
    )


def build_evaluation_engine(
    dataset: EvaluationDataset,
    settings: Settings,
    *,
    lexical_only: bool = False,
) -> RetrievalEngine:
    """Load fixtures into a fresh store; index them unless ``lexical_only``.

    Semantic runs use the configured embedding backend and raise
    ``ValueError`` when it is disabled.
    """

    if not lexical_only and not settings.embedding_configured:
        raise ValueError(
            "Semantic evaluation needs an embedding backend; "
            "set CAROUSELSEARCH_EMBEDDING_BACKEND or pass --lexical-only",
        )

    store = InMemoryDocumentStore()
    for fixture in dataset.documents:
        fields = dict(fixture.fields)
        if dataset.tenant_id and settings.tenant_field not in fields:
            fields[settings.tenant_field] = dataset.tenant_id
        store.put(dataset.collection, fixture.id, fields)

    if lexical_only:
        embedder = EmbeddingProvider.disabled(dim=settings.embedding_dim)
        index = VectorIndexAccessor.disabled()
    else:
        embedder = build_embedding_provider(
            settings.embedding_backend,
            EmbeddingConfig(
                model=settings.embedding_model,
                dim=settings.embedding_dim,
                device=settings.embedding_device,
                cache_folder=settings.embedding_cache_folder,
            ),
        )
        index = VectorIndexAccessor.of(
            ChromaVectorIndex(f"evaluation-{uuid4().hex}", client=chromadb.EphemeralClient()),
        )
    return RetrievalEngine(embedder, index, store, retrieval_config_from_settings(settings))


def run_evaluation(
    dataset_path: Path,
    *,
    top_k: int = 3,
    settings: Settings | None = None,
    lexical_only: bool = False,
    json_out: Path | None = None,
    markdown_out: Path | None = None,
) -> EvaluationResult:
    settings = settings or get_settings()
    dataset = load_dataset(dataset_path)
    engine = build_evaluation_engine(dataset, settings, lexical_only=lexical_only)

    indexed = 0
    if not lexical_only:
        indexed = engine.index_user_documents(dataset.tenant_id, dataset.collection, len(dataset.documents)).count

    hits = 0
    reciprocal_ranks: list[float] = []
    latencies: list[float] = []
    details: list[dict] = []

    for query in dataset.queries:
        start = time.perf_counter()
        result = engine.search_vectors(dataset.collection, dataset.tenant_id, query.question, top_k)
        latency_ms = (time.perf_counter() - start) * 1000
        latencies.append(latency_ms)
        retrieved_ids = result.ids
        relevant_set = set(query.relevant_document_ids)
        rank = None
        for index, doc_id in enumerate(retrieved_ids, start=1):
            if doc_id in relevant_set:
                rank = index
                break
        if rank is not None:
            hits += 1
            reciprocal_ranks.append(1 / rank)
        else:
            reciprocal_ranks.append(0.0)
        details.append(
            {
                "question": query.question,
                "retrieved": retrieved_ids,
                "relevant": list(query.relevant_document_ids),
                "strategy": result.strategy,
                "latency_ms": latency_ms,
            },
        )

    total = len(dataset.queries)
    result = EvaluationResult(
        total_queries=total,
        hits=hits,
        recall_at_k=hits / total if total else 0.0,
        mean_reciprocal_rank=statistics.fmean(reciprocal_ranks) if reciprocal_ranks else 0.0,
        average_latency_ms=statistics.fmean(latencies) if latencies else 0.0,
        indexed=indexed,
        details=details,
    )

    if json_out:
        json_out.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    if markdown_out:
        markdown_out.write_text(_format_markdown(result), encoding="utf-8")
    return result


def _format_markdown(result: EvaluationResult) -> str:
    lines = [
        "# carouselsearch Evaluation Report",
        "",
        f"- Total queries: {result.total_queries}",
        f"- Documents indexed: {result.indexed}",
        f"- Hits: {result.hits}",
        f"- Recall@k: {result.recall_at_k:.2f}",
        f"- MRR: {result.mean_reciprocal_rank:.2f}",
        f"- Avg latency (ms): {result.average_latency_ms:.2f}",
        "",
        "| Question | Strategy | Retrieved | Relevant |",
        "| --- | --- | --- | --- |",
    ]
    for item in result.details:
        retrieved = ", ".join(item["retrieved"]) if item["retrieved"] else "-"
        relevant = ", ".join(item["relevant"]) if item["relevant"] else "-"
        lines.append(f"| {item['question']} | {item['strategy'] or '-'} | {retrieved} | {relevant} |")
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate carouselsearch retrieval accuracy.")
    parser.add_argument(
        "--dataset",
        type=Path,
        default=Path("evaluations/fixtures/sample.json"),
        help="Path to evaluation dataset JSON file.",
    )
    parser.add_argument("--top-k", type=int, default=3, help="Search top-k value to evaluate")
    parser.add_argument("--lexical-only", action="store_true", help="Skip the vector index and rank lexically")
    parser.add_argument(
        "--embedding-backend",
        choices=("hash", "huggingface"),
        default=None,
        help="Override the configured embedding backend for semantic runs",
    )
    parser.add_argument("--json-out", type=Path, default=None, help="Optional path to write JSON report")
    parser.add_argument("--markdown-out", type=Path, default=None, help="Optional path to write Markdown report")
    parser.add_argument("--min-recall", type=float, default=None, help="Override recall threshold")
    parser.add_argument("--min-mrr", type=float, default=None, help="Override MRR threshold")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings({"embedding_backend": args.embedding_backend}) if args.embedding_backend else get_settings()
    min_recall = args.min_recall if args.min_recall is not None else settings.evaluation_min_recall
    min_mrr = args.min_mrr if args.min_mrr is not None else settings.evaluation_min_mrr

    try:
        result = run_evaluation(
            args.dataset,
            top_k=args.top_k,
            settings=settings,
            lexical_only=args.lexical_only,
            json_out=args.json_out,
            markdown_out=args.markdown_out,
        )
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    print(json.dumps(result.to_dict(), indent=2))

    if result.recall_at_k < min_recall or result.mean_reciprocal_rank < min_mrr:
        print(
            f"Evaluation failed thresholds (recall {result.recall_at_k:.2f} vs {min_recall}, "
            f"MRR {result.mean_reciprocal_rank:.2f} vs {min_mrr})",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
