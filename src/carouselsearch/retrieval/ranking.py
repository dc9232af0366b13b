"""Lexical relevance ranking used when semantic search is unavailable.

Scoring per candidate (all text lowercased):

* ``coverage``: share of query terms found as substrings of the text;
* ``frequency``: regex occurrences of all terms over ``word_count + 5``,
  capped;
* an exact-phrase bonus when the whole query appears verbatim;
* a length penalty growing with the text length, capped.

Documents matching no term are dropped. Terms are re-scanned per candidate,
which is fine for the bounded candidate window but grows with
``terms x documents x text length``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from carouselsearch.embeddings.text import build_embedding_text
from carouselsearch.models import CollectionKind, Document, SearchHit


@dataclass(frozen=True)
class LexicalWeights:
    """Weights of the lexical score. The defaults are empirical."""

    coverage_weight: float = 0.4
    frequency_cap: float = 0.4
    frequency_smoothing: int = 5
    exact_match_bonus: float = 0.3
    length_penalty_cap: float = 0.15
    length_penalty_scale: float = 10000.0
    min_score: float = 0.05
    max_score: float = 1.0


def tokenize_query(query: str) -> List[str]:
    """Split a query into lowercase terms longer than one character.

    A query made only of one-character words is kept whole as a single term;
    an empty query yields no terms.
    """

    normalized = query.lower().strip()
    terms = [term for term in normalized.split() if len(term) > 1]
    if terms:
        return terms
    return [normalized] if normalized else []


def score_text(text: str, query: str, terms: Sequence[str], weights: LexicalWeights) -> float | None:
    """Score lowercased ``text`` against the query; ``None`` when no term matches."""

    if not terms:
        return None
    term_matches = sum(1 for term in terms if term in text)
    if term_matches == 0:
        return None
    coverage = term_matches / len(terms)
    word_count = len(text.split())
    occurrences = sum(len(re.findall(re.escape(term), text, flags=re.IGNORECASE)) for term in terms)
    frequency = min(weights.frequency_cap, occurrences / (word_count + weights.frequency_smoothing))
    exact_bonus = weights.exact_match_bonus if query.lower().strip() in text else 0.0
    length_penalty = min(weights.length_penalty_cap, len(text) / weights.length_penalty_scale)
    raw = coverage * weights.coverage_weight + frequency + exact_bonus - length_penalty
    return max(weights.min_score, min(weights.max_score, raw))


def rank_documents(
    documents: Iterable[Document],
    query: str,
    *,
    kind: CollectionKind,
    top_k: int,
    weights: LexicalWeights | None = None,
) -> List[SearchHit]:
    """Return the ``top_k`` best lexical matches, ties kept in input order."""

    weights = weights or LexicalWeights()
    terms = tokenize_query(query)
    if not terms or top_k <= 0:
        return []
    scored: List[SearchHit] = []
    for document in documents:
        text = build_embedding_text(kind, document.fields).lower()
        score = score_text(text, query, terms, weights)
        if score is None:
            continue
        scored.append(SearchHit(id=document.id, score=score, fields=document.fields))
    scored.sort(key=lambda hit: hit.score, reverse=True)
    return scored[:top_k]
