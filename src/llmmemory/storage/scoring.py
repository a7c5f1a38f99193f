# src/llmmemory/storage/scoring.py
"""
Relevance scoring shared by every memory store backend.

Pure, stateless functions:

- :func:`cosine_similarity` for vector relevance, in ``[-1, 1]``.
- :func:`text_similarity` (Jaccard index over word sets) for lexical
  relevance, in ``[0, 1]``.
- :func:`relevance_score` picks between the two per record.
- :func:`rank_results` applies the threshold/sort/truncate discipline used
  by ``get_relevant`` and ``search_by_vector``.

Malformed input (mismatched dimensions, empty or zero vectors) yields a
neutral ``0.0`` instead of an error, so a single bad record cannot abort a
relevance scan.

Scale mismatch:
    When a query embedding is supplied, records that carry an embedding are
    scored by cosine similarity and records without one fall back to text
    similarity. Both trend toward 1.0 for more relevant records, so they are
    ranked together, but they are not numerically equivalent. Each result
    carries the :class:`~llmmemory.models.ScoringMethod` that produced it.
"""

import math
import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from ..models import MemoryQueryResult, ScoringMethod

# Letters, optionally joined by inner apostrophes or hyphens ("don't",
# "well-known"). Digits, underscores and other punctuation separate words.
_WORD_RE = re.compile(r"[^\W\d_]+(?:['\-][^\W\d_]+)*")

ResultT = TypeVar("ResultT", bound=MemoryQueryResult)


def tokenize(text: str) -> Set[str]:
    """Lower-case *text* and return its set of unique words."""
    if not text:
        return set()
    return set(_WORD_RE.findall(text.lower()))


def _has_values(vector: Optional[Sequence[float]]) -> bool:
    """True for a non-empty vector; avoids truthiness so array types work too."""
    return vector is not None and len(vector) > 0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two equal-length vectors.

    Returns:
        ``dot(a, b) / (|a| * |b|)`` clamped to ``[-1, 1]``, or ``0.0`` when the
        lengths differ, either vector is empty, either norm is zero, or any
        component (or the result) is NaN or infinite.
    """
    if not _has_values(a) or not _has_values(b) or len(a) != len(b):
        return 0.0
    if not all(math.isfinite(x) for x in a) or not all(math.isfinite(y) for y in b):
        return 0.0

    try:
        dot = math.fsum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(math.fsum(x * x for x in a))
        norm_b = math.sqrt(math.fsum(y * y for y in b))
    except (OverflowError, ValueError):
        # Products of huge components overflow to inf and fsum rejects inf - inf.
        return 0.0
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (norm_a * norm_b)
    if not math.isfinite(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))



def text_similarity(query: str, text: str) -> float:
    """
    Jaccard index of the word sets of *query* and *text*.

    Returns:
        ``|intersection| / |union|``, or ``0.0`` if either side has no words.
    """
    query_tokens = tokenize(query)
    text_tokens = tokenize(text)
    if not query_tokens or not text_tokens:
        return 0.0

    return len(query_tokens & text_tokens) / len(query_tokens | text_tokens)


def relevance_score(
    query: str,
    text: str,
    query_embedding: Optional[Sequence[float]] = None,
    record_embedding: Optional[Sequence[float]] = None,
) -> Tuple[float, ScoringMethod]:
    """
    Score one record against a query.

    Cosine similarity is used when a query embedding is supplied and the
    record has a non-empty embedding; otherwise the raw query is compared to
    the record text.
    """
    if _has_values(query_embedding) and _has_values(record_embedding):
        return cosine_similarity(query_embedding, record_embedding), ScoringMethod.COSINE
    return text_similarity(query, text), ScoringMethod.TEXT


def rank_results(results: Iterable[ResultT], limit: int, min_score: float) -> List[ResultT]:
    """
    Filter, sort and truncate scored results.

    Scores below *min_score* are dropped. The rest are sorted by descending
    score; equal scores are ordered by ascending record id so the output is
    deterministic whatever order the backend iterated its records in.
    """
    if limit <= 0:
        return []

    kept = [result for result in results if result.score >= min_score]
    kept.sort(key=lambda result: (-result.score, result.id))
    return kept[:limit]
