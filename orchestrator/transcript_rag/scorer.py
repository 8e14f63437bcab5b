"""
Combined scoring for scoped retrieval.

Combined score = dense relevance + a small keyword bonus for each scope term
that literally appears in the passage, followed by a per-document cap so one
long transcript cannot fill the candidate pool.
"""

import logging
from typing import List, Optional

from .models import Passage, QueryCandidate, Scope

logger = logging.getLogger(__name__)

DEFAULT_KEYWORD_BONUS = 0.05


def keyword_bonus(passage: Passage, scope: Optional[Scope], bonus: float = DEFAULT_KEYWORD_BONUS) -> float:
    """
    Bonus for scope terms found in the passage text or section title.

    Args:
        passage: Candidate passage
        scope: Retrieval scope (title / participant terms)
        bonus: Bonus per matched term

    Returns:
        0, bonus, or 2 * bonus
    """
    if scope is None:
        return 0.0

    text = passage.text.lower()
    title = passage.section_title.lower()

    total = 0.0
    for term in scope.keyword_terms():
        needle = term.lower()
        if needle in text or needle in title:
            total += bonus
    return total


def score_candidates(
    hits: List[tuple],
    scope: Optional[Scope] = None,
    bonus: float = DEFAULT_KEYWORD_BONUS
) -> List[QueryCandidate]:
    """
    Turn (passage, relevance) hits into candidates sorted by combined score.

    The sort is stable, so equal scores keep the store's similarity order.
    """
    candidates = [
        QueryCandidate(
            passage=passage,
            relevance=relevance,
            keyword_bonus=keyword_bonus(passage, scope, bonus),
            embedding=passage.embedding,
        )
        for passage, relevance in hits
    ]
    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates


def enforce_per_document_cap(candidates: List[QueryCandidate], per_document_cap: int) -> List[QueryCandidate]:
    """
    Keep at most ``per_document_cap`` candidates per source document.

    Args:
        candidates: Candidates sorted by combined score, best first
        per_document_cap: Max candidates per document

    Returns:
        Filtered list, order preserved
    """
    document_counts = {}
    filtered = []

    for candidate in candidates:
        count = document_counts.get(candidate.document_id, 0)
        if count < per_document_cap:
            filtered.append(candidate)
            document_counts[candidate.document_id] = count + 1

    logger.info(f"[scorer] After per-document cap ({per_document_cap}): {len(filtered)} candidates (from {len(candidates)})")
    logger.debug(f"[scorer] Document distribution: {document_counts}")

    return filtered


def overfetch_size(final_k: int, factor: int = 3, ceiling: int = 50) -> int:
    """Raw candidates to request so diversification has headroom."""
    return min(final_k * factor, ceiling)
