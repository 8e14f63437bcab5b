"""
RAG Query Retrieval Agent

Turns a question into a small, diverse grounding set: scoped candidate
retrieval, vector resolution, MMR, then citation records for the answer
generator.
"""

import logging
import time
from typing import Callable, List, Optional

import numpy as np

from config import settings
from transcript_rag import CandidateRetriever, CitedPassage, DependencyError, QueryCandidate, Scope, diversify

logger = logging.getLogger(__name__)


def clamp_k(k: Optional[int]) -> int:
    """Clamp a caller-supplied k to [1, RAG_MAX_FINAL_K]."""
    if k is None:
        k = settings.RAG_FINAL_K
    return min(max(int(k), 1), settings.RAG_MAX_FINAL_K)


def retrieve_passages(
    question: str,
    retriever: CandidateRetriever,
    passages,
    scope: Optional[Scope] = None,
    k: Optional[int] = None,
    lambda_param: Optional[float] = None,
    similarity: Optional[Callable[[np.ndarray, np.ndarray], float]] = None
) -> List[CitedPassage]:
    """
    Main entry point for query-time retrieval.

    Args:
        question: User question
        retriever: CandidateRetriever
        passages: Passage store, used to fetch vectors missing from candidates
        scope: Optional retrieval constraints
        k: Final number of passages (clamped), defaults to settings.RAG_FINAL_K
        lambda_param: MMR trade-off, defaults to settings.RAG_MMR_LAMBDA
        similarity: Pairwise similarity for MMR, cosine by default

    Returns:
        Cited passages in MMR order; empty when nothing relevant was found

    Raises:
        InputError: for a blank question
        DependencyError: if embedding or a store call fails
    """
    k = clamp_k(k)
    if lambda_param is None:
        lambda_param = settings.RAG_MMR_LAMBDA

    start_time = time.time()

    # 1. Candidates
    candidates = retriever.retrieve(question, scope, k)
    if not candidates:
        return []

    # 2. Vectors for MMR
    _resolve_vectors(candidates, passages)

    # 3. Diversify
    final = diversify(candidates, k, lambda_param, similarity)

    elapsed = time.time() - start_time
    logger.info(f"[rag_retriever] Final passages: {[(c.passage.citation, round(c.score, 3)) for c in final]} ({elapsed:.2f}s)")

    return [to_cited_passage(c) for c in final]


def _resolve_vectors(candidates: List[QueryCandidate], passages):
    """Fill missing candidate vectors from the store; unresolved ones stay None."""
    missing = [c.passage_id for c in candidates if c.embedding is None]
    if not missing:
        return

    try:
        vectors = passages.fetch_vectors(missing)
    except Exception as e:
        raise DependencyError('Failed to fetch candidate vectors', e) from e

    for candidate in candidates:
        if candidate.embedding is None:
            candidate.embedding = vectors.get(candidate.passage_id)

    unresolved = len(missing) - len(vectors)
    if unresolved:
        logger.warning(f"[rag_retriever] {unresolved} candidates have no vector and will be excluded")


def to_cited_passage(candidate: QueryCandidate) -> CitedPassage:
    passage = candidate.passage
    return CitedPassage(
        id=passage.passage_id,
        text=passage.text,
        score=candidate.score,
        metadata={
            'document_id': passage.document_id,
            'title': passage.document_title,
            'participants': list(passage.participants),
            'date': passage.document_date.isoformat() if passage.document_date else None,
            'section_id': passage.section_id,
            'section_title': passage.section_title,
            'sequence_index': passage.sequence_index,
            'citation': passage.citation,
            'relevance': candidate.relevance,
            'keyword_bonus': candidate.keyword_bonus,
        },
    )
