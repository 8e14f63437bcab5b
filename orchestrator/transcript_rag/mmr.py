"""
Maximal Marginal Relevance (MMR) for diversity selection.

Selects diverse passages based on relevance and dissimilarity to already selected ones.
"""

import logging
import numpy as np
from typing import Callable, List, Optional
from sklearn.metrics.pairwise import cosine_similarity

from .models import QueryCandidate

logger = logging.getLogger(__name__)


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity between two vectors."""
    return float(cosine_similarity(np.asarray(a).reshape(1, -1), np.asarray(b).reshape(1, -1))[0][0])


def _similarity_matrix(
    embeddings: List[np.ndarray],
    similarity: Optional[Callable[[np.ndarray, np.ndarray], float]]
) -> np.ndarray:
    if similarity is None:
        return cosine_similarity(np.vstack(embeddings))

    n = len(embeddings)
    matrix = np.zeros((n, n))
    for i in range(n):
        for j in range(i, n):
            matrix[i, j] = matrix[j, i] = similarity(embeddings[i], embeddings[j])
    return matrix


def diversify(
    candidates: List[QueryCandidate],
    final_k: int,
    lambda_param: float = 0.7,
    similarity: Optional[Callable[[np.ndarray, np.ndarray], float]] = None
) -> List[QueryCandidate]:
    """
    Select up to final_k diverse candidates using MMR.

    MMR = λ * relevance - (1-λ) * max_similarity_to_selected

    Candidates without a vector are dropped. Ties go to the earlier pool
    position. A pool no larger than final_k is still re-ranked.

    Args:
        candidates: Candidates with combined ``score`` and ``embedding``
        final_k: Number of candidates to select
        lambda_param: Trade-off between relevance and diversity (0=max diversity, 1=max relevance)
        similarity: Pairwise similarity function, cosine by default

    Returns:
        List of selected candidates in order of selection
    """
    if not 0.0 <= lambda_param <= 1.0:
        raise ValueError(f"lambda_param must be in [0, 1], got {lambda_param}")
    if final_k <= 0:
        return []

    pool = [c for c in candidates if c.embedding is not None and np.asarray(c.embedding).size > 0]
    if len(pool) < len(candidates):
        logger.warning(f"[mmr] Excluded {len(candidates) - len(pool)} candidates without vectors")
    if not pool:
        return []

    logger.info(f"[mmr] Selecting {min(final_k, len(pool))} diverse passages from {len(pool)} using MMR (λ={lambda_param})")

    relevance_scores = [c.score for c in pool]
    pairwise = _similarity_matrix([np.asarray(c.embedding, dtype='float32') for c in pool], similarity)

    selected_indices = []
    remaining_indices = list(range(len(pool)))
    target = min(final_k, len(pool))

    while len(selected_indices) < target:
        max_mmr_score = -float('inf')
        best_idx = None

        for idx in remaining_indices:
            # Diversity component: max similarity to already selected
            max_sim = max(pairwise[idx, s] for s in selected_indices) if selected_indices else 0.0

            mmr_score = lambda_param * relevance_scores[idx] - (1 - lambda_param) * max_sim

            # Strict comparison keeps the earliest position on ties
            if mmr_score > max_mmr_score:
                max_mmr_score = mmr_score
                best_idx = idx

        selected_indices.append(best_idx)
        remaining_indices.remove(best_idx)

    selected = [pool[idx] for idx in selected_indices]

    logger.info(f"[mmr] Selected {len(selected)} diverse passages")

    return selected
