"""
Scoped candidate retrieval.

Embeds the query, asks the passage store for similarity-ordered passages
inside the scope, then applies the keyword bonus, the per-document cap and
the overfetch limit.
"""

import logging
from typing import List, Optional

from .errors import DependencyError, InputError
from .models import QueryCandidate, Scope
from .scorer import DEFAULT_KEYWORD_BONUS, enforce_per_document_cap, overfetch_size, score_candidates

logger = logging.getLogger(__name__)


class CandidateRetriever:
    """
    Returns scored candidate passages for a query.
    """

    def __init__(
        self,
        passages,
        embedder,
        per_document_cap: int = 6,
        keyword_bonus: float = DEFAULT_KEYWORD_BONUS,
        overfetch_factor: int = 3,
        overfetch_max: int = 50
    ):
        """
        Args:
            passages: Passage store with search()
            embedder: Embedding function with embed_query()
            per_document_cap: Max candidates from one document
            keyword_bonus: Bonus per matched scope term
            overfetch_factor: Candidates requested per final result
            overfetch_max: Upper bound on candidates requested
        """
        self.passages = passages
        self.embedder = embedder
        self.per_document_cap = per_document_cap
        self.keyword_bonus = keyword_bonus
        self.overfetch_factor = overfetch_factor
        self.overfetch_max = overfetch_max

    def retrieve(self, query_text: str, scope: Optional[Scope] = None, limit: int = 12) -> List[QueryCandidate]:
        """
        Retrieve ranked candidates for a query.

        Args:
            query_text: Natural-language question
            scope: Optional retrieval constraints
            limit: Final number of passages wanted after diversification

        Returns:
            Up to min(overfetch_factor * limit, overfetch_max) candidates,
            best combined score first; empty when nothing matches

        Raises:
            InputError: if the query is blank
            DependencyError: if embedding or the store search fails
        """
        if not query_text or not query_text.strip():
            raise InputError('Query text is empty', field='query_text')

        try:
            query_vector = self.embedder.embed_query(query_text)
        except Exception as e:
            raise DependencyError('Failed to embed query', e) from e

        try:
            hits = self.passages.search(query_vector, scope)
        except Exception as e:
            raise DependencyError('Passage search failed', e) from e

        candidates = score_candidates(hits, scope, self.keyword_bonus)
        candidates = enforce_per_document_cap(candidates, self.per_document_cap)
        candidates = candidates[:overfetch_size(limit, self.overfetch_factor, self.overfetch_max)]

        if candidates:
            logger.info(f"[retriever] Top candidates: {[(c.passage.citation, round(c.score, 3)) for c in candidates[:10]]}")
        elif scope is not None and not scope.is_empty:
            logger.warning(f"[retriever] no_context_for_scope: {scope.model_dump(exclude_none=True)}")
        else:
            logger.info("[retriever] No candidates found")

        return candidates
