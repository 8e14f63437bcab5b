"""
FAISS index management for passage similarity search.

Uses IndexFlatIP wrapped in IndexIDMap2 so passages can be removed when their
document is rechunked. Vectors are L2-normalized on the way in, so inner
product equals cosine similarity.
"""

import logging
import numpy as np
from typing import Sequence, Tuple
import faiss

logger = logging.getLogger(__name__)


class FAISSVectorIndex:
    """
    FAISS index wrapper keyed by integer ids.
    """

    def __init__(self, dimension: int):
        """
        Initialize FAISS index.

        Args:
            dimension: Embedding dimension
        """
        self.dimension = dimension
        # IndexFlatIP: inner product (cosine for normalized vectors)
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        logger.info(f"[vector_index] Created FAISS IndexFlatIP with dimension {dimension}")

    def _prepare(self, vectors: np.ndarray) -> np.ndarray:
        vectors = np.array(vectors, dtype='float32')
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)
        if vectors.shape[1] != self.dimension:
            raise ValueError(f"Embedding dimension {vectors.shape[1]} doesn't match index dimension {self.dimension}")
        faiss.normalize_L2(vectors)
        return vectors

    def add(self, ids: Sequence[int], embeddings: np.ndarray):
        """
        Add embeddings to index.

        Args:
            ids: Integer ids, one per row
            embeddings: Array of shape (n_vectors, dimension)
        """
        vectors = self._prepare(embeddings)
        if len(ids) != vectors.shape[0]:
            raise ValueError(f"Got {len(ids)} ids for {vectors.shape[0]} vectors")

        self.index.add_with_ids(vectors, np.asarray(ids, dtype='int64'))
        logger.debug(f"[vector_index] Added {len(ids)} vectors, total: {self.index.ntotal}")

    def remove(self, ids: Sequence[int]) -> int:
        """
        Remove vectors by id.

        Returns:
            Number of vectors removed
        """
        if not len(ids):
            return 0
        removed = self.index.remove_ids(np.asarray(ids, dtype='int64'))
        logger.debug(f"[vector_index] Removed {removed} vectors, total: {self.index.ntotal}")
        return int(removed)

    def search(self, query_embedding: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Search for top-k nearest neighbors.

        Args:
            query_embedding: Query vector of shape (dimension,) or (1, dimension)
            k: Number of nearest neighbors

        Returns:
            Tuple of (scores, ids), each of shape (k,), best first
        """
        query = self._prepare(query_embedding)

        # Limit k to index size
        k = min(k, self.index.ntotal)

        if k == 0:
            return np.array([], dtype='float32'), np.array([], dtype='int64')

        scores, ids = self.index.search(query, k)

        return scores[0], ids[0]

    def size(self) -> int:
        """Get number of vectors in index."""
        return self.index.ntotal
