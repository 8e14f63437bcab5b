"""
Embedding generation using sentence-transformers.

Provides consistent embedding generation for passages and queries.
"""

import logging
import numpy as np
from typing import List
from sentence_transformers import SentenceTransformer

from .errors import InputError

logger = logging.getLogger(__name__)


class Embedder:
    """
    Wrapper for sentence-transformers embedding model.

    Refuses empty or blank input instead of returning zero vectors.
    """

    def __init__(self, model_name: str = 'Snowflake/snowflake-arctic-embed-l-v2.0'):
        """
        Initialize embedder with model.

        Args:
            model_name: HuggingFace model name
        """
        logger.info(f"[embedder] Loading model: {model_name}")
        self.model = SentenceTransformer(model_name)
        self.model_name = model_name
        self.dimension = self.model.get_sentence_embedding_dimension()
        logger.info(f"[embedder] Model loaded, dimension: {self.dimension}")

    def embed_texts(self, texts: List[str], normalize: bool = True, show_progress: bool = False) -> np.ndarray:
        """
        Embed a list of texts.

        Args:
            texts: List of text strings
            normalize: Whether to L2-normalize embeddings (for cosine similarity)
            show_progress: Show progress bar

        Returns:
            Array of shape (len(texts), dimension)

        Raises:
            InputError: if the list is empty or any text is blank
        """
        if not texts:
            raise InputError('Cannot embed an empty list of texts')
        blank = [i for i, text in enumerate(texts) if not text or not text.strip()]
        if blank:
            raise InputError(f"Cannot embed blank text at positions {blank}")

        logger.debug(f"[embedder] Embedding {len(texts)} texts")

        embeddings = self.model.encode(
            texts,
            convert_to_numpy=True,
            show_progress_bar=show_progress,
            normalize_embeddings=normalize
        )

        return embeddings

    def embed_query(self, query: str, normalize: bool = True) -> np.ndarray:
        """
        Embed a single query.

        Args:
            query: Query string
            normalize: Whether to L2-normalize

        Returns:
            Array of shape (dimension,)
        """
        return self.embed_texts([query], normalize=normalize)[0]

    def get_dimension(self) -> int:
        """Get embedding dimension."""
        return self.dimension
