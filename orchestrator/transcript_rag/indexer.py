"""
Idempotent passage indexing for one document at a time.

replace() runs delete -> header -> hash -> dedup -> insert -> embed as an
explicit sequence under a per-document lock. The embedding step only touches
passages without a vector, so a retry after a partial failure resumes where
the previous run stopped.
"""

import hashlib
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Sequence

import numpy as np
from tenacity import Retrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from .errors import DependencyError, InputError
from .models import Passage, SourceDocument

logger = logging.getLogger(__name__)


def build_header(document: SourceDocument, section_title: str, sequence_index: int) -> str:
    """Deterministic citation header prepended to each passage."""
    return (
        f"[{document.title} | {document.primary_participant} | "
        f"{document.date.isoformat()} | §{sequence_index} {section_title}]"
    )


def content_hash(text: str) -> str:
    return hashlib.sha1(text.encode('utf-8')).hexdigest()


class PassageIndexer:
    """
    Replaces the stored passages of a document and fills in their vectors.
    """

    def __init__(self, passages, documents, embedder, batch_size: int = 32, max_attempts: int = 1):
        """
        Args:
            passages: Passage store
            documents: Document store (get raises NotFoundError)
            embedder: Embedding function with embed_texts()
            batch_size: Passages embedded and written per round trip
            max_attempts: Tries per embedding batch before giving up
        """
        self.passages = passages
        self.documents = documents
        self.embedder = embedder
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=10)

        self._registry_lock = threading.Lock()
        # document id -> [lock, holders and waiters]
        self._document_locks: Dict[str, list] = {}

    @contextmanager
    def _document_lock(self, document_id: str):
        """Hold the lock for one document; the lock is dropped once nobody uses it."""
        with self._registry_lock:
            entry = self._document_locks.setdefault(document_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if not entry[1]:
                    del self._document_locks[document_id]

    def replace(self, document_id: str, chunks: Sequence[Dict[str, Any]]) -> int:
        """
        Replace all passages of a document with the given chunks.

        Args:
            document_id: Document to rechunk
            chunks: Chunk dicts from chunk_text()

        Returns:
            Number of passages stored

        Raises:
            NotFoundError: if the document is unknown
            DependencyError: if the store or embedding call fails
        """
        with self._document_lock(document_id):
            document = self.documents.get(document_id)

            # 1. Delete
            try:
                removed = self.passages.delete_document(document_id)
            except Exception as e:
                raise DependencyError('Failed to delete existing passages', e, document_id) from e

            # 2-4. Header, hash, dedup
            new_passages = self._build_passages(document, chunks)

            # 5. Insert
            try:
                stored = self.passages.insert(new_passages)
            except Exception as e:
                raise DependencyError('Failed to insert passages', e, document_id) from e

            logger.info(f"[indexer] {document_id}: removed {removed}, stored {stored} passages")

            # 6. Embed
            if stored:
                self._fill_embeddings(document_id)

            return stored

    def _build_passages(self, document: SourceDocument, chunks: Sequence[Dict[str, Any]]) -> List[Passage]:
        seen = set()
        passages = []

        for chunk in chunks:
            index = chunk['sequence_index']
            header = build_header(document, chunk['section_title'], index)
            text = f"{header}\n{chunk['text']}"
            digest = content_hash(text)

            try:
                exists = digest in seen or self.passages.has_hash(document.document_id, digest)
            except Exception as e:
                raise DependencyError('Failed to check content hash', e, document.document_id) from e
            if exists:
                logger.debug(f"[indexer] {document.document_id}: skipping duplicate chunk {index}")
                continue
            seen.add(digest)

            passages.append(Passage(
                passage_id=str(uuid.uuid4()),
                document_id=document.document_id,
                sequence_index=index,
                section_id=chunk['section_id'],
                section_title=chunk['section_title'],
                text=text,
                token_count=chunk['token_count'],
                content_hash=digest,
                document_title=document.title,
                participants=tuple(document.participants),
                document_date=document.date,
            ))

        return passages

    def _embed_batch(self, texts: List[str]) -> np.ndarray:
        # Blank input never succeeds on retry
        retryer = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_not_exception_type(InputError),
            reraise=True,
        )
        return retryer(self.embedder.embed_texts, texts)

    def fill_embeddings(self, document_id: str) -> int:
        """
        Embed passages of a document that have no vector yet.

        Each batch is written before the next one is embedded, so a failure
        leaves earlier batches in place for the retry.

        Returns:
            Number of vectors written

        Raises:
            DependencyError: if embedding or writing a batch fails
        """
        with self._document_lock(document_id):
            return self._fill_embeddings(document_id)

    def _fill_embeddings(self, document_id: str) -> int:
        try:
            pending = self.passages.missing_embeddings(document_id)
        except Exception as e:
            raise DependencyError('Failed to list passages without vectors', e, document_id) from e

        written = 0
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start:start + self.batch_size]
            try:
                vectors = self._embed_batch([p.text for p in batch])
                written += self.passages.set_embeddings(
                    {p.passage_id: vector for p, vector in zip(batch, vectors)}
                )
            except Exception as e:
                raise DependencyError(
                    f"Failed to embed passages ({written}/{len(pending)} done)", e, document_id
                ) from e

        logger.info(f"[indexer] {document_id}: embedded {written} passages")

        return written
