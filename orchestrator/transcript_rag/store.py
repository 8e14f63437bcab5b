"""
Document and passage stores.

The passage store keeps passage records in memory, indexes their vectors in
FAISS and persists to a JSON file. Scope filtering happens here so callers only
see passages inside the requested scope.
"""

import json
import logging
import os
import threading
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from dateutil import parser as dateparser

from .errors import NotFoundError
from .models import Passage, Scope, SourceDocument
from .vector_index import FAISSVectorIndex

logger = logging.getLogger(__name__)

PASSAGES_FILE = 'passages.json'


def _as_utc_datetime(value: Union[str, date, datetime]) -> datetime:
    if isinstance(value, str):
        value = dateparser.parse(value)
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not value.tzinfo:
        value = value.replace(tzinfo=timezone.utc)
    return value


class InMemoryDocumentStore:
    """
    Source documents keyed by id.
    """

    def __init__(self, documents: Optional[Iterable[SourceDocument]] = None):
        self._documents: Dict[str, SourceDocument] = {}
        for document in documents or []:
            self.add(document)

    def add(self, document: SourceDocument):
        self._documents[document.document_id] = document

    def get(self, document_id: str) -> SourceDocument:
        """
        Get a document by id.

        Raises:
            NotFoundError: if the id is unknown
        """
        try:
            return self._documents[document_id]
        except KeyError:
            raise NotFoundError(document_id) from None

    def list_since(self, since: Union[str, date, datetime], limit: int = 200) -> List[SourceDocument]:
        """
        List documents created at or after ``since``, newest first.

        Args:
            since: ISO string, date or datetime (naive values are UTC)
            limit: Max documents returned

        Returns:
            List of documents
        """
        cutoff = _as_utc_datetime(since)
        recent = [d for d in self._documents.values() if _as_utc_datetime(d.created_at) >= cutoff]
        recent.sort(key=lambda d: _as_utc_datetime(d.created_at), reverse=True)
        return recent[:limit]

    def __len__(self) -> int:
        return len(self._documents)

    @classmethod
    def load_json(cls, filepath: str) -> 'InMemoryDocumentStore':
        """
        Load documents from a JSON file of ingest payloads.

        Accepts either a list of payloads or an object with a ``meetings`` list.
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        payloads = data.get('meetings', []) if isinstance(data, dict) else data
        store = cls(SourceDocument.from_payload(p) for p in payloads)

        logger.info(f"[store] Loaded {len(store)} documents from {filepath}")

        return store


class InMemoryPassageStore:
    """
    Passage records with a FAISS similarity index over filled-in vectors.

    All public methods are guarded by one re-entrant lock.
    """

    def __init__(self, dimension: int):
        """
        Initialize an empty store.

        Args:
            dimension: Embedding dimension shared by every passage
        """
        self.dimension = dimension
        self.index = FAISSVectorIndex(dimension)
        self._lock = threading.RLock()
        self._passages: Dict[str, Passage] = {}
        self._by_document: Dict[str, List[str]] = {}
        self._int_ids: Dict[str, int] = {}
        self._passage_ids: Dict[int, str] = {}
        self._next_int_id = 0

    def count(self) -> int:
        with self._lock:
            return len(self._passages)

    def get(self, passage_id: str) -> Passage:
        with self._lock:
            return self._passages[passage_id]

    def list_document(self, document_id: str) -> List[Passage]:
        """Passages of a document ordered by sequence index."""
        with self._lock:
            passages = [self._passages[pid] for pid in self._by_document.get(document_id, [])]
        return sorted(passages, key=lambda p: p.sequence_index)

    def delete_document(self, document_id: str) -> int:
        """
        Remove every passage of a document.

        Returns:
            Number of passages removed
        """
        with self._lock:
            passage_ids = self._by_document.pop(document_id, [])
            int_ids = [self._int_ids[pid] for pid in passage_ids if self._passages[pid].embedding is not None]
            self.index.remove(int_ids)
            for pid in passage_ids:
                del self._passages[pid]
                self._passage_ids.pop(self._int_ids.pop(pid), None)

        logger.debug(f"[store] Deleted {len(passage_ids)} passages for {document_id}")
        return len(passage_ids)

    def has_hash(self, document_id: str, content_hash: str) -> bool:
        with self._lock:
            return any(
                self._passages[pid].content_hash == content_hash
                for pid in self._by_document.get(document_id, [])
            )

    def insert(self, passages: Sequence[Passage]) -> int:
        """
        Insert new passages; either every passage is stored or none is.

        Raises:
            ValueError: on a duplicate passage id, a duplicate hash within a
                document or an embedding of the wrong dimension
        """
        with self._lock:
            seen_ids = set()
            seen_hashes = set()
            vectors = {}
            for passage in passages:
                if passage.passage_id in self._passages or passage.passage_id in seen_ids:
                    raise ValueError(f"Duplicate passage id {passage.passage_id}")
                key = (passage.document_id, passage.content_hash)
                if key in seen_hashes or self.has_hash(*key):
                    raise ValueError(f"Duplicate content hash {passage.content_hash} for {passage.document_id}")
                if passage.embedding is not None:
                    vectors[passage.passage_id] = self._check_vector(passage.passage_id, passage.embedding)
                seen_ids.add(passage.passage_id)
                seen_hashes.add(key)

            for passage in passages:
                int_id = self._next_int_id
                self._next_int_id += 1
                self._passages[passage.passage_id] = passage
                self._by_document.setdefault(passage.document_id, []).append(passage.passage_id)
                self._int_ids[passage.passage_id] = int_id
                self._passage_ids[int_id] = passage.passage_id

                if passage.passage_id in vectors:
                    passage.embedding = vectors[passage.passage_id]
                    self.index.add([int_id], passage.embedding)

        return len(passages)

    def _check_vector(self, passage_id: str, vector) -> np.ndarray:
        vector = np.asarray(vector, dtype='float32').reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ValueError(
                f"Embedding dimension {vector.shape[0]} for passage {passage_id} "
                f"doesn't match store dimension {self.dimension}"
            )
        return vector

    def missing_embeddings(self, document_id: str) -> List[Passage]:
        """Passages of a document whose vector is still unset."""
        return [p for p in self.list_document(document_id) if p.embedding is None]

    def set_embeddings(self, vectors: Dict[str, np.ndarray]) -> int:
        """
        Fill in vectors for passages that have none; all or nothing.

        Raises:
            KeyError: for an unknown passage id
            ValueError: if a vector is already set or has the wrong dimension
        """
        with self._lock:
            checked = {}
            for passage_id, vector in vectors.items():
                if self._passages[passage_id].embedding is not None:
                    raise ValueError(f"Embedding already set for passage {passage_id}")
                checked[passage_id] = self._check_vector(passage_id, vector)

            for passage_id, vector in checked.items():
                self.index.add([self._int_ids[passage_id]], vector)
                self._passages[passage_id].embedding = vector

        return len(vectors)

    def search(self, query_vector: np.ndarray, scope: Optional[Scope] = None) -> List[Tuple[Passage, float]]:
        """
        Rank embedded passages inside the scope by cosine similarity.

        Args:
            query_vector: Query embedding
            scope: Optional constraints

        Returns:
            List of (passage, relevance), most similar first
        """
        with self._lock:
            scores, int_ids = self.index.search(query_vector, self.index.size())
            results = []
            for score, int_id in zip(scores, int_ids):
                if int_id < 0:
                    continue
                passage = self._passages[self._passage_ids[int(int_id)]]
                if scope is not None and not scope.admits(passage):
                    continue
                results.append((passage, float(score)))

        return results

    def fetch_vectors(self, passage_ids: Iterable[str]) -> Dict[str, np.ndarray]:
        """Vectors for the given ids; ids without a vector are left out."""
        with self._lock:
            vectors = {}
            for pid in passage_ids:
                passage = self._passages.get(pid)
                if passage is not None and passage.embedding is not None:
                    vectors[pid] = passage.embedding
        return vectors

    def save(self, dirpath: str):
        """
        Save passages (with vectors) to a directory.

        Args:
            dirpath: Directory to write into, created if missing
        """
        os.makedirs(dirpath, exist_ok=True)
        filepath = os.path.join(dirpath, PASSAGES_FILE)
        with self._lock:
            data = {
                'dimension': self.dimension,
                'passages': [p.to_dict() for p in self._passages.values()],
            }
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False)
        logger.info(f"[store] Saved {len(data['passages'])} passages to {filepath}")

    @classmethod
    def load(cls, dirpath: str) -> 'InMemoryPassageStore':
        """
        Load a store saved with ``save``; the FAISS index is rebuilt.

        Returns:
            InMemoryPassageStore instance
        """
        filepath = os.path.join(dirpath, PASSAGES_FILE)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        store = cls(int(data['dimension']))
        store.insert([Passage.from_dict(p) for p in data['passages']])

        logger.info(f"[store] Loaded {store.count()} passages from {filepath}")

        return store
