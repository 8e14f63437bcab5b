"""
Retrieval pipeline for meeting transcripts.

Modules:
- chunker: Sentence-aware chunking with token budget and overlap
- embedder: Embedding generation
- vector_index: FAISS index management
- store: Document and passage stores
- indexer: Idempotent per-document passage replacement
- scorer: Keyword bonus and per-document cap
- retriever: Scoped candidate retrieval
- mmr: MMR diversity selection
"""

from .chunker import chunk_text
from .embedder import Embedder
from .errors import BatchResult, DependencyError, DocumentOutcome, InputError, NotFoundError, TranscriptRAGError
from .indexer import PassageIndexer
from .mmr import cosine, diversify
from .models import CitedPassage, Passage, QueryCandidate, Scope, SourceDocument
from .retriever import CandidateRetriever
from .store import InMemoryDocumentStore, InMemoryPassageStore
from .vector_index import FAISSVectorIndex

__all__ = [
    'chunk_text', 'Embedder', 'FAISSVectorIndex', 'InMemoryDocumentStore', 'InMemoryPassageStore',
    'PassageIndexer', 'CandidateRetriever', 'diversify', 'cosine',
    'SourceDocument', 'Passage', 'QueryCandidate', 'Scope', 'CitedPassage',
    'TranscriptRAGError', 'InputError', 'NotFoundError', 'DependencyError', 'DocumentOutcome', 'BatchResult',
]
