"""
Shared fixtures and fakes for the transcript pipeline tests.

Provides: deterministic keyword embedder, static query embedder, document and
passage stores, a passage indexer wired to the fakes.
"""

from datetime import date, datetime, timezone

import numpy as np
import pytest

from transcript_rag import InMemoryDocumentStore, InMemoryPassageStore, PassageIndexer, SourceDocument
from transcript_rag.errors import InputError
from transcript_rag.models import Passage, QueryCandidate


VOCABULARY = ['pricing', 'shipping', 'renewal', 'onboarding', 'churn', 'roadmap']


class KeywordEmbedder:
    """
    One axis per vocabulary word plus a bias axis, L2-normalized.

    Records every batch it is asked to embed.
    """

    def __init__(self, fail_on_call=None, fail_on_text=None):
        self.calls = []
        self.fail_on_call = fail_on_call
        self.fail_on_text = fail_on_text

    def get_dimension(self):
        return len(VOCABULARY) + 1

    def _vector(self, text):
        lowered = text.lower()
        vector = np.array([lowered.count(word) for word in VOCABULARY] + [0.1], dtype='float32')
        return vector / np.linalg.norm(vector)

    def embed_texts(self, texts):
        if not texts or any(not t.strip() for t in texts):
            raise InputError('Cannot embed blank text')
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError('embedding service unavailable')
        if self.fail_on_text and any(self.fail_on_text in t for t in texts):
            raise RuntimeError('embedding service rejected input')
        return np.vstack([self._vector(t) for t in texts])

    def embed_query(self, query):
        return self.embed_texts([query])[0]


class StaticEmbedder:
    """Returns the same query vector for every query."""

    def __init__(self, vector):
        self.vector = np.asarray(vector, dtype='float32')

    def embed_query(self, query):
        return self.vector


def make_passage(passage_id, document_id='doc-a', sequence_index=0, text='', embedding=None, **kwargs):
    defaults = dict(
        section_id=f"sec-{sequence_index:03d}",
        section_title=kwargs.pop('section_title', f"Section {sequence_index}"),
        token_count=max(1, len(text) // 4),
        content_hash=f"hash-{passage_id}",
        document_title='Weekly sync',
        participants=('Alice',),
        document_date=date(2024, 3, 5),
    )
    defaults.update(kwargs)
    return Passage(
        passage_id=passage_id,
        document_id=document_id,
        sequence_index=sequence_index,
        text=text or f"Passage {passage_id}",
        embedding=np.asarray(embedding, dtype='float32') if embedding is not None else None,
        **defaults,
    )


def make_candidate(passage_id, relevance, embedding, document_id='doc-a'):
    return QueryCandidate(
        passage=make_passage(passage_id, document_id=document_id),
        relevance=relevance,
        embedding=np.asarray(embedding, dtype='float32') if embedding is not None else None,
    )


def unit_at(relevance, dimension=3):
    """Vector whose cosine with e0 equals ``relevance``."""
    vector = np.zeros(dimension, dtype='float32')
    vector[0] = relevance
    vector[1] = np.sqrt(1 - relevance ** 2)
    return vector


PRICING_TRANSCRIPT = (
    "Alice opened the call with the pricing update. The new pricing tiers start in April. "
    "Bob asked whether pricing for legacy accounts changes. Shipping was not discussed. "
    "Alice confirmed the pricing change applies to renewals too."
)

SHIPPING_TRANSCRIPT = (
    "Carol reported shipping delays in the north region. Shipping partners were late twice. "
    "The team agreed to review shipping contracts. Dave will follow up on the roadmap."
)


@pytest.fixture
def documents():
    return InMemoryDocumentStore([
        SourceDocument(
            document_id='m-pricing',
            title='Acme pricing review',
            date=date(2024, 3, 5),
            participants=['Alice', 'Bob'],
            text=PRICING_TRANSCRIPT,
            created_at=datetime(2024, 3, 5, 15, 0, tzinfo=timezone.utc),
        ),
        SourceDocument(
            document_id='m-shipping',
            title='Globex logistics sync',
            date=date(2024, 4, 10),
            participants=['Carol', 'Dave'],
            text=SHIPPING_TRANSCRIPT,
            created_at=datetime(2024, 4, 10, 9, 30, tzinfo=timezone.utc),
        ),
        SourceDocument(
            document_id='m-empty',
            title='Cancelled standup',
            date=date(2024, 4, 11),
            participants=['Erin'],
            text='   \n  ',
            created_at=datetime(2024, 4, 11, 9, 0, tzinfo=timezone.utc),
        ),
    ])


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def passages(embedder):
    return InMemoryPassageStore(embedder.get_dimension())


@pytest.fixture
def indexer(passages, documents, embedder):
    return PassageIndexer(passages, documents, embedder, batch_size=2)
