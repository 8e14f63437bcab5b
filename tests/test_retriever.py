"""Tests for keyword scoring, per-document caps and scoped candidate retrieval."""

import pytest

from transcript_rag import CandidateRetriever, InMemoryPassageStore, Scope
from transcript_rag.errors import DependencyError, InputError
from transcript_rag.scorer import enforce_per_document_cap, keyword_bonus, overfetch_size, score_candidates

from conftest import KeywordEmbedder, StaticEmbedder, make_passage, unit_at


QUERY = [1.0, 0.0, 0.0]


def _store(passages):
    store = InMemoryPassageStore(3)
    store.insert(passages)
    return store


class TestKeywordBonus:
    """Bonus per scope term found in the passage."""

    def test_no_scope_no_bonus(self) -> None:
        """Unscoped retrieval adds nothing."""
        assert keyword_bonus(make_passage('p1', text='pricing with Alice'), None) == 0.0

    def test_one_bonus_per_matched_term(self) -> None:
        """Title and participant terms each add one bonus."""
        passage = make_passage('p1', text='Alice walked through the new PRICING tiers.')
        scope = Scope(title_contains='pricing', participant_contains='alice')

        assert keyword_bonus(passage, scope) == pytest.approx(0.10)
        assert keyword_bonus(passage, Scope(title_contains='pricing')) == pytest.approx(0.05)
        assert keyword_bonus(passage, Scope(title_contains='shipping')) == 0.0

    def test_section_title_counts(self) -> None:
        """A term in the section title earns the bonus."""
        passage = make_passage('p1', text='Numbers went up.', section_title='Pricing recap')

        assert keyword_bonus(passage, Scope(title_contains='pricing')) == pytest.approx(0.05)

    def test_bonus_can_reorder(self) -> None:
        """A literal match can lift a slightly less similar passage."""
        plain = make_passage('plain', text='Budget talk.')
        matched = make_passage('matched', text='The pricing tiers.')

        candidates = score_candidates([(plain, 0.80), (matched, 0.78)], Scope(title_contains='pricing'))

        assert [c.passage_id for c in candidates] == ['matched', 'plain']
        assert candidates[0].score == pytest.approx(0.83)

    def test_sort_is_stable(self) -> None:
        """Equal combined scores keep their incoming order."""
        hits = [(make_passage(pid), 0.5) for pid in ('x', 'y', 'z')]

        assert [c.passage_id for c in score_candidates(hits)] == ['x', 'y', 'z']


class TestPerDocumentCap:
    """No document contributes more than the cap."""

    def test_caps_each_document(self) -> None:
        """Only the best six of one document survive."""
        candidates = score_candidates(
            [(make_passage(f"a{i}", 'doc-a', i), 0.9 - i * 0.1) for i in range(7)]
            + [(make_passage('b0', 'doc-b'), 0.65)]
        )

        capped = enforce_per_document_cap(candidates, 6)

        assert len(capped) == 7
        assert 'b0' in [c.passage_id for c in capped]
        assert 'a6' not in [c.passage_id for c in capped]

    def test_overfetch_size(self) -> None:
        """Three candidates per final result, at most fifty."""
        assert overfetch_size(5) == 15
        assert overfetch_size(12) == 36
        assert overfetch_size(20) == 50


class TestCandidateRetriever:
    """End-to-end candidate retrieval over the passage store."""

    def test_cap_applies_before_truncation(self) -> None:
        """Doc B survives because doc A is capped at six."""
        relevances = [0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3]
        store = _store(
            [make_passage(f"a{i}", 'doc-a', i, embedding=unit_at(r)) for i, r in enumerate(relevances)]
            + [make_passage('b0', 'doc-b', 0, embedding=unit_at(0.65))]
        )
        retriever = CandidateRetriever(store, StaticEmbedder(QUERY))

        candidates = retriever.retrieve('what changed?', limit=12)

        assert [c.passage_id for c in candidates] == ['a0', 'a1', 'a2', 'b0', 'a3', 'a4', 'a5']
        assert [c.document_id for c in candidates].count('doc-a') == 6
        assert candidates[3].relevance == pytest.approx(0.65, abs=1e-5)

    def test_overfetch_limit(self) -> None:
        """Returns three times the requested count when plenty match."""
        store = _store([
            make_passage(f"p{d}-{i}", f"doc-{d}", i, embedding=unit_at(0.2 + (d * 3 + i) * 0.01))
            for d in range(20) for i in range(3)
        ])
        retriever = CandidateRetriever(store, StaticEmbedder(QUERY))

        candidates = retriever.retrieve('anything', limit=5)

        assert len(candidates) == 15
        scores = [c.score for c in candidates]
        assert scores == sorted(scores, reverse=True)

    def test_candidates_carry_embeddings(self) -> None:
        """Each candidate exposes the passage vector for diversification."""
        store = _store([make_passage('a0', embedding=unit_at(0.9))])

        candidate = CandidateRetriever(store, StaticEmbedder(QUERY)).retrieve('q')[0]

        assert candidate.embedding.shape == (3,)

    def test_scope_that_matches_nothing_returns_empty(self, caplog) -> None:
        """No error, just an empty list and a warning."""
        store = _store([make_passage('a0', embedding=unit_at(0.9))])
        retriever = CandidateRetriever(store, StaticEmbedder(QUERY))

        with caplog.at_level('WARNING'):
            candidates = retriever.retrieve('q', Scope(participant_contains='nobody'))

        assert candidates == []
        assert 'no_context_for_scope' in caplog.text

    def test_empty_store_returns_empty(self) -> None:
        """Nothing indexed yet means no candidates."""
        assert CandidateRetriever(InMemoryPassageStore(3), StaticEmbedder(QUERY)).retrieve('q') == []

    @pytest.mark.parametrize('query', ['', '   '])
    def test_blank_query(self, query) -> None:
        """Blank queries raise InputError."""
        retriever = CandidateRetriever(InMemoryPassageStore(3), StaticEmbedder(QUERY))

        with pytest.raises(InputError):
            retriever.retrieve(query)

    def test_embedding_failure(self, passages) -> None:
        """A failing embedder surfaces as DependencyError."""
        retriever = CandidateRetriever(passages, KeywordEmbedder(fail_on_call=1))

        with pytest.raises(DependencyError) as exc_info:
            retriever.retrieve('pricing?')

        assert isinstance(exc_info.value.__cause__, RuntimeError)
