"""Tests for scope validation and ingest payload parsing."""

from datetime import date

import pydantic
import pytest

from transcript_rag.errors import InputError
from transcript_rag.models import Scope, SourceDocument

from conftest import make_passage


class TestScope:
    """Explicit, closed set of retrieval constraints."""

    def test_unknown_field_fails_at_construction(self) -> None:
        """Unsupported dimensions are rejected instead of ignored."""
        with pytest.raises(pydantic.ValidationError):
            Scope(customer_tier='gold')

    def test_blank_strings_become_none(self) -> None:
        """Empty terms do not constrain anything."""
        scope = Scope(title_contains='  ', participant_contains='')

        assert scope.title_contains is None
        assert scope.participant_contains is None
        assert scope.is_empty

    def test_parses_date_strings(self) -> None:
        """ISO dates and datetimes become dates."""
        scope = Scope(date_from='2024-03-01', date_to='2024-03-31T23:59:00Z')

        assert scope.date_from == date(2024, 3, 1)
        assert scope.date_to == date(2024, 3, 31)

    def test_rejects_inverted_date_range(self) -> None:
        """date_from after date_to is invalid."""
        with pytest.raises(pydantic.ValidationError):
            Scope(date_from='2024-05-01', date_to='2024-04-01')

    def test_is_immutable(self) -> None:
        """Scopes cannot be changed after construction."""
        scope = Scope(document_id='m-1')
        with pytest.raises(pydantic.ValidationError):
            scope.document_id = 'm-2'

    def test_from_filters_maps_legacy_keys(self) -> None:
        """Legacy filter names map onto scope dimensions."""
        scope = Scope.from_filters({
            'meeting_id': 'm-1',
            'title_like': 'pricing',
            'participants_contains': 'alice',
            'date_from': '2024-01-01',
        })

        assert scope == Scope(
            document_id='m-1',
            title_contains='pricing',
            participant_contains='alice',
            date_from=date(2024, 1, 1),
        )

    def test_from_filters_rejects_unknown_keys(self) -> None:
        """Unknown filter keys raise InputError naming them."""
        with pytest.raises(InputError) as exc_info:
            Scope.from_filters({'meeting': 'sync', 'speaker': 'bob'})

        assert exc_info.value.details['unsupported'] == ['speaker']

    def test_from_filters_empty_is_none(self) -> None:
        """No filters means no scope."""
        assert Scope.from_filters(None) is None
        assert Scope.from_filters({}) is None

    def test_admits_checks_every_dimension(self) -> None:
        """A passage must satisfy all set dimensions."""
        passage = make_passage(
            'p1', document_id='m-1', document_title='Acme Pricing Review',
            participants=('Alice Smith', 'Bob'), document_date=date(2024, 3, 5),
        )

        assert Scope(title_contains='pricing', participant_contains='alice').admits(passage)
        assert Scope(date_from='2024-03-05', date_to='2024-03-05').admits(passage)
        assert not Scope(document_id='m-2').admits(passage)
        assert not Scope(participant_contains='carol').admits(passage)
        assert not Scope(date_from='2024-03-06').admits(passage)


class TestSourceDocumentPayload:
    """Ingest payload validation."""

    PAYLOAD = {
        'meeting_id': 'm-1',
        'title': 'Acme pricing review',
        'datetime': '2024-03-05T15:00:00Z',
        'participants': ['Alice', 'Bob'],
        'note_url': 'https://notes.example.com/m-1',
        'granola_summary': 'Pricing changes in April.',
        'transcript': 'Alice opened the call.',
    }

    def test_builds_document(self) -> None:
        """Should map payload fields onto the document."""
        document = SourceDocument.from_payload(self.PAYLOAD)

        assert document.document_id == 'm-1'
        assert document.date == date(2024, 3, 5)
        assert document.primary_participant == 'Alice'
        assert document.summary == 'Pricing changes in April.'

    def test_missing_fields_are_listed(self) -> None:
        """Should name every missing required field."""
        payload = {k: v for k, v in self.PAYLOAD.items() if k not in ('title', 'transcript')}

        with pytest.raises(InputError) as exc_info:
            SourceDocument.from_payload(payload)

        assert exc_info.value.details['missing'] == ['title', 'transcript']

    def test_invalid_datetime(self) -> None:
        """Should reject unparseable datetimes."""
        with pytest.raises(InputError):
            SourceDocument.from_payload({**self.PAYLOAD, 'datetime': 'not a date'})

    def test_participants_must_be_list(self) -> None:
        """Should reject a participants string."""
        with pytest.raises(InputError):
            SourceDocument.from_payload({**self.PAYLOAD, 'participants': 'Alice'})
