"""
Record types shared by the chunker, indexer, retriever and diversifier.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import numpy as np
from dateutil import parser as dateparser
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .errors import InputError


def _to_date(value: Any) -> Optional[date]:
    """Coerce ISO strings, datetimes and dates to a date."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dateparser.parse(str(value)).date()


@dataclass
class SourceDocument:
    """A meeting transcript owned by the external document store."""

    document_id: str
    title: str
    date: date
    participants: List[str]
    text: str
    note_url: str = ''
    summary: str = ''
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def primary_participant(self) -> str:
        return self.participants[0] if self.participants else ''

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'SourceDocument':
        """
        Build a document from an ingest payload.

        Args:
            payload: Dict with meeting_id, title, datetime, participants,
                transcript and optionally note_url, granola_summary, created_at

        Returns:
            SourceDocument

        Raises:
            InputError: if required fields are missing or malformed
        """
        required = ['meeting_id', 'title', 'datetime', 'participants', 'transcript']
        missing = [key for key in required if not payload.get(key)]
        if missing:
            raise InputError(f"Missing required fields: {', '.join(missing)}", details={'missing': missing})

        try:
            meeting_dt = dateparser.parse(str(payload['datetime']))
        except (ValueError, OverflowError) as e:
            raise InputError('Invalid datetime format', field='datetime') from e

        participants = payload['participants']
        if not isinstance(participants, list):
            raise InputError('Participants must be an array', field='participants')

        created_at = payload.get('created_at')
        if created_at:
            created_at = dateparser.parse(str(created_at))
            if not created_at.tzinfo:
                created_at = created_at.replace(tzinfo=timezone.utc)
        else:
            created_at = datetime.now(timezone.utc)

        return cls(
            document_id=str(payload['meeting_id']),
            title=str(payload['title']),
            date=meeting_dt.date(),
            participants=[str(p) for p in participants],
            text=str(payload['transcript']),
            note_url=payload.get('note_url', '') or '',
            summary=payload.get('granola_summary', '') or '',
            created_at=created_at,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'meeting_id': self.document_id,
            'title': self.title,
            'datetime': self.date.isoformat(),
            'participants': list(self.participants),
            'transcript': self.text,
            'note_url': self.note_url,
            'granola_summary': self.summary,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class Passage:
    """
    A stored, header-prefixed slice of a document.

    Only ``embedding`` may change after insertion.
    """

    passage_id: str
    document_id: str
    sequence_index: int
    section_id: str
    section_title: str
    text: str
    token_count: int
    content_hash: str
    document_title: str = ''
    participants: Tuple[str, ...] = ()
    document_date: Optional[date] = None
    embedding: Optional[np.ndarray] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def citation(self) -> str:
        return f"{self.document_id}#{self.sequence_index}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'passage_id': self.passage_id,
            'document_id': self.document_id,
            'sequence_index': self.sequence_index,
            'section_id': self.section_id,
            'section_title': self.section_title,
            'text': self.text,
            'token_count': self.token_count,
            'content_hash': self.content_hash,
            'document_title': self.document_title,
            'participants': list(self.participants),
            'document_date': self.document_date.isoformat() if self.document_date else None,
            'embedding': self.embedding.tolist() if self.embedding is not None else None,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Passage':
        embedding = data.get('embedding')
        return cls(
            passage_id=data['passage_id'],
            document_id=data['document_id'],
            sequence_index=int(data['sequence_index']),
            section_id=data['section_id'],
            section_title=data['section_title'],
            text=data['text'],
            token_count=int(data['token_count']),
            content_hash=data['content_hash'],
            document_title=data.get('document_title', ''),
            participants=tuple(data.get('participants', [])),
            document_date=_to_date(data.get('document_date')),
            embedding=np.asarray(embedding, dtype='float32') if embedding is not None else None,
            created_at=dateparser.parse(data['created_at']),
        )


@dataclass
class QueryCandidate:
    """Scored passage for the duration of one retrieval call."""

    passage: Passage
    relevance: float
    keyword_bonus: float = 0.0
    embedding: Optional[np.ndarray] = None

    @property
    def passage_id(self) -> str:
        return self.passage.passage_id

    @property
    def document_id(self) -> str:
        return self.passage.document_id

    @property
    def score(self) -> float:
        return self.relevance + self.keyword_bonus


class CitedPassage(NamedTuple):
    """Grounding record handed to the answer generator."""

    id: str
    text: str
    score: float
    metadata: Dict[str, Any]


# Legacy filter keys accepted by Scope.from_filters
_FILTER_ALIASES = {
    'meeting_id': 'document_id',
    'document_id': 'document_id',
    'title_like': 'title_contains',
    'meeting': 'title_contains',
    'title_contains': 'title_contains',
    'participants_contains': 'participant_contains',
    'customer': 'participant_contains',
    'participant_contains': 'participant_contains',
    'date_from': 'date_from',
    'date_to': 'date_to',
}


class Scope(BaseModel):
    """
    Explicit retrieval constraints.

    Every dimension is optional and independent; unknown fields are rejected
    at construction time.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    document_id: Optional[str] = None
    title_contains: Optional[str] = None
    participant_contains: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @field_validator('document_id', 'title_contains', 'participant_contains', mode='before')
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator('date_from', 'date_to', mode='before')
    @classmethod
    def _parse_date(cls, value):
        return _to_date(value)

    @model_validator(mode='after')
    def _check_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError(f"date_from {self.date_from} is after date_to {self.date_to}")
        return self

    @classmethod
    def from_filters(cls, filters: Optional[Dict[str, Any]]) -> Optional['Scope']:
        """
        Build a scope from a loose filter dict.

        Raises:
            InputError: if a key is not a supported scope dimension
        """
        if not filters:
            return None
        unknown = sorted(key for key in filters if key not in _FILTER_ALIASES)
        if unknown:
            raise InputError(f"Unsupported filters: {', '.join(unknown)}", details={'unsupported': unknown})
        return cls(**{_FILTER_ALIASES[key]: value for key, value in filters.items()})

    @property
    def is_empty(self) -> bool:
        return not any([self.document_id, self.title_contains, self.participant_contains, self.date_from, self.date_to])

    def admits(self, passage: Passage) -> bool:
        """Check whether a passage falls inside every set dimension."""
        if self.document_id and passage.document_id != self.document_id:
            return False
        if self.title_contains and self.title_contains.lower() not in passage.document_title.lower():
            return False
        if self.participant_contains:
            needle = self.participant_contains.lower()
            if not any(needle in p.lower() for p in passage.participants):
                return False
        if self.date_from or self.date_to:
            if passage.document_date is None:
                return False
            if self.date_from and passage.document_date < self.date_from:
                return False
            if self.date_to and passage.document_date > self.date_to:
                return False
        return True

    def keyword_terms(self) -> List[str]:
        return [term for term in (self.title_contains, self.participant_contains) if term]
