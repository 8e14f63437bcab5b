"""
Error taxonomy and per-document outcomes for the transcript pipeline.

All exceptions carry a details dict so callers can log or serialize the
context without parsing messages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class TranscriptRAGError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InputError(TranscriptRAGError):
    """Raised for empty, invalid or unchunkable input."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        if field:
            details['field'] = field
        super().__init__(message, details)


class NotFoundError(TranscriptRAGError):
    """Raised when an operation references an unknown document id."""

    def __init__(self, document_id: str, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details['document_id'] = document_id
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}", details)


class DependencyError(TranscriptRAGError):
    """
    Raised when the embedding function or a store call fails.

    Always raised ``from`` the original exception; the cause is also kept on
    the instance so batch reports can include it.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException,
        document_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details['cause'] = f"{type(cause).__name__}: {cause}"
        if document_id is not None:
            details['document_id'] = document_id
        self.cause = cause
        self.document_id = document_id
        super().__init__(message, details)


# Outcome statuses
STATUS_OK = 'ok'
STATUS_SKIPPED = 'skipped'
STATUS_FAILED = 'failed'


@dataclass(frozen=True)
class DocumentOutcome:
    """Result of processing one document inside a batch."""

    document_id: str
    status: str
    chunks: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'document_id': self.document_id, 'status': self.status, 'chunks': self.chunks}
        if self.reason:
            out['reason'] = self.reason
        return out


@dataclass
class BatchResult:
    """
    Per-document outcomes of a multi-document operation.

    A failed document never aborts the batch; ``is_partial`` tells callers
    that some, but not all, documents failed.
    """

    outcomes: List[DocumentOutcome] = field(default_factory=list)

    def add(self, outcome: DocumentOutcome):
        self.outcomes.append(outcome)

    @property
    def succeeded(self) -> List[DocumentOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_OK]

    @property
    def skipped(self) -> List[DocumentOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_SKIPPED]

    @property
    def failed(self) -> List[DocumentOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_FAILED]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed) and len(self.failed) < len(self.outcomes)

    @property
    def total_chunks(self) -> int:
        return sum(o.chunks for o in self.outcomes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': not self.failed,
            'partial': self.is_partial,
            'results': [o.to_dict() for o in self.outcomes],
        }
