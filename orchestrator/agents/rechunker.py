"""
Rechunk Agent

Chunks source documents and replaces their stored passages, one document or
a batch at a time. A batch never stops on a failed document; every document
gets an outcome (ok with a passage count, skipped, or failed with a reason).
"""

import logging
import time
from datetime import date, datetime
from typing import Iterable, Optional, Union

from config import settings
from transcript_rag import BatchResult, DocumentOutcome, PassageIndexer, TranscriptRAGError, chunk_text
from transcript_rag.errors import STATUS_FAILED, STATUS_OK, STATUS_SKIPPED

logger = logging.getLogger(__name__)

SKIP_EMPTY_SOURCE = 'empty_source'


def rechunk_document(
    document_id: str,
    documents,
    indexer: PassageIndexer,
    target_tokens: Optional[int] = None,
    overlap_tokens: Optional[int] = None
) -> DocumentOutcome:
    """
    Chunk one document and replace its passages.

    Args:
        document_id: Document to process
        documents: Document store
        indexer: PassageIndexer writing to the passage store
        target_tokens: Chunk budget, defaults to settings
        overlap_tokens: Chunk overlap, defaults to settings

    Returns:
        DocumentOutcome with status ok or skipped

    Raises:
        NotFoundError, InputError, DependencyError
    """
    if target_tokens is None:
        target_tokens = settings.RAG_CHUNK_TARGET_TOKENS
    if overlap_tokens is None:
        overlap_tokens = settings.RAG_CHUNK_OVERLAP_TOKENS

    document = documents.get(document_id)

    chunks = chunk_text(document.text, target_tokens, overlap_tokens)
    if not chunks:
        logger.warning(f"[rechunker] {document_id}: skip: empty source")
        return DocumentOutcome(document_id, STATUS_SKIPPED, reason=SKIP_EMPTY_SOURCE)

    stored = indexer.replace(document_id, chunks)

    return DocumentOutcome(document_id, STATUS_OK, chunks=stored)


def rechunk_documents(
    document_ids: Iterable[str],
    documents,
    indexer: PassageIndexer,
    target_tokens: Optional[int] = None,
    overlap_tokens: Optional[int] = None
) -> BatchResult:
    """
    Rechunk several documents, collecting one outcome per document.

    Returns:
        BatchResult; check ``failed`` / ``is_partial`` for problems
    """
    start_time = time.time()
    result = BatchResult()

    for document_id in document_ids:
        try:
            outcome = rechunk_document(document_id, documents, indexer, target_tokens, overlap_tokens)
        except TranscriptRAGError as e:
            logger.error(f"[rechunker] {document_id}: {e}")
            outcome = DocumentOutcome(document_id, STATUS_FAILED, reason=str(e))
        except Exception as e:
            logger.exception(f"[rechunker] {document_id}: unexpected error")
            outcome = DocumentOutcome(document_id, STATUS_FAILED, reason=f"{type(e).__name__}: {e}")
        result.add(outcome)

    elapsed = time.time() - start_time
    logger.info(
        f"[rechunker] Processed {len(result.outcomes)} documents: {len(result.succeeded)} ok, "
        f"{len(result.skipped)} skipped, {len(result.failed)} failed, "
        f"{result.total_chunks} passages ({elapsed:.1f}s)"
    )

    return result


def backfill_since(
    since: Union[str, date, datetime],
    documents,
    indexer: PassageIndexer,
    limit: Optional[int] = None,
    target_tokens: Optional[int] = None,
    overlap_tokens: Optional[int] = None
) -> BatchResult:
    """
    Rechunk every document created at or after ``since`` (newest first).

    Args:
        since: ISO date/datetime string, date or datetime
        limit: Max documents, defaults to settings.RAG_BACKFILL_LIMIT

    Returns:
        BatchResult
    """
    if limit is None:
        limit = settings.RAG_BACKFILL_LIMIT

    recent = documents.list_since(since, limit)
    logger.info(f"[rechunker] Backfilling {len(recent)} documents since {since}")

    return rechunk_documents(
        [d.document_id for d in recent], documents, indexer, target_tokens, overlap_tokens
    )
