"""
Sentence-aware text chunking with overlap for RAG retrieval.

Transcripts are split with a punctuation heuristic, accumulated up to a token
budget (~4 chars per token) and emitted with a trailing overlap carried into
the next chunk so answers spanning a boundary are not lost.
"""

import logging
import math
import re
from typing import Any, Dict, List

from .errors import InputError

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
SECTION_TITLE_MAX_CHARS = 50

# End punctuation followed by whitespace and a capital, digit, quote or paren
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'(])")


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(chars / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def split_sentences(text: str) -> List[str]:
    """
    Split text into trimmed, non-empty sentences.

    Args:
        text: Raw text

    Returns:
        List of sentences in order
    """
    src = text.replace('\r', '\n')
    return [s.strip() for s in SENTENCE_BOUNDARY.split(src) if s and s.strip()]


def section_title(chunk: str) -> str:
    """Derive a title from the first sentence of a chunk."""
    sentences = split_sentences(chunk)
    first = sentences[0] if sentences else chunk.strip()
    if len(first) <= SECTION_TITLE_MAX_CHARS:
        return first
    return first[:SECTION_TITLE_MAX_CHARS].rstrip() + '...'


def chunk_text(text: str, target_tokens: int = 750, overlap_tokens: int = 100) -> List[Dict[str, Any]]:
    """
    Chunk text into overlapping, sentence-aligned pieces.

    Args:
        text: Raw transcript text
        target_tokens: Token budget per chunk (~4 chars per token)
        overlap_tokens: Tokens carried from the end of one chunk into the next

    Returns:
        List of chunk dicts (sequence_index, section_id, section_title, text,
        token_count, overlap_chars), empty for blank input

    Raises:
        InputError: if the budget and overlap cannot make progress
    """
    if target_tokens <= 0:
        raise InputError(f"target_tokens must be positive, got {target_tokens}", field='target_tokens')
    if overlap_tokens < 0 or overlap_tokens >= target_tokens:
        raise InputError(
            f"overlap_tokens must be in [0, {target_tokens}), got {overlap_tokens}",
            field='overlap_tokens',
        )

    if not text or not text.strip():
        logger.info("[chunker] skip: empty source")
        return []

    target_chars = target_tokens * CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN

    pieces = []  # (text, chars of overlap prefix)
    buf = ''
    seed_len = 0

    for sentence in split_sentences(text):
        # After a chunk ends exactly on a sentence, the separator still belongs to the text
        buf = f"{buf} {sentence}" if buf or pieces else sentence

        while estimate_tokens(buf) >= target_tokens:
            piece = buf[:target_chars]
            pieces.append((piece, seed_len))
            seed = piece[-overlap_chars:] if overlap_chars else ''
            buf = seed + buf[len(piece):]
            seed_len = len(seed)

    if buf.strip():
        pieces.append((buf, seed_len))

    chunks = []
    for index, (piece, overlap) in enumerate(pieces):
        chunks.append({
            'sequence_index': index,
            'section_id': f"sec-{index:03d}",
            'section_title': section_title(piece),
            'text': piece,
            'token_count': estimate_tokens(piece),
            'overlap_chars': overlap,
        })

    logger.debug(f"[chunker] Created {len(chunks)} chunks from {len(text)} chars")

    return chunks
