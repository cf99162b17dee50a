"""
Character-budget chunking of transcripts for extraction calls.

Chunks stop at ``max_chunks``: anything past the last chunk is dropped on purpose to
bound cost and latency, so very long histories are only partially covered. Use
``plan_chunks`` to find out whether that happened.
"""

from typing import List, Optional, Tuple

from ..models.core import Chunk, ChunkPlan
from ..utils.config import config
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

PARAGRAPH_BREAK = '\n\n'

# A paragraph break is only used when it keeps at least this share of the window
MIN_WINDOW_FILL = 0.3


def _normalize(text: str) -> str:
    return text.replace('\r\n', '\n').strip()


def _limits(max_chars_per_chunk: Optional[int], max_chunks: Optional[int]) -> Tuple[int, int]:
    return (config.ingest.max_chars_per_chunk if max_chars_per_chunk is None else max_chars_per_chunk,
            config.ingest.max_chunks if max_chunks is None else max_chunks)


def _split(text: str, max_chars_per_chunk: int, max_chunks: int) -> Tuple[List[str], int]:
    """Return (chunks, consumed) where ``consumed`` is the offset the walk stopped at."""
    if max_chars_per_chunk <= 0:
        raise ValueError('max_chars_per_chunk must be positive')
    if max_chunks <= 0:
        raise ValueError('max_chunks must be positive')

    if not text:
        return [], 0

    if len(text) <= max_chars_per_chunk:
        return [text], len(text)

    chunks = []
    start = 0

    while start < len(text) and len(chunks) < max_chunks:
        end = start + max_chars_per_chunk
        if end > len(text):
            end = len(text)
        else:
            # Back off to the last paragraph break starting inside the window
            last_break = text.rfind(PARAGRAPH_BREAK, 0, end + len(PARAGRAPH_BREAK))
            if last_break > start + max_chars_per_chunk * MIN_WINDOW_FILL:
                end = last_break

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        start = end

    # Whitespace left after the last chunk is not lost content
    consumed = start if text[start:].strip() else len(text)
    return chunks, consumed


def chunk_text(text: str, max_chars_per_chunk: Optional[int] = None, max_chunks: Optional[int] = None) -> List[str]:
    """Split a transcript into at most ``max_chunks`` paragraph-aware chunks.

    Args:
        text: Transcript to split
        max_chars_per_chunk: Character budget per chunk (config default if None)
        max_chunks: Maximum number of chunks; the tail beyond it is dropped (config default if None)

    Returns:
        Ordered chunk strings; empty for blank input

    Raises:
        ValueError: If either limit is not positive
    """
    chunks, _ = _split(_normalize(text or ''), *_limits(max_chars_per_chunk, max_chunks))
    return chunks


def plan_chunks(text: str, max_chars_per_chunk: Optional[int] = None, max_chunks: Optional[int] = None) -> ChunkPlan:
    """Chunk a transcript and report how much of it the chunks cover."""
    normalized = _normalize(text or '')
    pieces, consumed = _split(normalized, *_limits(max_chars_per_chunk, max_chunks))

    plan = ChunkPlan(chunks=[Chunk(text=piece, index=i, total=len(pieces)) for i, piece in enumerate(pieces)],
                     total_chars=len(normalized),
                     consumed_chars=consumed)

    if plan.truncated:
        logger.warning(f'Chunk limit reached: using {consumed} of {len(normalized)} characters '
                       f'in {len(pieces)} chunks, the rest is not extracted')
    return plan
