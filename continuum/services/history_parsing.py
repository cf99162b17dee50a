"""
History Parsing Service: detect the provider of an upload and route it to its parser.
"""

from typing import Callable, Dict, Sequence

from ..models.core import UnifiedHistory, UploadedFile
from ..parsers.chatgpt import parse_chatgpt_entries
from ..parsers.claude import parse_claude_entries
from ..parsers.common import ExportEntry, is_no_content, iter_export_entries
from ..parsers.detect import (PROVIDER_CHATGPT, PROVIDER_CLAUDE, PROVIDER_GEMINI, PROVIDER_PLAINTEXT, PROVIDER_UNKNOWN,
                              detect_provider)
from ..parsers.gemini import parse_gemini_entries
from ..parsers.plaintext import parse_plaintext_entries
from ..utils.file_types import is_archive
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

PARSERS: Dict[str, Callable[[Sequence[ExportEntry]], str]] = {
    PROVIDER_CHATGPT: parse_chatgpt_entries,
    PROVIDER_CLAUDE: parse_claude_entries,
    PROVIDER_GEMINI: parse_gemini_entries,
    PROVIDER_PLAINTEXT: parse_plaintext_entries,
    PROVIDER_UNKNOWN: parse_plaintext_entries,
}


class NoContentError(Exception):
    """Raised when an upload holds no files or no extractable text at all."""
    pass


def _source_label(provider: str, files: Sequence[UploadedFile]) -> str:
    if provider == PROVIDER_CHATGPT:
        archives = [f.name for f in files if is_archive(f.name)]
        if archives:
            return archives[0]
    return ', '.join(f.name for f in files)


def parse_files_to_unified_history(files: Sequence[UploadedFile]) -> UnifiedHistory:
    """Detect the provider and convert the upload into one transcript.

    A transcript made only of a parser's "nothing found" message is returned with
    ``has_content`` False so callers can tell an empty upload from a parser bug.

    Args:
        files: The uploaded files

    Returns:
        UnifiedHistory for the batch

    Raises:
        NoContentError: If no files were uploaded
    """
    if not files:
        raise NoContentError('No files uploaded.')

    provider = detect_provider(files)
    entries = list(iter_export_entries(files))
    raw_text = PARSERS[provider](entries)
    has_content = not is_no_content(raw_text)

    if has_content:
        logger.info(f'Parsed {len(files)} file(s) as {provider}: {len(raw_text)} characters')
    else:
        logger.warning(f'No usable content in {len(files)} file(s) detected as {provider}: {raw_text}')

    return UnifiedHistory(provider=provider,
                          source_label=_source_label(provider, files),
                          raw_text=raw_text,
                          has_content=has_content)
