"""
Provider detection for uploaded export files.
"""

from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence

from ..models.core import UploadedFile
from ..utils.config import config
from ..utils.file_types import is_archive, is_text_like
from ..utils.logging_config import get_logger
from .common import iter_archive_members

logger = get_logger(__name__)

PROVIDER_CHATGPT = 'chatgpt'
PROVIDER_CLAUDE = 'claude'
PROVIDER_GEMINI = 'gemini'
PROVIDER_PLAINTEXT = 'plaintext'
PROVIDER_UNKNOWN = 'unknown'

PROVIDERS = (PROVIDER_CHATGPT, PROVIDER_CLAUDE, PROVIDER_GEMINI, PROVIDER_PLAINTEXT, PROVIDER_UNKNOWN)

# Structural markers found near the top of each provider's conversation dump
CONTENT_SIGNATURES = (
    (b'"mapping"', PROVIDER_CHATGPT),
    (b'"chat_messages"', PROVIDER_CLAUDE),
    (b'"chunkedPrompt"', PROVIDER_GEMINI),
    (b'"header": "Gemini Apps"', PROVIDER_GEMINI),
    (b'"header":"Gemini Apps"', PROVIDER_GEMINI),
)

# File names only one provider's export contains
ENTRY_NAME_SIGNATURES = {
    'chat.html': PROVIDER_CHATGPT,
    'message_feedback.json': PROVIDER_CHATGPT,
    'model_comparisons.json': PROVIDER_CHATGPT,
    'shared_conversations.json': PROVIDER_CHATGPT,
}

ENTRY_PATH_SIGNATURES = (
    ('gemini apps/', PROVIDER_GEMINI),
    ('google ai studio/', PROVIDER_GEMINI),
)

FILENAME_HINTS = (
    ('chatgpt', PROVIDER_CHATGPT),
    ('openai', PROVIDER_CHATGPT),
    ('claude', PROVIDER_CLAUDE),
    ('anthropic', PROVIDER_CLAUDE),
    ('gemini', PROVIDER_GEMINI),
    ('bard', PROVIDER_GEMINI),
)

# Bound the work spent peeking into large archives
_MAX_PEEKED_ENTRIES = 32
_PEEKED_SUFFIXES = ('.json', '.html', '')


def _suffix(path: str) -> str:
    return PurePosixPath(path).suffix.lower()


def _match_content(sample: bytes) -> Optional[str]:
    for marker, provider in CONTENT_SIGNATURES:
        if marker in sample:
            return provider
    return None


def _match_entry_name(path: str) -> Optional[str]:
    lowered = path.lower()
    provider = ENTRY_NAME_SIGNATURES.get(PurePosixPath(lowered).name)
    if provider:
        return provider
    for fragment, provider in ENTRY_PATH_SIGNATURES:
        if fragment in lowered:
            return provider
    return None


def _match_filename(name: str) -> Optional[str]:
    lowered = name.lower()
    for hint, provider in FILENAME_HINTS:
        if hint in lowered:
            return provider
    return None


def _scan_archive(upload: UploadedFile, peek_bytes: int, signals: Dict[str, List[str]]) -> bool:
    """Record archive signals; returns True when the archive holds any text-like entry."""
    state = {'has_text': False, 'peeked': 0}

    def wants(path: str) -> bool:
        if state['peeked'] >= _MAX_PEEKED_ENTRIES:
            return False
        # Once text is found, only files that can carry a content signature are worth opening
        return _suffix(path) in _PEEKED_SUFFIXES or not state['has_text']

    for path, sample in iter_archive_members(upload, read_limit=peek_bytes, wants=wants):
        name_match = _match_entry_name(path)
        if name_match:
            signals['archive_names'].append(name_match)

        if sample is None:
            continue
        state['peeked'] += 1

        if is_text_like(path, sample):
            state['has_text'] = True
        content_match = _match_content(sample) if _suffix(path) in _PEEKED_SUFFIXES else None
        if content_match:
            signals['archive_content'].append(content_match)

    return state['has_text']


def detect_provider(files: Sequence[UploadedFile], peek_bytes: Optional[int] = None) -> str:
    """Classify an upload batch by originating provider.

    Archive contents are trusted over loose files, and loose file contents over file
    names. Without any provider signal the batch is ``plaintext`` if anything in it is
    readable text, else ``unknown``. Never raises.

    Args:
        files: The uploaded files
        peek_bytes: How much of each candidate file to inspect (config default if None)

    Returns:
        One of PROVIDERS
    """
    if not files:
        return PROVIDER_UNKNOWN

    peek_bytes = peek_bytes or config.ingest.peek_bytes
    signals = {'archive_content': [], 'archive_names': [], 'loose_content': [], 'filenames': []}
    has_text = False

    for upload in files:
        if is_archive(upload.name):
            has_text = _scan_archive(upload, peek_bytes, signals) or has_text
        else:
            sample = upload.content[:peek_bytes]
            if is_text_like(upload.name, sample, upload.content_type):
                has_text = True
                content_match = _match_content(sample)
                if content_match:
                    signals['loose_content'].append(content_match)
            name_match = _match_entry_name(upload.name)
            if name_match:
                signals['loose_content'].append(name_match)

        filename_match = _match_filename(upload.name)
        if filename_match:
            signals['filenames'].append(filename_match)

    for tier in ('archive_content', 'archive_names', 'loose_content', 'filenames'):
        if signals[tier]:
            provider = signals[tier][0]
            if len(set(signals[tier])) > 1:
                logger.warning(f'Conflicting {tier} signals {sorted(set(signals[tier]))}, using {provider}')
            logger.info(f'Detected provider {provider} from {tier}')
            return provider

    provider = PROVIDER_PLAINTEXT if has_text else PROVIDER_UNKNOWN
    logger.info(f'No provider signature found, treating upload as {provider}')
    return provider
