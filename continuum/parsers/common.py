"""
Shared helpers for provider parsers: archive expansion, JSON loading and transcript formatting.
"""

import io
import json
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar

from ..models.core import UploadedFile
from ..utils.file_types import decode_text, is_archive, is_text_like, read_text
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import parse_timestamp

logger = get_logger(__name__)

T = TypeVar('T')

# Sentinels returned when a parser finds nothing usable
CHATGPT_NO_EXPORT_FILES = 'No conversations.json or messages.json found in ChatGPT export.'
CHATGPT_NO_MESSAGES = 'ChatGPT export parsed, but no usable messages were found.'
CLAUDE_NO_CONTENT = 'No readable Claude export content found.'
GEMINI_NO_CONTENT = 'No readable Gemini export content found.'
PLAINTEXT_NO_CONTENT = 'No readable text content found in uploaded files.'

NO_CONTENT_SENTINELS = frozenset({
    CHATGPT_NO_EXPORT_FILES,
    CHATGPT_NO_MESSAGES,
    CLAUDE_NO_CONTENT,
    GEMINI_NO_CONTENT,
    PLAINTEXT_NO_CONTENT,
})

# Non-content turns
SKIPPED_ROLES = {'system', 'tool', 'function', 'developer'}

# Archive noise added by OS zip tools
_IGNORED_PREFIXES = ('__MACOSX/',)

# What zipfile raises for a damaged archive or member (zlib/EOFError from corrupt deflate streams)
ZIP_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError)

# What walking valid JSON of an unexpected shape can raise
MALFORMED_EXPORT_ERRORS = (TypeError, AttributeError, ValueError)


@dataclass(frozen=True)
class ExportEntry:
    """A single file from an upload, either loose or read out of an archive."""
    path: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).name.lower()

    @property
    def suffix(self) -> str:
        return PurePosixPath(self.path).suffix.lower()

    def is_text_like(self) -> bool:
        return is_text_like(self.path, self.content, self.content_type)

    def text(self) -> str:
        return read_text(self.path, self.content)


def is_no_content(text: str) -> bool:
    """True when a parser reported that it found nothing usable."""
    return not text or not text.strip() or text.strip() in NO_CONTENT_SENTINELS


def iter_archive_members(upload: UploadedFile,
                         read_limit: Optional[int] = None,
                         wants: Optional[Callable[[str], bool]] = None) -> Iterator[Tuple[str, Optional[bytes]]]:
    """Walk the files of a zip upload.

    Yields ``(path, content)`` per member, skipping directories and OS metadata.
    ``content`` is at most ``read_limit`` bytes (all of it if None), or None when
    ``wants(path)`` declines the member. A damaged member is logged and skipped;
    a damaged archive is logged and ends the walk.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(upload.content), 'r') as zf:
            for info in zf.infolist():
                if info.is_dir() or info.filename.startswith(_IGNORED_PREFIXES):
                    continue
                if wants is not None and not wants(info.filename):
                    yield info.filename, None
                    continue
                try:
                    with zf.open(info) as handle:
                        content = handle.read() if read_limit is None else handle.read(read_limit)
                except ZIP_READ_ERRORS as e:
                    logger.warning(f'Skipping unreadable entry {info.filename} in {upload.name}: {e}')
                    continue
                yield info.filename, content
    except ZIP_READ_ERRORS as e:
        logger.warning(f'Skipping unreadable archive {upload.name}: {e}')


def iter_export_entries(files: Iterable[UploadedFile]) -> Iterator[ExportEntry]:
    """Yield every file in the upload, expanding zip archives entry by entry."""
    for upload in files:
        if not is_archive(upload.name):
            yield ExportEntry(path=upload.name, content=upload.content, content_type=upload.content_type)
            continue

        for path, content in iter_archive_members(upload):
            yield ExportEntry(path=path, content=content)


def find_entries(entries: Sequence[ExportEntry], candidates: Sequence[str]) -> List[ExportEntry]:
    """Entries whose path ends with one of the candidate relative paths, in candidate order."""
    found = []
    seen = set()
    for candidate in candidates:
        candidate = candidate.lower()
        for position, entry in enumerate(entries):
            path = entry.path.lower()
            if (path == candidate or path.endswith('/' + candidate)) and position not in seen:
                seen.add(position)
                found.append(entry)
    return found


def load_json_entry(entry: ExportEntry) -> Optional[Any]:
    """Decode a JSON entry; malformed files are logged and yield None."""
    try:
        return json.loads(decode_text(entry.content))
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f'Skipping malformed JSON file {entry.path}: {e}')
        return None


def unwrap_container(data: Any, wrapper_keys: Sequence[str], is_item: Callable[[dict], bool]) -> Optional[List[Any]]:
    """Find the list of conversations inside a decoded export file.

    Known shapes, tried in order: a top-level array, an array wrapped under one of
    ``wrapper_keys``, or a single conversation object. Returns None for anything else.
    """
    if isinstance(data, list):
        return data

    if isinstance(data, dict):
        for key in wrapper_keys:
            if isinstance(data.get(key), list):
                return data[key]
        if is_item(data):
            return [data]

    return None


def sort_chronologically(items: Sequence[T], timestamp_of: Callable[[T], Any]) -> List[T]:
    """Stable sort by timestamp; items without one keep their original relative order at the front."""
    return sorted(items, key=lambda item: parse_timestamp(timestamp_of(item)) or 0.0)


def flatten_parts(parts: Any) -> str:
    """Join a multi-part message body into one string, one part per line."""
    if isinstance(parts, str):
        return parts
    if not isinstance(parts, list):
        return ''

    texts = []
    for part in parts:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict):
            value = part.get('text')
            if value is None:
                value = part.get('content')
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                texts.append(str(value))
    return '\n'.join(text for text in texts if text.strip())


def conversation_header(title: Any, fallback_id: Any = None) -> str:
    label = str(title).strip() if title else ''
    if not label and fallback_id:
        label = str(fallback_id).strip()
    return f'\n\n===== Conversation: {label or "Untitled conversation"} =====\n'


def format_message(role: str, text: str) -> str:
    return f'{role.upper()}: {text}'


def dump_text_entries(entries: Iterable[ExportEntry], label: str = '') -> List[str]:
    """Generic fallback: every text-like entry under a readable file header."""
    parts = []
    for entry in entries:
        if not entry.is_text_like():
            continue
        content = entry.text()
        if not content.strip():
            continue
        prefix = f'{label} ' if label else ''
        parts.append(f'\n\n=== {prefix}FILE: {entry.path} ===\n{content}')
    return parts
