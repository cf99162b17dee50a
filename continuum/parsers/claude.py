"""
Parser for Claude data exports (``conversations.json`` with ``chat_messages``).
"""

from typing import Any, List, Optional, Sequence

from ..models.core import UploadedFile
from ..utils.logging_config import get_logger
from .common import (CLAUDE_NO_CONTENT, MALFORMED_EXPORT_ERRORS, SKIPPED_ROLES, ExportEntry, conversation_header,
                     dump_text_entries, find_entries, format_message, iter_export_entries, load_json_entry, sort_chronologically,
                     unwrap_container)

logger = get_logger(__name__)

_WRAPPER_KEYS = ('conversations', 'data')

# Content blocks that carry no user-facing conversation text
_SKIPPED_BLOCK_TYPES = {'tool_use', 'tool_result', 'thinking', 'redacted_thinking', 'image', 'document'}


def _is_conversation(data: dict) -> bool:
    return isinstance(data.get('chat_messages'), list) or isinstance(data.get('messages'), list)


def _role_of(msg: dict) -> str:
    sender = str(msg.get('sender') or msg.get('role') or 'unknown')
    return 'user' if sender == 'human' else sender


def _block_text(blocks: List[Any]) -> str:
    texts = []
    for block in blocks:
        if isinstance(block, str):
            texts.append(block)
            continue
        if not isinstance(block, dict):
            continue
        if block.get('type') in _SKIPPED_BLOCK_TYPES:
            continue
        if isinstance(block.get('text'), str):
            texts.append(block['text'])
    return '\n'.join(text for text in texts if text.strip())


def _message_text(msg: dict) -> str:
    content = msg.get('content')

    # Structured blocks are the source; top-level text is derived and only a fallback
    if isinstance(content, list):
        text = _block_text(content)
        if text.strip():
            return text
    elif isinstance(content, str) and content.strip():
        return content

    text = msg.get('text')
    return text if isinstance(text, str) else ''


def _conversation_lines(conv: dict) -> List[str]:
    messages = conv.get('chat_messages')
    if not isinstance(messages, list):
        messages = conv.get('messages') or []

    ordered = sort_chronologically([m for m in messages if isinstance(m, dict)], lambda m: m.get('created_at'))

    lines = []
    for msg in ordered:
        role = _role_of(msg)
        if role in SKIPPED_ROLES:
            continue

        text = _message_text(msg)
        if not text.strip():
            continue

        lines.append(format_message(role, text))
    return lines


def _parse_export_file(entry: ExportEntry) -> Optional[List[str]]:
    """Transcript lines for one JSON file, or None when it is not a conversation dump."""
    data = load_json_entry(entry)
    if data is None:
        return None

    conversations = unwrap_container(data, _WRAPPER_KEYS, _is_conversation)
    if conversations is None:
        return None

    conversations = [c for c in conversations if isinstance(c, dict) and _is_conversation(c)]
    if not conversations:
        return None

    lines = []
    for conv in sort_chronologically(conversations, lambda c: c.get('created_at')):
        body = _conversation_lines(conv)
        if not body:
            continue
        lines.append(conversation_header(conv.get('name') or conv.get('title'), conv.get('uuid') or conv.get('id')))
        lines.extend(body)

    logger.debug(f'Parsed {len(conversations)} Claude conversations from {entry.path}')
    return lines


def parse_claude_entries(entries: Sequence[ExportEntry]) -> str:
    export_files = find_entries(entries, ('conversations.json',))
    if not export_files:
        export_files = [entry for entry in entries if entry.suffix == '.json']

    lines = []
    for entry in export_files:
        try:
            parsed = _parse_export_file(entry)
        except MALFORMED_EXPORT_ERRORS as e:
            logger.warning(f'Skipping Claude export file {entry.path} with unexpected structure: {e}')
            continue
        if parsed:
            lines.extend(parsed)

    if lines:
        return '\n'.join(lines)

    # Fallback: concatenate any text-like files
    logger.info('No structured Claude conversations found, falling back to raw text')
    parts = dump_text_entries(entries, label='CLAUDE')
    if not parts:
        return CLAUDE_NO_CONTENT

    return '\n'.join(parts)


def parse_claude_files(files: Sequence[UploadedFile]) -> str:
    """Convert a Claude export (zip or loose JSON files) into one transcript."""
    return parse_claude_entries(list(iter_export_entries(files)))
