"""
Parser for ChatGPT data exports (``conversations.json`` inside the export zip).
"""

from typing import Any, Dict, List, Sequence

from ..models.core import UploadedFile
from ..utils.logging_config import get_logger
from .common import (CHATGPT_NO_EXPORT_FILES, CHATGPT_NO_MESSAGES, MALFORMED_EXPORT_ERRORS, SKIPPED_ROLES, ExportEntry,
                     conversation_header, dump_text_entries, find_entries, flatten_parts, format_message, iter_export_entries,
                     load_json_entry, sort_chronologically, unwrap_container)

logger = get_logger(__name__)

# Known locations of the conversation dump, most common first
CONVERSATION_FILES = (
    'conversations.json',
    'messages.json',
    'data/conversations.json',
    'data/messages.json',
)

_WRAPPER_KEYS = ('conversations', 'data', 'items')


def _is_conversation(data: dict) -> bool:
    return isinstance(data.get('mapping'), dict) or isinstance(data.get('messages'), list)


def _message_text(content: Any) -> str:
    """Text of a message body in any of the known content shapes."""
    if content is None:
        return ''
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return flatten_parts(content)
    if isinstance(content, dict):
        if isinstance(content.get('parts'), list):
            return flatten_parts(content['parts'])
        if isinstance(content.get('text'), str):
            return content['text']
    return ''


def _mapping_lines(mapping: Dict[str, Any]) -> List[str]:
    """Messages from the newer ``mapping`` tree, ordered by creation time."""
    messages = [node.get('message') for node in mapping.values() if isinstance(node, dict)]
    messages = sort_chronologically([m for m in messages if isinstance(m, dict)], lambda m: m.get('create_time'))

    lines = []
    for msg in messages:
        author = msg.get('author') or {}
        role = str(author.get('role') or 'unknown') if isinstance(author, dict) else str(author)
        if role in SKIPPED_ROLES:
            continue

        metadata = msg.get('metadata') or {}
        if isinstance(metadata, dict) and metadata.get('is_visually_hidden_from_conversation'):
            continue

        text = _message_text(msg.get('content'))
        if not text.strip():
            continue

        lines.append(format_message(role, text))
    return lines


def _messages_lines(messages: List[Any]) -> List[str]:
    """Messages from older exports that carry a flat ``messages`` list."""
    ordered = sort_chronologically([m for m in messages if isinstance(m, dict)],
                                   lambda m: m.get('create_time') or m.get('timestamp'))

    lines = []
    for msg in ordered:
        role = msg.get('role') or msg.get('author') or 'unknown'
        if isinstance(role, dict):
            role = role.get('role') or 'unknown'
        role = str(role)
        if role in SKIPPED_ROLES:
            continue

        text = _message_text(msg.get('content'))
        if not text.strip():
            continue

        lines.append(format_message(role, text))
    return lines


def _conversation_lines(conversations: List[Any]) -> List[str]:
    lines = []
    ordered = sort_chronologically([c for c in conversations if isinstance(c, dict)], lambda c: c.get('create_time'))

    for conv in ordered:
        if isinstance(conv.get('mapping'), dict):
            body = _mapping_lines(conv['mapping'])
        elif isinstance(conv.get('messages'), list):
            body = _messages_lines(conv['messages'])
        else:
            continue

        if not body:
            continue

        lines.append(conversation_header(conv.get('title'), conv.get('id') or conv.get('conversation_id')))
        lines.extend(body)
    return lines


def _parse_export_file(entry: ExportEntry) -> List[str]:
    data = load_json_entry(entry)
    if data is None:
        return []

    conversations = unwrap_container(data, _WRAPPER_KEYS, _is_conversation)
    if conversations is None:
        # Different format; keep the raw text for the extractor
        logger.warning(f'Unrecognized ChatGPT export layout in {entry.path}, using raw text')
        return dump_text_entries([entry], label='JSON')

    lines = _conversation_lines(conversations)
    logger.debug(f'Parsed {len(conversations)} ChatGPT conversations from {entry.path}')
    return lines


def parse_chatgpt_entries(entries: Sequence[ExportEntry]) -> str:
    export_files = find_entries(entries, CONVERSATION_FILES)

    if not export_files:
        # Fallback: dump every JSON file
        json_files = [entry for entry in entries if entry.suffix == '.json']
        if not json_files:
            return CHATGPT_NO_EXPORT_FILES
        dumped = dump_text_entries(json_files, label='JSON')
        return '\n'.join(dumped) if dumped else CHATGPT_NO_EXPORT_FILES

    lines = []
    for entry in export_files:
        try:
            lines.extend(_parse_export_file(entry))
        except MALFORMED_EXPORT_ERRORS as e:
            logger.warning(f'Skipping ChatGPT export file {entry.path} with unexpected structure: {e}')

    if not lines:
        return CHATGPT_NO_MESSAGES

    return '\n'.join(lines)


def parse_chatgpt_files(files: Sequence[UploadedFile]) -> str:
    """Convert a ChatGPT export (zip or loose JSON files) into one transcript."""
    return parse_chatgpt_entries(list(iter_export_entries(files)))
