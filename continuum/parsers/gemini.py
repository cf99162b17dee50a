"""
Parser for Gemini exports: Google Takeout activity and AI Studio prompt files.

Takeout writes ``My Activity/Gemini Apps/MyActivity.json``, a newest-first list of
activity records whose ``title`` holds the prompt and whose ``safeHtmlItem`` holds
the response as HTML. AI Studio saves each chat as a JSON document with the turns
under ``chunkedPrompt.chunks`` (older files keep them under ``chunks``).
"""

from collections import OrderedDict
from pathlib import PurePosixPath
from typing import Any, List, Optional, Sequence

from ..models.core import UploadedFile
from ..utils.file_types import strip_html
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import parse_timestamp, to_datetime
from .common import (GEMINI_NO_CONTENT, MALFORMED_EXPORT_ERRORS, ExportEntry, conversation_header, dump_text_entries,
                     format_message, iter_export_entries, load_json_entry, sort_chronologically, unwrap_container)

logger = get_logger(__name__)

ACTIVITY_HEADERS = {'Gemini Apps', 'Gemini', 'Bard'}

_PROMPT_PREFIX = 'Prompted '


def _is_activity_record(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    products = item.get('products')
    if not isinstance(products, list):
        products = []
    labels = [item.get('header')] + products
    return any(isinstance(label, str) and label in ACTIVITY_HEADERS for label in labels)


def _is_studio_prompt(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    chunked = data.get('chunkedPrompt')
    return (isinstance(chunked, dict) and isinstance(chunked.get('chunks'), list)) or isinstance(data.get('chunks'), list)


def _activity_lines(records: List[dict]) -> List[str]:
    """Takeout activity grouped into one conversation per day, oldest first."""
    days = OrderedDict()
    for record in sort_chronologically(records, lambda r: r.get('time')):
        seconds = parse_timestamp(record.get('time'))
        day = to_datetime(seconds).strftime('%Y-%m-%d') if seconds is not None else 'undated'

        turn = []
        prompt = str(record.get('title') or '').strip()
        if prompt.startswith(_PROMPT_PREFIX):
            prompt = prompt[len(_PROMPT_PREFIX):].strip()
        if prompt:
            turn.append(format_message('user', prompt))

        html_items = record.get('safeHtmlItem')
        for item in html_items if isinstance(html_items, list) else []:
            if isinstance(item, dict) and isinstance(item.get('html'), str):
                response = strip_html(item['html'])
                if response:
                    turn.append(format_message('assistant', response))

        if turn:
            days.setdefault(day, []).extend(turn)

    lines = []
    for day, turns in days.items():
        lines.append(conversation_header(f'Gemini Apps activity {day}'))
        lines.extend(turns)
    return lines


def _chunk_text(chunk: dict) -> str:
    if chunk.get('isThought'):
        return ''

    parts = chunk.get('parts')
    if isinstance(parts, list):
        texts = [p['text'] for p in parts if isinstance(p, dict) and isinstance(p.get('text'), str) and not p.get('thought')]
        text = '\n'.join(t for t in texts if t.strip())
        if text:
            return text

    text = chunk.get('text')
    return text if isinstance(text, str) else ''


def _studio_lines(prompt: dict, fallback_title: str) -> List[str]:
    chunked = prompt.get('chunkedPrompt')
    chunks = chunked.get('chunks') if isinstance(chunked, dict) else prompt.get('chunks')

    body = []
    for chunk in chunks or []:
        if not isinstance(chunk, dict):
            continue
        role = chunk.get('role')
        if role not in ('user', 'model'):
            role = 'user' if chunk.get('isUser') else 'model'

        text = _chunk_text(chunk)
        if not text.strip():
            continue
        body.append(format_message('user' if role == 'user' else 'assistant', text))

    if not body:
        return []
    return [conversation_header(prompt.get('title'), prompt.get('id') or fallback_title)] + body


def _parse_json_entry(entry: ExportEntry) -> Optional[List[str]]:
    data = load_json_entry(entry)
    if data is None:
        return None

    if isinstance(data, list) and any(_is_activity_record(item) for item in data):
        records = [item for item in data if _is_activity_record(item)]
        logger.debug(f'Parsed {len(records)} Gemini activity records from {entry.path}')
        return _activity_lines(records)

    prompts = unwrap_container(data, ('prompts', 'conversations'), _is_studio_prompt)
    if not prompts:
        return None

    lines = []
    title = PurePosixPath(entry.path).stem
    for prompt in sort_chronologically([p for p in prompts if _is_studio_prompt(p)], lambda p: p.get('create_time')):
        lines.extend(_studio_lines(prompt, title))
    return lines


def parse_gemini_entries(entries: Sequence[ExportEntry]) -> str:
    lines = []
    for entry in entries:
        # AI Studio saves prompts without an extension
        if entry.suffix not in ('.json', '') or not entry.is_text_like():
            continue
        if not entry.suffix and entry.content.lstrip()[:1] not in (b'{', b'['):
            continue
        try:
            parsed = _parse_json_entry(entry)
        except MALFORMED_EXPORT_ERRORS as e:
            logger.warning(f'Skipping Gemini export file {entry.path} with unexpected structure: {e}')
            continue
        if parsed:
            lines.extend(parsed)

    if lines:
        return '\n'.join(lines)

    # Fallback: any text-like file, HTML activity pages included
    logger.info('No structured Gemini activity found, falling back to raw text')
    parts = dump_text_entries(entries, label='GEMINI')
    if not parts:
        return GEMINI_NO_CONTENT

    return '\n'.join(parts)


def parse_gemini_files(files: Sequence[UploadedFile]) -> str:
    """Convert a Gemini export (Takeout zip, activity JSON or AI Studio prompts) into one transcript."""
    return parse_gemini_entries(list(iter_export_entries(files)))
