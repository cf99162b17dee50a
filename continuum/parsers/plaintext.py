"""
Fallback parser: concatenate every text-like file in the upload.
"""

from typing import Sequence

from ..models.core import UploadedFile
from .common import PLAINTEXT_NO_CONTENT, ExportEntry, dump_text_entries, iter_export_entries


def parse_plaintext_entries(entries: Sequence[ExportEntry]) -> str:
    parts = dump_text_entries(entries)
    if not parts:
        return PLAINTEXT_NO_CONTENT
    return '\n'.join(parts)


def parse_plaintext_files(files: Sequence[UploadedFile]) -> str:
    """Read all text-like files (archive members included) into one history string."""
    return parse_plaintext_entries(list(iter_export_entries(files)))
