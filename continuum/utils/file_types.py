"""File type detection and markup stripping for uploaded exports."""

import re
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup

# Extensions read as text without looking at the bytes
TEXT_EXTENSIONS = {'.txt', '.md', '.json', '.log', '.html', '.htm', '.csv'}

HTML_EXTENSIONS = {'.html', '.htm'}

ARCHIVE_EXTENSIONS = {'.zip'}

# Common binary file extensions
BINARY_EXTENSIONS = {
    # Images
    '.png', '.jpg', '.jpeg', '.gif', '.bmp', '.ico', '.webp', '.tiff', '.heic',
    # Documents
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.odt', '.ods',
    # Archives
    '.zip', '.tar', '.gz', '.rar', '.7z', '.bz2', '.xz',
    # Executables
    '.exe', '.dll', '.so', '.dylib', '.bin',
    # Media
    '.mp3', '.mp4', '.m4a', '.avi', '.mov', '.wav', '.flac', '.mkv', '.webm', '.ogg',
    # Other
    '.db', '.sqlite', '.sqlite3', '.dat',
}

_NON_TEXT_TAGS = ('script', 'style', 'noscript', 'template')
_WHITESPACE_RE = re.compile(r'\s+')


def is_archive(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in ARCHIVE_EXTENSIONS


def is_html(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in HTML_EXTENSIONS


def is_binary_content(content: bytes, sample_size: int = 8192) -> bool:
    """Detect if content is binary by checking for null bytes and control chars.

    Bytes >= 0x80 count as text so UTF-8 exports in any language pass.
    """
    if not content:
        return False

    sample = content[:sample_size]

    # Null bytes are a strong binary indicator
    if b'\x00' in sample:
        return True

    control = sum(1 for byte in sample if byte < 32 and byte not in (9, 10, 12, 13))
    return (control / len(sample)) > 0.30


def is_text_like(path: Union[str, Path], content: bytes, content_type: Optional[str] = None) -> bool:
    """Decide whether a file should be read as text.

    Args:
        path: File name (for extension check)
        content: Raw file content
        content_type: MIME type reported by the uploader, if any

    Returns:
        True if the file can be fed to a text parser
    """
    suffix = Path(path).suffix.lower()

    if suffix in TEXT_EXTENSIONS or (content_type or '').startswith('text/'):
        return not is_binary_content(content)

    if suffix in BINARY_EXTENSIONS:
        return False

    # Unknown extension: fall back to content analysis
    return bool(content) and not is_binary_content(content)


def decode_text(content: bytes) -> str:
    """Decode uploaded bytes as UTF-8, dropping a BOM and replacing bad sequences."""
    return content.decode('utf-8-sig', errors='replace')


def strip_html(text: str) -> str:
    """Visible text of an HTML document or fragment, whitespace collapsed."""
    soup = BeautifulSoup(text, 'html.parser')
    for tag in soup.find_all(_NON_TEXT_TAGS):
        tag.decompose()
    return _WHITESPACE_RE.sub(' ', soup.get_text(' ')).strip()


def read_text(path: Union[str, Path], content: bytes) -> str:
    """Decode a text-like file, stripping markup from HTML."""
    text = decode_text(content)
    if is_html(path):
        return strip_html(text)
    return text
