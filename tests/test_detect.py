import io
import json
import struct
import unittest
import zipfile

from continuum.models.core import UploadedFile
from continuum.parsers import detect


def make_zip(name, members, compression=zipfile.ZIP_STORED):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=compression) as zf:
        for path, content in members.items():
            zf.writestr(path, content)
    return UploadedFile(name=name, content=buffer.getvalue())


def corrupt_member(upload, member):
    """Copy of a deflated zip upload whose ``member`` fails to decompress."""
    with zipfile.ZipFile(io.BytesIO(upload.content)) as zf:
        offset = zf.getinfo(member).header_offset
    data = bytearray(upload.content)
    # Local header is 30 fixed bytes, then the file name and extra field
    name_len, extra_len = struct.unpack('<HH', bytes(data[offset + 26:offset + 30]))
    # Reserved deflate block type (BTYPE=11)
    data[offset + 30 + name_len + extra_len] |= 0b110
    return UploadedFile(name=upload.name, content=bytes(data))


CHATGPT_CONVERSATIONS = json.dumps([{'title': 't', 'mapping': {}}])
CLAUDE_CONVERSATIONS = json.dumps([{'uuid': 'u', 'chat_messages': []}])


class TestDetectProvider(unittest.TestCase):
    def test_chatgpt_archive_by_content(self):
        upload = make_zip('export.zip', {'conversations.json': CHATGPT_CONVERSATIONS})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CHATGPT)

    def test_claude_archive_by_content(self):
        upload = make_zip('data-2024.zip', {'conversations.json': CLAUDE_CONVERSATIONS, 'users.json': '[]'})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CLAUDE)

    def test_archive_content_beats_filename(self):
        upload = make_zip('claude-backup.zip', {'conversations.json': CHATGPT_CONVERSATIONS})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CHATGPT)

    def test_chatgpt_archive_by_entry_names(self):
        upload = make_zip('export.zip', {'chat.html': '<html></html>', 'conversations.json': '[]'})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CHATGPT)

    def test_gemini_takeout_archive(self):
        records = json.dumps([{'header': 'Gemini Apps', 'title': 'Prompted hi'}])
        upload = make_zip('takeout-2024.zip', {'Takeout/My Activity/Gemini Apps/MyActivity.json': records})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_GEMINI)

    def test_gemini_ai_studio_loose_file(self):
        upload = UploadedFile(name='Untitled prompt', content=b'{"chunkedPrompt": {"chunks": []}}')

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_GEMINI)

    def test_loose_claude_json(self):
        upload = UploadedFile(name='conversations.json', content=CLAUDE_CONVERSATIONS.encode('utf-8'))

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CLAUDE)

    def test_filename_hint_is_last_resort(self):
        upload = UploadedFile(name='my-chatgpt-notes.txt', content=b'just some notes')

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CHATGPT)

    def test_loose_content_beats_filename_hint(self):
        upload = UploadedFile(name='gemini.json', content=CLAUDE_CONVERSATIONS.encode('utf-8'))

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_CLAUDE)

    def test_archive_without_signature_is_plaintext(self):
        upload = make_zip('bundle.zip', {'notes/today.txt': 'went running'})

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_PLAINTEXT)

    def test_plain_text_file(self):
        upload = UploadedFile(name='journal.md', content=b'# Monday\nworked on the garden')

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_PLAINTEXT)

    def test_binary_only_upload_is_unknown(self):
        upload = UploadedFile(name='blob.dat', content=b'\x00\x01\x02\x03')

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_UNKNOWN)

    def test_corrupt_archive_is_unknown(self):
        upload = UploadedFile(name='export.zip', content=b'definitely not a zip')

        self.assertEqual(detect.detect_provider([upload]), detect.PROVIDER_UNKNOWN)

    def test_unreadable_member_does_not_stop_detection(self):
        upload = make_zip('bundle.zip', {'conversations.json': CHATGPT_CONVERSATIONS, 'notes.txt': 'went running'},
                          compression=zipfile.ZIP_DEFLATED)

        self.assertEqual(detect.detect_provider([corrupt_member(upload, 'conversations.json')]),
                         detect.PROVIDER_PLAINTEXT)

    def test_signature_found_past_unreadable_member(self):
        upload = make_zip('export.zip', {'broken.json': CLAUDE_CONVERSATIONS, 'conversations.json': CHATGPT_CONVERSATIONS},
                          compression=zipfile.ZIP_DEFLATED)

        self.assertEqual(detect.detect_provider([corrupt_member(upload, 'broken.json')]), detect.PROVIDER_CHATGPT)

    def test_empty_upload_is_unknown(self):
        self.assertEqual(detect.detect_provider([]), detect.PROVIDER_UNKNOWN)

    def test_signature_beyond_peek_window_is_missed(self):
        padding = b' ' * 200
        upload = UploadedFile(name='dump.json', content=b'[' + padding + b'{"mapping": {}}]')

        self.assertEqual(detect.detect_provider([upload], peek_bytes=100), detect.PROVIDER_PLAINTEXT)
        self.assertEqual(detect.detect_provider([upload], peek_bytes=1000), detect.PROVIDER_CHATGPT)


if __name__ == '__main__':
    unittest.main()
