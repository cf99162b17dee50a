import io
import json
import struct
import unittest
import zipfile

from continuum.models.core import UploadedFile
from continuum.parsers import common
from continuum.parsers.chatgpt import parse_chatgpt_files
from continuum.parsers.claude import parse_claude_files
from continuum.parsers.gemini import parse_gemini_files
from continuum.parsers.plaintext import parse_plaintext_files


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


def json_file(name, data):
    return UploadedFile(name=name, content=json.dumps(data).encode('utf-8'))


class TestExportEntries(unittest.TestCase):
    def test_expands_archives_and_skips_os_metadata(self):
        files = [
            make_zip('export.zip', {'conversations.json': '[]', '__MACOSX/._conversations.json': 'junk'}),
            UploadedFile(name='notes.txt', content=b'hello'),
        ]

        paths = [entry.path for entry in common.iter_export_entries(files)]

        self.assertEqual(paths, ['conversations.json', 'notes.txt'])

    def test_corrupt_archive_is_skipped(self):
        files = [UploadedFile(name='broken.zip', content=b'not a zip'), UploadedFile(name='a.txt', content=b'x')]

        paths = [entry.path for entry in common.iter_export_entries(files)]

        self.assertEqual(paths, ['a.txt'])

    def test_unreadable_member_is_skipped(self):
        upload = make_zip('export.zip', {'conversations.json': json.dumps([{'title': 't', 'mapping': {}}]),
                                         'notes.txt': 'I like tea'}, compression=zipfile.ZIP_DEFLATED)
        broken = corrupt_member(upload, 'conversations.json')

        paths = [entry.path for entry in common.iter_export_entries([broken])]

        self.assertEqual(paths, ['notes.txt'])
        self.assertIn('=== FILE: notes.txt ===\nI like tea', parse_plaintext_files([broken]))

    def test_find_entries_matches_path_suffix(self):
        entries = [common.ExportEntry(path='export/data/conversations.json', content=b'[]'),
                   common.ExportEntry(path='my_conversations.json', content=b'[]')]

        found = common.find_entries(entries, ['conversations.json', 'data/conversations.json'])

        self.assertEqual([e.path for e in found], ['export/data/conversations.json'])

    def test_sentinels_count_as_no_content(self):
        self.assertTrue(common.is_no_content(common.CHATGPT_NO_MESSAGES))
        self.assertTrue(common.is_no_content('   '))
        self.assertFalse(common.is_no_content('USER: hi'))


class TestChatGPTParser(unittest.TestCase):
    def test_mapping_tree_in_creation_order(self):
        conversation = {
            'title': 'Trip planning',
            'create_time': 1700000000,
            'mapping': {
                'root': {'message': None},
                'sys': {'message': {'author': {'role': 'system'}, 'content': {'parts': ['You are helpful']}, 'create_time': 1}},
                'b': {'message': {'author': {'role': 'assistant'}, 'content': {'parts': ['Try Lisbon']}, 'create_time': 3}},
                'a': {'message': {'author': {'role': 'user'}, 'content': {'parts': ['Plan a trip']}, 'create_time': 2}},
                'h': {'message': {'author': {'role': 'user'}, 'content': {'parts': ['hidden context']}, 'create_time': 4,
                                  'metadata': {'is_visually_hidden_from_conversation': True}}},
            },
        }
        upload = make_zip('chatgpt-export.zip', {'conversations.json': json.dumps([conversation])})

        text = parse_chatgpt_files([upload])

        self.assertIn('===== Conversation: Trip planning =====', text)
        self.assertIn('USER: Plan a trip', text)
        self.assertIn('ASSISTANT: Try Lisbon', text)
        self.assertLess(text.index('USER: Plan a trip'), text.index('ASSISTANT: Try Lisbon'))
        self.assertNotIn('You are helpful', text)
        self.assertNotIn('hidden context', text)

    def test_conversations_sorted_by_create_time(self):
        later = {'title': 'Later', 'create_time': 200, 'messages': [{'role': 'user', 'content': 'second'}]}
        earlier = {'title': 'Earlier', 'create_time': 100, 'messages': [{'role': 'user', 'content': 'first'}]}

        text = parse_chatgpt_files([json_file('conversations.json', [later, earlier])])

        self.assertLess(text.index('Earlier'), text.index('Later'))

    def test_flat_messages_variant_under_wrapper(self):
        data = {'conversations': [{
            'title': 'Old export',
            'messages': [
                {'role': 'user', 'content': 'hi', 'create_time': 2},
                {'role': 'tool', 'content': 'tool output'},
                {'role': 'assistant', 'content': [{'text': 'hello'}], 'create_time': 3},
            ],
        }]}

        text = parse_chatgpt_files([json_file('messages.json', data)])

        self.assertIn('USER: hi', text)
        self.assertIn('ASSISTANT: hello', text)
        self.assertNotIn('tool output', text)

    def test_oddly_shaped_nodes_are_ignored(self):
        good = {'title': 'Trip', 'mapping': {
            'a': {'message': {'author': {'role': 'assistant'}, 'content': {'parts': ['Try Lisbon']}, 'create_time': 1}},
            'b': {'message': ['unexpected']},
            'c': 'not a node',
        }}
        odd = {'title': 'Odd', 'mapping': {'x': {'message': {'author': 'user', 'content': 5}}}}

        text = parse_chatgpt_files([json_file('conversations.json', [good, odd, 'stray'])])

        self.assertIn('ASSISTANT: Try Lisbon', text)
        self.assertNotIn('Odd', text)

    def test_malformed_json_yields_no_messages(self):
        upload = UploadedFile(name='conversations.json', content=b'{not json')

        self.assertEqual(parse_chatgpt_files([upload]), common.CHATGPT_NO_MESSAGES)

    def test_unknown_layout_keeps_raw_text(self):
        text = parse_chatgpt_files([json_file('conversations.json', {'schema': 'v9', 'note': 'likes chess'})])

        self.assertIn('=== JSON FILE: conversations.json ===', text)
        self.assertIn('likes chess', text)

    def test_falls_back_to_any_json_file(self):
        upload = make_zip('export.zip', {'user.json': '{"email": "a@example.com"}'})

        text = parse_chatgpt_files([upload])

        self.assertIn('=== JSON FILE: user.json ===', text)

    def test_no_json_at_all(self):
        upload = make_zip('export.zip', {'notes.txt': 'hello'})

        self.assertEqual(parse_chatgpt_files([upload]), common.CHATGPT_NO_EXPORT_FILES)


class TestClaudeParser(unittest.TestCase):
    def test_chat_messages_with_content_blocks(self):
        conversation = {
            'uuid': 'c-1',
            'name': 'Career chat',
            'created_at': '2024-01-02T00:00:00Z',
            'chat_messages': [
                {'sender': 'assistant', 'text': 'Happy to help', 'content': [], 'created_at': '2024-01-02T00:00:02Z'},
                {'sender': 'human', 'text': 'derived copy', 'created_at': '2024-01-02T00:00:01Z',
                 'content': [{'type': 'text', 'text': 'I want to switch careers'},
                             {'type': 'tool_use', 'text': 'internal call'}]},
            ],
        }

        text = parse_claude_files([make_zip('claude.zip', {'conversations.json': json.dumps([conversation])})])

        self.assertIn('===== Conversation: Career chat =====', text)
        self.assertIn('USER: I want to switch careers', text)
        self.assertIn('ASSISTANT: Happy to help', text)
        self.assertLess(text.index('USER:'), text.index('ASSISTANT:'))
        self.assertNotIn('derived copy', text)
        self.assertNotIn('internal call', text)

    def test_untitled_conversation_uses_id(self):
        conversation = {'uuid': 'abc-123', 'chat_messages': [{'sender': 'human', 'text': 'hello'}]}

        text = parse_claude_files([json_file('conversations.json', [conversation])])

        self.assertIn('===== Conversation: abc-123 =====', text)

    def test_oddly_shaped_messages_are_ignored(self):
        conversation = {'uuid': 'c-2', 'name': 'Odd chat', 'chat_messages': [
            'junk',
            {'sender': 'human', 'content': 5, 'text': 'hello claude'},
            {'sender': 'assistant', 'content': [7, None, {'type': 'text', 'text': 42}], 'text': None},
        ]}

        text = parse_claude_files([json_file('conversations.json', [conversation])])

        self.assertIn('USER: hello claude', text)
        self.assertNotIn('ASSISTANT:', text)

    def test_falls_back_to_text_files(self):
        text = parse_claude_files([UploadedFile(name='notes.txt', content=b'remember this')])

        self.assertIn('=== CLAUDE FILE: notes.txt ===\nremember this', text)

    def test_nothing_readable(self):
        upload = UploadedFile(name='photo.png', content=b'\x89PNG\x00\x00')

        self.assertEqual(parse_claude_files([upload]), common.CLAUDE_NO_CONTENT)


class TestGeminiParser(unittest.TestCase):
    def test_takeout_activity_grouped_by_day(self):
        records = [
            {'header': 'Gemini Apps', 'title': 'Prompted What is Rust?', 'time': '2024-03-02T10:00:00.000Z',
             'safeHtmlItem': [{'html': '<p>Rust is a <b>language</b> &amp; more</p>'}]},
            {'header': 'Gemini Apps', 'title': 'Prompted Earlier question', 'time': '2024-03-01T09:00:00Z'},
            {'header': 'YouTube', 'title': 'Watched something', 'time': '2024-03-01T08:00:00Z'},
        ]
        upload = make_zip('takeout.zip', {'Takeout/My Activity/Gemini Apps/MyActivity.json': json.dumps(records)})

        text = parse_gemini_files([upload])

        self.assertIn('===== Conversation: Gemini Apps activity 2024-03-01 =====', text)
        self.assertIn('===== Conversation: Gemini Apps activity 2024-03-02 =====', text)
        self.assertIn('USER: What is Rust?', text)
        self.assertIn('ASSISTANT: Rust is a language & more', text)
        self.assertLess(text.index('Earlier question'), text.index('What is Rust?'))
        self.assertNotIn('Watched something', text)

    def test_ai_studio_prompt_skips_thoughts(self):
        prompt = {'chunkedPrompt': {'chunks': [
            {'role': 'user', 'text': 'Explain closures'},
            {'role': 'model', 'text': 'pondering...', 'isThought': True},
            {'role': 'model', 'text': 'A closure captures variables'},
        ]}}
        upload = UploadedFile(name='Closures chat', content=json.dumps(prompt).encode('utf-8'))

        text = parse_gemini_files([upload])

        self.assertIn('===== Conversation: Closures chat =====', text)
        self.assertIn('USER: Explain closures', text)
        self.assertIn('ASSISTANT: A closure captures variables', text)
        self.assertNotIn('pondering', text)

    def test_oddly_shaped_records_are_ignored(self):
        records = [
            {'header': 'Gemini Apps', 'title': 'Prompted hi', 'time': '2024-03-01T09:00:00Z'},
            {'products': 5, 'title': 'Prompted numeric products'},
            {'header': ['Gemini Apps'], 'products': [{'x': 1}], 'title': 'Prompted nested labels'},
            {'header': 'Gemini Apps', 'title': 'Prompted hello', 'safeHtmlItem': 5, 'time': '2024-03-01T10:00:00Z'},
        ]

        text = parse_gemini_files([json_file('MyActivity.json', records)])

        self.assertIn('USER: hi', text)
        self.assertIn('USER: hello', text)
        self.assertNotIn('numeric products', text)
        self.assertNotIn('nested labels', text)

    def test_falls_back_to_html_pages(self):
        upload = UploadedFile(name='MyActivity.html', content=b'<html><body><p>Asked about gardening</p></body></html>')

        text = parse_gemini_files([upload])

        self.assertIn('=== GEMINI FILE: MyActivity.html ===\nAsked about gardening', text)

    def test_nothing_readable(self):
        self.assertEqual(parse_gemini_files([UploadedFile(name='x.dat', content=b'\x00\x01')]), common.GEMINI_NO_CONTENT)


class TestPlaintextParser(unittest.TestCase):
    def test_concatenates_text_files_and_strips_html(self):
        files = [
            UploadedFile(name='notes.txt', content=b'I like tea'),
            UploadedFile(name='page.html', content=b'<html><body><script>var x;</script><p>Hello &amp; bye</p></body></html>'),
            UploadedFile(name='image.png', content=b'\x89PNG\x00\x00'),
        ]

        text = parse_plaintext_files(files)

        self.assertIn('=== FILE: notes.txt ===\nI like tea', text)
        self.assertIn('=== FILE: page.html ===\nHello & bye', text)
        self.assertNotIn('var x', text)
        self.assertNotIn('PNG', text)

    def test_reads_archive_members(self):
        text = parse_plaintext_files([make_zip('bundle.zip', {'docs/readme.md': '# Title'})])

        self.assertIn('=== FILE: docs/readme.md ===\n# Title', text)

    def test_nothing_readable(self):
        self.assertEqual(parse_plaintext_files([UploadedFile(name='blob.bin', content=b'\x00\xff')]),
                         common.PLAINTEXT_NO_CONTENT)


if __name__ == '__main__':
    unittest.main()
