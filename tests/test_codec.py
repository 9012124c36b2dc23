import unittest

from protocol.codec import ChatLine, FileHeader, decode_line, parse_file_header, read_line, read_raw
from protocol.errors import MalformedHeader, StreamError
from tests.fakes import stream_reader


class CodecTests(unittest.TestCase):
    def test_chat_line_encoding(self):
        self.assertEqual(ChatLine("héllo").encode(), "héllo\n".encode("utf-8"))

    def test_decode_chat_line_strips_single_terminator(self):
        self.assertEqual(decode_line(b"hello there\n"), ChatLine("hello there"))
        self.assertEqual(decode_line(b"trailing space \n"), ChatLine("trailing space "))

    def test_file_header_encoding(self):
        self.assertEqual(FileHeader("report.pdf", 10000).encode(), b"FILE:report.pdf 10000\n")
        self.assertEqual(FileHeader("empty", 0).encode(), b"FILE:empty 0\n")

    def test_decode_file_header(self):
        self.assertEqual(decode_line(b"FILE:notes.txt 42\n"), FileHeader("notes.txt", 42))

    def test_header_extra_tokens_ignored(self):
        self.assertEqual(parse_file_header("FILE:a.bin 7 trailing junk"), FileHeader("a.bin", 7))

    def test_header_needs_two_tokens(self):
        for text in ("FILE:", "FILE:onlyname", "FILE:   "):
            with self.subTest(text=text):
                with self.assertRaises(MalformedHeader):
                    parse_file_header(text)

    def test_header_size_must_be_plain_non_negative_integer(self):
        for size in ("abc", "-1", "+5", "1.5", "0x10", "١٢"):
            with self.subTest(size=size):
                with self.assertRaises(MalformedHeader):
                    decode_line(f"FILE:name {size}\n".encode("utf-8"))

    def test_lowercase_tag_is_chat(self):
        self.assertEqual(decode_line(b"file:x 1\n"), ChatLine("file:x 1"))

    def test_encode_refuses_names_that_break_framing(self):
        for name in ("", "two words.txt", "tab\tname", "line\nbreak"):
            with self.subTest(name=name):
                with self.assertRaises(MalformedHeader):
                    FileHeader(name, 1).encode()

    def test_line_and_raw_modes_share_one_buffer(self):
        reader = stream_reader(b"FILE:a 5\nabcdechat\n")
        self.assertEqual(read_line(reader), b"FILE:a 5\n")
        self.assertEqual(read_raw(reader, 5), b"abcde")
        self.assertEqual(read_line(reader), b"chat\n")
        self.assertEqual(read_line(reader), b"")

    def test_overlong_line_is_a_stream_error(self):
        with self.assertRaises(StreamError):
            read_line(stream_reader(b"x" * 100), limit=10)

    def test_line_of_exactly_the_limit_is_accepted(self):
        reader = stream_reader(b"123456789\nrest\n")
        self.assertEqual(read_line(reader, limit=10), b"123456789\n")
        self.assertEqual(read_line(reader, limit=10), b"rest\n")

    def test_unterminated_short_line_at_close_is_returned(self):
        self.assertEqual(read_line(stream_reader(b"tail"), limit=10), b"tail")

    def test_raw_read_never_exceeds_count(self):
        reader = stream_reader(b"0123456789")
        self.assertEqual(read_raw(reader, 4), b"0123")
        self.assertEqual(read_raw(reader, 100), b"456789")
        self.assertEqual(read_raw(reader, 1), b"")


if __name__ == "__main__":
    unittest.main()
