import io
import os
import threading
import unittest

from protocol.console import Console


class ConsoleTests(unittest.TestCase):
    def test_read_line_until_end_of_input(self):
        out = io.StringIO()
        console = Console(io.StringIO("hello\nsend:x\n"), out)
        self.assertEqual(console.read_line(), "hello\n")
        self.assertEqual(console.read_line(), "send:x\n")
        self.assertIsNone(console.read_line())
        self.assertEqual(out.getvalue(), "> > > ")

    def test_cancelled_read_returns_none_while_input_is_idle(self):
        r, w = os.pipe()
        infile = os.fdopen(r)
        self.addCleanup(infile.close)
        self.addCleanup(os.close, w)
        console = Console(infile, io.StringIO())
        cancelled = threading.Event()
        cancelled.set()
        self.assertIsNone(console.read_line(cancelled))

    def test_unread_line_goes_to_the_next_reader(self):
        console = Console(io.StringIO("first\n"), io.StringIO())
        line = console.read_line()
        console.unread(line)
        self.assertEqual(console.read_line(), "first\n")

    def test_chat_is_rendered_green(self):
        out = io.StringIO()
        Console(io.StringIO(), out).show_chat("hi")
        self.assertEqual(out.getvalue(), "\x1b[32mhi\x1b[0m\n> ")

    def test_errors_are_marked(self):
        out = io.StringIO()
        Console(io.StringIO(), out).error("disk full")
        self.assertEqual(out.getvalue(), "[!] disk full\n")


if __name__ == "__main__":
    unittest.main()
