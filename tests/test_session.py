import os
import socket
import tempfile
import unittest

from peer.stream import Stream
from protocol.session import Session
from tests.fakes import RecordingConsole


class SessionTests(unittest.TestCase):
    """Two sessions talking over a real connected socket pair."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.src_dir = os.path.join(self.tmp.name, "outgoing")
        self.alice_dir = os.path.join(self.tmp.name, "alice")
        self.bob_dir = os.path.join(self.tmp.name, "bob")
        for d in (self.src_dir, self.alice_dir, self.bob_dir):
            os.mkdir(d)

        a, b = socket.socketpair()
        self.alice_console = RecordingConsole()
        self.bob_console = RecordingConsole()
        self.alice = Session(Stream(a, remote_peer="bob"), self.alice_console, self.alice_dir).start()
        self.bob = Session(Stream(b, remote_peer="alice"), self.bob_console, self.bob_dir).start()
        self.addCleanup(self.finish)

    def finish(self):
        for console in (self.alice_console, self.bob_console):
            console.input.put(None)
        for session in (self.alice, self.bob):
            session.writer_thread.join(5)
        self.alice.close()
        self.bob.close()

    def make_file(self, name, data):
        path = os.path.join(self.src_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def hang_up(self):
        self.alice_console.input.put(None)
        self.bob_console.input.put(None)
        self.assertTrue(self.alice.wait(5))
        self.assertTrue(self.bob.wait(5))

    def test_chat_both_directions(self):
        self.alice_console.input.put("hi bob\n")
        self.assertEqual(self.bob_console.next_event(), ("chat", "hi bob"))
        self.bob_console.input.put("hi alice\n")
        self.assertEqual(self.alice_console.next_event(), ("chat", "hi alice"))
        self.hang_up()

    def test_file_then_chat_arrive_in_order(self):
        data = os.urandom(300000)
        path = self.make_file("big.bin", data)
        self.alice_console.input.put(f"send:{path}\n")
        self.alice_console.input.put("B\n")

        kind, text = self.bob_console.next_event()
        self.assertEqual(kind, "notice")
        self.assertIn("Receiving file: big.bin (300000 bytes)", text)
        kind, text = self.bob_console.next_event()
        self.assertIn("received and saved successfully", text)
        self.assertEqual(self.bob_console.next_event(), ("chat", "B"))

        with open(os.path.join(self.bob_dir, "big.bin"), "rb") as f:
            self.assertEqual(f.read(), data)
        self.hang_up()

    def test_empty_file(self):
        path = self.make_file("nothing", b"")
        self.alice_console.input.put(f"send:{path}\n")
        self.bob_console.next_event()
        self.assertIn("received and saved", self.bob_console.next_event()[1])
        self.assertEqual(os.path.getsize(os.path.join(self.bob_dir, "nothing")), 0)
        self.hang_up()

    def test_simultaneous_transfers_in_both_directions(self):
        a_data = os.urandom(50000)
        b_data = os.urandom(70000)
        a_path = self.make_file("from_alice.bin", a_data)
        b_path = self.make_file("from_bob.bin", b_data)
        self.alice_console.input.put(f"send:{a_path}\n")
        self.bob_console.input.put(f"send:{b_path}\n")
        self.hang_up()

        with open(os.path.join(self.bob_dir, "from_alice.bin"), "rb") as f:
            self.assertEqual(f.read(), a_data)
        with open(os.path.join(self.alice_dir, "from_bob.bin"), "rb") as f:
            self.assertEqual(f.read(), b_data)

    def test_remote_close_ends_reader(self):
        self.bob_console.input.put(None)
        self.assertTrue(self.alice.wait(5))


class SequentialSessionTests(unittest.TestCase):
    """Sessions served one after another on one operator console."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.console = RecordingConsole()

    def test_closed_session_leaves_next_line_to_the_next_session(self):
        local, remote = socket.socketpair()
        first = Session(Stream(local, remote_peer="first"), self.console, self.tmp.name).start()
        remote.close()
        self.assertTrue(first.wait(5))
        first.close()
        self.assertFalse(first.writer_thread.is_alive())

        local, remote = socket.socketpair()
        remote.settimeout(5)
        self.addCleanup(remote.close)
        second = Session(Stream(local, remote_peer="second"), self.console, self.tmp.name).start()
        self.addCleanup(second.close)

        self.console.input.put("hello second peer\n")
        with remote.makefile("rb") as peer_reader:
            self.assertEqual(peer_reader.readline(), b"hello second peer\n")
        self.assertEqual([e for e in self.console.seen if e[0] == "error"], [])

    def test_close_stops_a_writer_waiting_for_input(self):
        local, remote = socket.socketpair()
        self.addCleanup(remote.close)
        session = Session(Stream(local, remote_peer="idle"), self.console, self.tmp.name).start()
        session.close()
        self.assertFalse(session.writer_thread.is_alive())


if __name__ == "__main__":
    unittest.main()
