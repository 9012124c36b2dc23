import threading
import logging

from protocol.codec import CHUNK_SIZE
from protocol.reader import SessionReader
from protocol.writer import SessionWriter

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)

PROTOCOL_ID = "/chat/1.0.0"


class Session:
    """One reader thread and one writer thread bound to one stream."""

    def __init__(self, stream, console, receive_dir, chunk_size=CHUNK_SIZE):
        self.stream = stream
        self.reader = SessionReader(stream.reader, console, receive_dir, chunk_size)
        self.writer = SessionWriter(stream, console, chunk_size)
        self.reader_thread = threading.Thread(target=self.reader.run, name="session-reader", daemon=True)
        self.writer_thread = threading.Thread(target=self.writer.run, name="session-writer", daemon=True)

    def start(self):
        logger.debug(f"Starting session with {self.stream.remote_peer}")
        self.reader_thread.start()
        self.writer_thread.start()
        return self

    def wait(self, timeout=None):
        """Block until the remote side closes the stream."""
        self.reader_thread.join(timeout)
        return not self.reader_thread.is_alive()

    def close(self):
        self.writer.closed.set()
        self.stream.close()
        self.reader_thread.join(1.0)
        self.writer_thread.join(1.0)
        logger.debug(f"Session with {self.stream.remote_peer} closed")


def handle_stream(stream, console, receive_dir, chunk_size=CHUNK_SIZE):
    logger.info(f"Got a new stream from {stream.remote_peer}")
    return Session(stream, console, receive_dir, chunk_size).start()
