import threading
import logging

from protocol.codec import CHUNK_SIZE, ChatLine, is_file_header, write_frame
from protocol.errors import MalformedHeader, StorageError, StreamError
from protocol.transfer import OutboundTransfer

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)

SEND_TAG = "send:"


class SessionWriter:
    """Owns the write side of a stream for the lifetime of a session.

    Each operator line is either a ``send:<path>`` command, which is carried
    out to completion before the next line is read, or chat text.
    """

    def __init__(self, stream, console, chunk_size=CHUNK_SIZE):
        self.stream = stream
        self.console = console
        self.chunk_size = chunk_size
        self.closed = threading.Event()

    def run(self):
        try:
            while True:
                line = self.console.read_line(self.closed)
                if self.closed.is_set():
                    if line is not None:
                        self.console.unread(line)
                    logger.debug("Writer stopped, session closed")
                    return
                if line is None:
                    logger.debug("End of local input")
                    break
                self.handle(line)
        except StreamError as e:
            logger.error(f"Writer stopped: {e}")
            self.console.error(f"Connection lost: {e}")
            return
        self.stream.close_write()

    def handle(self, line):
        line = line.rstrip("\r\n")
        if line.startswith(SEND_TAG):
            self.send_file(line[len(SEND_TAG):])
        elif not line:
            return
        elif is_file_header(line):
            self.console.error("Refusing to send a chat line that starts with 'FILE:'")
        else:
            write_frame(self.stream.writer, ChatLine(line).encode())

    def send_file(self, path):
        if not path:
            self.console.error("Usage: send:<path>")
            return
        transfer = OutboundTransfer(path, self.chunk_size)
        try:
            sent = transfer.send(self.stream.writer)
        except (StorageError, MalformedHeader) as e:
            logger.error(f"Outbound transfer aborted: {e}")
            self.console.error(f"Failed to send file {e}")
            return
        logger.info(f"Sent {sent} bytes of {path}")
        self.console.notify(f"File {path} sent successfully.")
