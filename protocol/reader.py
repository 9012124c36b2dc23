import enum
import logging

from protocol.codec import CHUNK_SIZE, TERMINATOR, ChatLine, decode_line, read_line
from protocol.errors import MalformedHeader, StorageError, StreamError
from protocol.transfer import InboundTransfer

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


class ReaderState(enum.Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    CLOSED = "closed"


class SessionReader:
    """Owns the read side of a stream for the lifetime of a session.

    Lines are rendered as chat until a FILE: header arrives; the declared
    number of bytes after it are then written to receive_dir and the reader
    goes back to reading lines.
    """

    def __init__(self, reader, console, receive_dir, chunk_size=CHUNK_SIZE):
        self.reader = reader
        self.console = console
        self.receive_dir = receive_dir
        self.chunk_size = chunk_size
        self.state = ReaderState.IDLE

    def run(self):
        try:
            while self.state is not ReaderState.CLOSED:
                self.step()
        except StreamError as e:
            logger.error(f"Reader stopped: {e}")
            self.console.error(f"Connection lost: {e}")
            self.state = ReaderState.CLOSED
        logger.debug("Reader closed")

    def step(self):
        raw = read_line(self.reader)
        if not raw:
            logger.debug("Remote side closed the stream")
            self.state = ReaderState.CLOSED
            return
        if raw == TERMINATOR:
            return

        try:
            frame = decode_line(raw)
        except MalformedHeader as e:
            # No trusted size, so any payload that follows will be read as lines.
            logger.warning(f"{e}; desync risk if a payload follows")
            self.console.error(f"Ignoring {e}")
            return

        if isinstance(frame, ChatLine):
            self.console.show_chat(frame.text)
            return

        self.receive(frame)

    def receive(self, header):
        self.state = ReaderState.RECEIVING
        transfer = InboundTransfer(header, self.receive_dir, self.chunk_size)
        self.console.notify(f"Receiving file: {header.name} ({header.size} bytes)")
        logger.debug(f"Receiving '{header.name}' into {transfer.path}")
        try:
            path = transfer.receive(self.reader)
        except StorageError as e:
            logger.error(f"Inbound transfer aborted: {e}")
            self.console.error(f"Failed to receive file {e}; remaining bytes discarded")
        else:
            logger.info(f"Received {transfer.moved} bytes into {path}")
            self.console.notify(f"File {path} received and saved successfully.")
        finally:
            self.state = ReaderState.IDLE
