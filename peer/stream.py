import socket
import logging

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


class Stream:
    """A connected socket split into a buffered read half and write half.

    The read half and the write half are meant to be used by one thread each.
    """

    def __init__(self, sock, remote_peer=None, protocol=None):
        self.sock = sock
        self.remote_peer = remote_peer
        self.protocol = protocol
        self.reader = sock.makefile("rb")
        self.writer = sock.makefile("wb")

    def set_timeout(self, seconds):
        self.sock.settimeout(seconds)

    def close_write(self):
        """Signal end of stream to the peer while still reading from it."""
        try:
            self.writer.flush()
            self.sock.shutdown(socket.SHUT_WR)
        except (OSError, ValueError) as e:
            logger.debug(f"Half-close of stream to {self.remote_peer} failed: {e}")

    def close(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already disconnected
        for f in (self.reader, self.writer):
            try:
                f.close()
            except OSError as e:
                logger.debug(f"Closing stream file failed: {e}")
        self.sock.close()
