import os
import stat
import logging

from protocol.codec import CHUNK_SIZE, FileHeader, read_raw, write_frame
from protocol.errors import StorageError, StreamError

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


def _close(f):
    try:
        f.close()
    except OSError as e:
        logger.warning(f"Failed to close '{f.name}': {e}")


def safe_basename(name):
    """Last path component of a declared file name, or None if there is none usable."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    if base in ("", ".", ".."):
        return None
    return base


class OutboundTransfer:
    """Sends one local file as a FILE: header followed by its raw bytes."""

    def __init__(self, path, chunk_size=CHUNK_SIZE):
        self.path = path
        self.chunk_size = chunk_size
        self.size = None
        self.moved = 0

    def _read_chunk(self, f, count):
        return f.read(count)

    def send(self, writer):
        try:
            f = open(self.path, "rb")
        except OSError as e:
            raise StorageError(self.path, f"cannot open: {e}") from e

        with f:
            try:
                st = os.fstat(f.fileno())
            except OSError as e:
                raise StorageError(self.path, f"cannot stat: {e}") from e
            if not stat.S_ISREG(st.st_mode):
                raise StorageError(self.path, "not a regular file")
            self.size = st.st_size

            # Nothing has been written yet if the name cannot be encoded.
            header = FileHeader(name=os.path.basename(self.path), size=self.size)
            write_frame(writer, header.encode())
            logger.debug(f"Sent header for '{self.path}' ({self.size} bytes)")

            # From here on the peer is owed exactly self.size bytes. Failing to
            # supply them leaves its reader expecting file data.
            while self.moved < self.size:
                count = min(self.chunk_size, self.size - self.moved)
                try:
                    chunk = self._read_chunk(f, count)
                except OSError as e:
                    logger.warning(f"Desync risk: '{self.path}' aborted after header, peer still expects {self.size - self.moved} bytes")
                    raise StorageError(self.path, f"read failed after header was sent: {e}", self.moved, self.size) from e
                if not chunk:
                    logger.warning(f"Desync risk: '{self.path}' shrank after header, peer still expects {self.size - self.moved} bytes")
                    raise StorageError(self.path, "file ended before its declared size", self.moved, self.size)
                write_frame(writer, chunk)
                self.moved += len(chunk)

        logger.debug(f"Sent {self.moved} bytes of '{self.path}'")
        return self.moved


class InboundTransfer:
    """Receives the raw bytes that follow a FILE: header into receive_dir."""

    def __init__(self, header, receive_dir, chunk_size=CHUNK_SIZE):
        self.header = header
        self.size = header.size
        self.chunk_size = chunk_size
        self.moved = 0
        self.written = 0
        base = safe_basename(header.name)
        self.path = os.path.join(receive_dir, base) if base else None

    @property
    def remaining(self):
        return self.size - self.moved

    def _next(self, reader):
        data = read_raw(reader, min(self.chunk_size, self.remaining))
        if not data:
            raise StreamError(f"stream closed after {self.moved} of {self.size} bytes of '{self.header.name}'")
        self.moved += len(data)
        return data

    def drain(self, reader):
        """Discard the rest of the declared payload so line parsing stays aligned."""
        dropped = 0
        while self.remaining > 0:
            dropped += len(self._next(reader))
        return dropped

    def receive(self, reader):
        """Copy exactly ``size`` bytes from the stream to the destination file.

        On a storage error the remaining payload is drained from the stream
        before StorageError is raised, so the caller can go back to reading
        lines. A StreamError means the stream is gone and is raised as is.
        Partial files are left on disk.
        """
        if self.path is None:
            error = StorageError(self.header.name, "no usable file name", 0, self.size)
            self.drain(reader)
            raise error

        try:
            f = open(self.path, "wb")
        except OSError as e:
            error = StorageError(self.path, f"cannot create: {e}", 0, self.size)
            self.drain(reader)
            raise error from e

        try:
            while self.remaining > 0:
                data = self._next(reader)
                f.write(data)
                self.written += len(data)
            f.close()
        except OSError as e:
            _close(f)
            error = StorageError(self.path, f"write failed: {e}", self.written, self.size)
            dropped = self.drain(reader)
            logger.debug(f"Drained {dropped} bytes after write failure on '{self.path}'")
            raise error from e
        except StreamError:
            _close(f)
            raise

        return self.path
