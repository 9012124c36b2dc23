"""Wire encoding for chat sessions.

Chat text and file headers are newline-terminated UTF-8 lines. File contents
follow a header as raw bytes with no delimiter; only the size declared in the
header tells the receiver where they end, so the reader switches between
line mode (``read_line``) and raw mode (``read_raw``) itself.
"""
import re
from dataclasses import dataclass

from protocol.errors import MalformedHeader, StreamError

ENCODING = "utf-8"
TERMINATOR = b"\n"
FILE_TAG = "FILE:"
CHUNK_SIZE = 4096
MAX_LINE = 1024 * 1024

_SIZE_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ChatLine:
    text: str

    def encode(self) -> bytes:
        return self.text.encode(ENCODING) + TERMINATOR


@dataclass(frozen=True)
class FileHeader:
    name: str
    size: int

    def encode(self) -> bytes:
        if not self.name or any(ch.isspace() for ch in self.name):
            raise MalformedHeader(self.name, "file name must be non-empty and contain no whitespace")
        if self.size < 0:
            raise MalformedHeader(self.name, f"negative size {self.size}")
        return f"{FILE_TAG}{self.name} {self.size}".encode(ENCODING) + TERMINATOR


def is_file_header(text):
    return text[:len(FILE_TAG)] == FILE_TAG


def parse_file_header(text):
    """Parse a line that starts with FILE: into a FileHeader.

    Only the first two whitespace-separated tokens are looked at, anything
    after them is ignored.
    """
    tokens = text[len(FILE_TAG):].split()
    if len(tokens) < 2:
        raise MalformedHeader(text, "expected '<name> <size>'")
    name, size = tokens[0], tokens[1]
    if not _SIZE_RE.fullmatch(size):
        raise MalformedHeader(text, f"size {size!r} is not a non-negative integer")
    return FileHeader(name=name, size=int(size))


def decode_line(raw):
    """Turn one raw line into a ChatLine or a FileHeader.

    Raises MalformedHeader for FILE: lines that do not parse.
    """
    if raw.endswith(TERMINATOR):
        raw = raw[:-len(TERMINATOR)]
    text = raw.decode(ENCODING, errors="replace")
    if is_file_header(text):
        return parse_file_header(text)
    return ChatLine(text)


def read_line(reader, limit=MAX_LINE):
    """Line mode: read up to and including the next terminator.

    Returns b"" once the remote side has closed its half of the stream.
    A line longer than ``limit`` bytes is a StreamError.
    """
    try:
        raw = reader.readline(limit)
    except (OSError, ValueError) as e:
        raise StreamError(f"read failed: {e}") from e
    if len(raw) >= limit and not raw.endswith(TERMINATOR):
        raise StreamError(f"line longer than {limit} bytes")
    return raw


def read_raw(reader, count):
    """Raw mode: return between 1 and ``count`` bytes, or b"" at end of stream."""
    try:
        return reader.read1(count)
    except (OSError, ValueError) as e:
        raise StreamError(f"read failed: {e}") from e


def write_frame(writer, data):
    try:
        writer.write(data)
        writer.flush()
    except (OSError, ValueError) as e:
        raise StreamError(f"write failed: {e}") from e
