class SessionError(Exception):
    """Base class for everything that can go wrong inside a chat session."""


class StreamError(SessionError):
    """The underlying stream failed or closed. Fatal to the task that saw it."""


class MalformedHeader(SessionError):
    """A FILE: line that does not parse into a name and a size."""

    def __init__(self, line, reason):
        super().__init__(f"malformed file header {line!r}: {reason}")
        self.line = line
        self.reason = reason


class StorageError(SessionError):
    """Local file could not be opened, read or written. Aborts one transfer."""

    def __init__(self, path, message, moved=0, size=None):
        if size is None:
            detail = f"{path}: {message}"
        else:
            detail = f"{path}: {message} ({moved} of {size} bytes)"
        super().__init__(detail)
        self.path = path
        self.moved = moved
        self.size = size
