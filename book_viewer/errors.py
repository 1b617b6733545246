"""Exception types raised by Book Viewer."""


class BookViewerError(Exception):
    """Base class for all Book Viewer errors."""


class ConfigError(BookViewerError, ValueError):
    """Invalid grouping, coin or other user-selectable setting."""


class MalformedSnapshot(BookViewerError):
    """L2 snapshot is missing its level arrays or they have the wrong shape."""


class MalformedMessage(BookViewerError):
    """Feed payload could not be decoded into trades."""


class TransportError(BookViewerError):
    """WebSocket or HTTP transport failure."""


class TransportClosed(TransportError):
    """The WebSocket was closed by the remote end."""
