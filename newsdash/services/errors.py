class NetworkError(Exception):
    """Raised when a fetch times out, fails in transport, or returns non-2xx."""

    def __init__(self, reason: str, status: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.status = status


class ParseFailed(Exception):
    """Raised when a document cannot be parsed or holds no item/entry nodes."""
