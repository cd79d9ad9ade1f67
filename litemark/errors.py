class LiteMarkError(Exception):
    """Base class for errors raised by LiteMark services."""


class ValidationError(LiteMarkError):
    """Input was rejected; the message is safe to show to the caller."""


class BackendUnavailableError(LiteMarkError):
    """The storage or backup backend could not be reached or is misconfigured."""

    def __init__(self, message: str, backend: str | None = None):
        super().__init__(message)
        self.backend = backend


class MalformedDocumentError(LiteMarkError):
    """A stored document exists but is not valid JSON."""

    def __init__(self, key: str, path: str, detail: str):
        super().__init__(f"document {key!r} at {path!r} is not valid JSON: {detail}")
        self.key = key
        self.path = path
