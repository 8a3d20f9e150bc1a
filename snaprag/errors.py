"""Error taxonomy shared by the retrieval engine and the HTTP layer."""


class SnapRAGError(Exception):
    """Base class for all errors raised by snaprag."""


class InvalidRequestError(SnapRAGError):
    """Bad input, rejected before any I/O (e.g. a blank query)."""


class AuthError(SnapRAGError):
    """No authenticated identity."""


class NotFoundError(SnapRAGError):
    """The requested content item does not exist for this owner."""


class ProviderError(SnapRAGError):
    """Embedding or language-model upstream failure."""


class GenerationError(ProviderError):
    """Text generation (caption or grounded answer) failed."""


class IndexQueryError(SnapRAGError):
    """A vector or tag index read/write failed."""
