"""
Exceptions raised by the reverse dictionary core.
"""


class ReverseDictError(Exception):
    """Base exception for all reverse dictionary errors."""


class TransportError(ReverseDictError):
    """
    An embedding or completion provider could not be reached.

    Raised when:
    - The connection is refused or dropped
    - The request times out
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderError(ReverseDictError):
    """
    A provider was reachable but its response cannot be used.

    Raised when:
    - The provider answers with a non-success status
    - The body cannot be decoded
    - No vectors (or the wrong number of vectors) are returned
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class EmptyEmbeddingError(ProviderError):
    """A provider returned no vector for a search query."""


class UnknownModel(ReverseDictError, ValueError):
    """A model name could not be parsed."""


class StoreError(ReverseDictError):
    """A transaction, query preparation, or row scan failed."""


class NotFound(ReverseDictError):
    """Nothing matched: an empty store or a search without results."""


class NoDefinitionsExtracted(ReverseDictError):
    """The rephrasing backend produced no parseable definitions."""
