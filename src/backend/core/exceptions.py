"""
Domain exceptions for the voting and funding core.

Each exception maps to one failure class at the request boundary:
validation and not-found errors carry messages that are safe to show,
concurrency and dependency failures are reported generically.
"""


class ProductVoteError(Exception):
    """Base exception for product vote operations."""

    pass


class ValidationFailure(ProductVoteError):
    """Malformed or missing input. Raised before any store access."""

    pass


class NotFoundError(ProductVoteError):
    """The operation requires a record that does not exist."""

    pass


class ConcurrentModificationError(ProductVoteError):
    """A conditional write lost against a concurrent writer."""

    pass


class ConcurrencyExhausted(ProductVoteError):
    """The optimistic update loop ran out of attempts."""

    def __init__(self, label: str, attempts: int):
        super().__init__(f"{label} failed after {attempts} attempts")
        self.label = label
        self.attempts = attempts


class ExternalDependencyFailure(ProductVoteError):
    """The persistence layer or a third-party service is unreachable."""

    pass
