"""
Exception Classes - Strongly typed exception hierarchy.

Every error carries typed attributes; HTTP mapping happens in the routes.
"""

from uuid import UUID


class AniverseError(Exception):
    """Base exception for all AniVerse errors."""

    pass


class ClientInputError(AniverseError):
    """Raised when a request is missing fields or carries invalid input."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InsufficientCreditsError(AniverseError):
    """Raised when a user has no credits left for a generation."""

    def __init__(self, user_id: UUID, balance: int) -> None:
        self.user_id = user_id
        self.balance = balance
        super().__init__("No credits remaining")


class ProviderError(AniverseError):
    """Raised when the generative AI provider fails."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"{stage} failed: {message}")


class ProviderQuotaError(ProviderError):
    """Raised when the AI provider reports quota exhaustion or rate limiting."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(stage, message)


class ProviderTimeoutError(ProviderError):
    """Raised when an outbound provider call exceeds its deadline."""

    def __init__(self, stage: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(stage, f"timed out after {timeout_seconds:g}s")


class StorageError(AniverseError):
    """Raised when the blob store rejects an operation."""

    def __init__(self, object_name: str, message: str) -> None:
        self.object_name = object_name
        self.message = message
        super().__init__(f"Storage error for {object_name}: {message}")


class WriteVerificationError(AniverseError):
    """Raised when a database write cannot be read back."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Write verification failed: {message}")


class PaymentProviderError(AniverseError):
    """Raised when payment provider operation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Payment provider error: {message}")


class WebhookVerificationError(AniverseError):
    """Raised when webhook verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Webhook verification error: {message}")
