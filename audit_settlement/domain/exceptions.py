"""Base exception classes for the audit settlement domain layer."""


class AuditEngineError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions MUST inherit from this class.
    This enables consistent error handling across the application.

    Attributes:
        retryable: Whether the caller may retry the same operation after
            re-reading current state. Validation failures are never
            retryable; optimistic-concurrency conflicts are.
    """

    retryable: bool = False

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
