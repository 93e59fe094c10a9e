from __future__ import annotations


class NotekeeperError(Exception):
    """Base class for errors raised by the notekeeper core."""


class StoreError(NotekeeperError):
    """A document store or blob storage request failed.

    ``transient`` separates retryable conditions (network drops, timeouts,
    5xx) from permanent ones (constraint violations, permission denied).
    """

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient

    @property
    def kind(self) -> str:
        return "transient" if self.transient else "permanent"


class TopicNotFoundError(ValueError):
    """Referenced topic does not exist for the owning user."""


class NoteNotFoundError(ValueError):
    """Referenced note does not exist for the owning user."""


class TopicHierarchyError(ValueError):
    """A topic cannot be placed under the requested parent."""


class ExternalServiceError(NotekeeperError):
    """A remote HTTP service (transcription, AI chat) failed.

    ``user_message`` is safe to show as-is.
    """

    def __init__(self, service: str, user_message: str) -> None:
        super().__init__(f"{service}: {user_message}")
        self.service = service
        self.user_message = user_message


class ServiceTimeoutError(ExternalServiceError):
    def __init__(self, service: str) -> None:
        super().__init__(
            service,
            "Request timed out. The server might be overloaded or unreachable.",
        )


class ServiceHTTPError(ExternalServiceError):
    def __init__(self, service: str, status_code: int) -> None:
        super().__init__(service, f"Server responded with status {status_code}.")
        self.status_code = status_code


class ServiceConnectionError(ExternalServiceError):
    def __init__(self, service: str) -> None:
        super().__init__(
            service,
            "No response received from the server. Please check your network connection.",
        )
