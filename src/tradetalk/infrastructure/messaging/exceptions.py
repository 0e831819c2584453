"""Messaging transport exceptions."""

from tradetalk.domain.entities import TradetalkError


class MessagingError(TradetalkError):
    """Sending a message failed.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
