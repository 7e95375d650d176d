"""Domain errors raised by the IDS message layer."""

from __future__ import annotations

from enum import Enum


class IDSMessageError(ValueError):
    """Base error for IDS message exchange operations."""


class SendFailureReason(str, Enum):
    """Why an outbound message could not be delivered."""

    INVALID_RECIPIENT = "invalid_recipient"
    NOT_CONFIGURED = "not_configured"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    UNAUTHORIZED = "unauthorized"
    REJECTED = "rejected"


class MessageSendError(IDSMessageError):
    """The message could not be sent or the peer refused it at transport level."""

    def __init__(
        self,
        message: str,
        *,
        reason: SendFailureReason,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    @property
    def unauthorized(self) -> bool:
        return self.reason is SendFailureReason.UNAUTHORIZED


class InvalidResponseError(IDSMessageError):
    """A response was received but cannot be processed further."""


class MultipartDecodeError(InvalidResponseError):
    """The response body is not a readable multipart document."""


class UnrecognizedComponentError(IDSMessageError):
    """The payload could not be read as a resource or connector self-description."""


class InvalidComponentError(UnrecognizedComponentError):
    """The payload names a known component type but its fields do not validate."""
