"""Error taxonomy for the food ordering core.

Every error carries a public message that is safe to show to end users. The
internal details (denial reason tags, gateway status codes) are kept on the
exception for logging only.
"""

from enum import Enum


class DenialReason(str, Enum):
    """Why an access decision was denied."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    WRONG_ROLE = "WRONG_ROLE"
    WRONG_REGION = "WRONG_REGION"
    NOT_OWNER = "NOT_OWNER"
    INVALID_STATE = "INVALID_STATE"


class CoreError(Exception):
    """Base class for all errors raised by the core."""

    public_message = "The request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class AuthenticationFailure(CoreError):
    """Missing, expired or invalid credential. Never retried."""

    public_message = "Please sign in again."


class AuthorizationFailure(CoreError):
    """Policy denied the operation. Never retried."""

    public_message = "Access denied."

    def __init__(self, reason: DenialReason, message: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class InvalidOperation(CoreError):
    """Operation is not valid for the current data."""

    public_message = "This operation is not allowed."


class InvalidStateTransition(InvalidOperation):
    """Transition is not legal from the order's current status."""

    public_message = "This action is not allowed for the order's current status."


class ResourceNotFound(CoreError):
    """Requested resource does not exist or is not visible."""

    public_message = "The requested resource was not found."


class FeatureNotImplemented(CoreError):
    """Gateway answered that the operation is not implemented yet.

    A soft failure: callers decide whether to retain the pending local edit.
    """

    public_message = "This feature is coming soon."


class TransportFailure(CoreError):
    """Network or parse failure talking to the gateway. Retryable by callers."""

    public_message = "The service is temporarily unavailable. Please try again."
