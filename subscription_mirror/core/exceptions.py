"""Shared exceptions module."""

from typing import Optional

from pydantic import ValidationError


class SubscriptionMirrorException(Exception):
    """Base exception for subscription mirror services."""

    def __init__(self, message: Optional[str] = "Subscription mirror error"):
        """Create a new SubscriptionMirrorException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class ConfigInvalid(SubscriptionMirrorException):
    """Exception raised when the sync configuration is missing or names an unknown field."""

    def __init__(self, field_name: str, message: str = "Invalid configuration field"):
        """Create a new ConfigInvalid instance.

        Args:
        ----
            field_name (str): The offending configuration field.
            message (str, optional): The error message. Has default message.

        """
        self.field_name = field_name
        super().__init__(f"{message}: {field_name}")


class WebhookVerificationError(SubscriptionMirrorException):
    """Base class for inbound events that are rejected before dispatch."""

    pass


class BodyMissing(WebhookVerificationError):
    """Raised when an inbound event carries no raw body."""

    def __init__(self, message: Optional[str] = "No request body found"):
        """Create a new BodyMissing instance."""
        super().__init__(message)


class SignatureMissing(WebhookVerificationError):
    """Raised when an inbound event carries no signature header."""

    def __init__(self, message: Optional[str] = "No Stripe signature found in request"):
        """Create a new SignatureMissing instance."""
        super().__init__(message)


class SignatureInvalid(WebhookVerificationError):
    """Raised when the provider rejects the signature of an inbound event."""

    def __init__(self, message: Optional[str] = "Invalid webhook signature"):
        """Create a new SignatureInvalid instance."""
        super().__init__(message)


class NotFoundException(SubscriptionMirrorException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        super().__init__(message)


class IdentityUnresolved(NotFoundException):
    """Raised when neither the event nor the provider customer yields an email."""

    def __init__(self, message: Optional[str] = "No email found in webhook data"):
        """Create a new IdentityUnresolved instance."""
        super().__init__(message)


class UserNotFound(NotFoundException):
    """Raised when the mirror has no record for an identity."""

    def __init__(self, message: Optional[str] = "User not found"):
        """Create a new UserNotFound instance."""
        super().__init__(message)


class CustomerNotFound(NotFoundException):
    """Raised when the billing provider has no customer for an identity."""

    def __init__(self, message: Optional[str] = "No Stripe customer found for this email"):
        """Create a new CustomerNotFound instance."""
        super().__init__(message)


class SubscriptionNotFound(NotFoundException):
    """Raised when a customer has no active subscription to act on."""

    def __init__(self, message: Optional[str] = "Active subscription not found"):
        """Create a new SubscriptionNotFound instance."""
        super().__init__(message)


class StoreError(SubscriptionMirrorException):
    """Exception raised when the mirror store fails.

    The message of the underlying store error is kept verbatim.
    """

    def __init__(self, message: Optional[str] = "Mirror store failed"):
        """Create a new StoreError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        super().__init__(message)


class ExternalServiceError(Exception):
    """Exception raised when an external service fails."""

    def __init__(self, service_name: str, message: Optional[str] = "External service failed"):
        """Create a new ExternalServiceError instance.

        Args:
        ----
            service_name (str): The name of the external service.
            message (str, optional): The error message. Has default message.

        """
        self.service_name = service_name
        self.message = message
        super().__init__(f"{service_name}: {message}")


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        message = error["msg"]
        error_messages.append({field: message})

    return {"errors": error_messages}
