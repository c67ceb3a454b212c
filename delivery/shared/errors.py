"""
Error taxonomy shared by the catalog, order and notification features.

Every error carries the HTTP status the API layer answers with, so routes
never translate exceptions by hand.
"""

from typing import Optional


class DeliveryError(Exception):
    """Base class for all errors raised by the delivery service."""

    http_status: int = 500

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(DeliveryError):
    """Missing or malformed request fields. Raised before any side effect."""

    http_status = 400


class OrderNotFoundError(DeliveryError):
    http_status = 404


class InvalidTransitionError(DeliveryError):
    """The order's current status does not allow the requested transition."""

    http_status = 409


class SourceFetchError(DeliveryError):
    """Catalog record absent or seed data malformed."""

    http_status = 500


class CacheInfrastructureError(DeliveryError):
    """The cache backing store failed for a reason other than key absence."""

    http_status = 500


class PublishError(DeliveryError):
    """
    The broker did not acknowledge a publish.

    The message may or may not have been written; callers must not assume
    either outcome.
    """

    http_status = 500


class ConsumerFatalError(DeliveryError):
    """The relay lost its source topic. Ends the relay session, not the process."""

    http_status = 500
