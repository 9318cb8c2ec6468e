"""Domain exceptions for payment intake and reconciliation."""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from fundraiser.services.providers import MappedResult


class PaymentServiceError(Exception):
    """Base error; carries the HTTP status the API layer should answer with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PaymentServiceError):
    status_code = 400


class UnsupportedMethodError(ValidationError):
    def __init__(self, method: Any):
        super().__init__(f"Unsupported payment method: {method}")
        self.method = method


class AuthorizationError(PaymentServiceError):
    status_code = 401


class NotFoundError(PaymentServiceError):
    status_code = 404


class ProviderConfigError(PaymentServiceError):
    """Provider settings missing or malformed at startup."""


class ProviderError(PaymentServiceError):
    """Network or provider-side failure during a charge.

    ``mapped`` is the best-effort classification of whatever the provider sent
    back (``failed`` when nothing usable came back), ``payload`` is the request
    that was attempted and ``provider_body`` is the raw error body, if any.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        mapped: Optional["MappedResult"] = None,
        payload: Optional[dict] = None,
        provider_body: Any = None,
    ):
        super().__init__(message)
        self.mapped = mapped
        self.payload = payload
        self.provider_body = provider_body


class ProviderNotConfiguredError(ProviderError):
    status_code = 501


class CreditError(PaymentServiceError):
    """Charity increment failed after a successful charge. Never fatal to the charge."""

    def __init__(self, message: str, charity_id: Optional[int] = None, payment_id: Optional[int] = None):
        super().__init__(message)
        self.charity_id = charity_id
        self.payment_id = payment_id

