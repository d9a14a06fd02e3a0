import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

import stripe

from storefront.errors import InvalidAmountError, ProviderError

logger = logging.getLogger(__name__)

INVALID_AMOUNT = "Invalid amount received"

_ERROR_KINDS = (
    (stripe.CardError, "card_error"),
    (stripe.RateLimitError, "rate_limit_error"),
    (stripe.InvalidRequestError, "invalid_request_error"),
    (stripe.APIConnectionError, "api_connection_error"),
    (stripe.AuthenticationError, "authentication_error"),
)


def configure(api_key: str) -> None:
    stripe.api_key = api_key


def to_minor_units(amount) -> int:
    """Convert a decimal amount to whole cents, rounding half up (19.999 -> 2000)."""
    if amount is None or isinstance(amount, bool):
        raise InvalidAmountError(INVALID_AMOUNT)
    try:
        cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)
    except (InvalidOperation, ValueError, OverflowError):
        raise InvalidAmountError(INVALID_AMOUNT)


def error_kind(err: stripe.StripeError) -> str:
    for cls, kind in _ERROR_KINDS:
        if isinstance(err, cls):
            return kind
    return "api_error"


def create_intent(amount, order_ref: Optional[str] = None, currency: str = "usd") -> str:
    """Create a PaymentIntent for ``amount`` and return only its client secret.

    Amounts that round to zero or less never reach the provider. Provider
    failures surface as ``ProviderError`` and are not retried here.
    """
    cents = to_minor_units(amount)
    if cents <= 0:
        raise InvalidAmountError(INVALID_AMOUNT)

    metadata = {"orderId": str(order_ref)} if order_ref else {}
    try:
        intent = stripe.PaymentIntent.create(
            amount=cents,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
        )
    except stripe.StripeError as err:
        kind = error_kind(err)
        logger.warning(
            "stripe diagnostics: kind=%s code=%s status=%s message=%s",
            kind, getattr(err, "code", None), getattr(err, "http_status", None), err.user_message or str(err),
        )
        raise ProviderError(str(err) or kind, kind=kind) from err

    logger.info("payment intent created amount=%s currency=%s order=%s", cents, currency, order_ref)
    return intent.client_secret
