"""Checkout flow on the buyer's side of the payment provider.

The controller walks ``idle -> fetching_secret -> ready -> submitting`` and
ends in ``succeeded_local``, ``requires_action`` or ``failed`` (which drops
back to ``ready`` so the buyer can retry). Provider access is injected:

* ``fetch_secret(amount, order_id) -> client_secret`` talks to our
  ``/api/create-payment-intent`` endpoint (see ``fetch_client_secret``);
* ``confirm_payment(client_secret, return_url=..., redirect=...)`` returns a
  mapping shaped like the provider's client result, either
  ``{"error": {"type": ..., "message": ...}}`` or
  ``{"payment_intent": {"status": ...}}``.

``on_success`` is for buyer feedback only. Orders are marked paid by the
signed webhook, never by anything this controller reports.
"""
import logging
from enum import Enum
from typing import Callable, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "succeeded": "Payment succeeded!",
    "processing": "Your payment is processing.",
    "requires_payment_method": "Your payment was not successful, please try again.",
}
UNKNOWN_STATUS_MESSAGE = "Something went wrong."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."
REQUIRES_ACTION_MESSAGE = "Additional authentication is required to complete your payment."

# Error types whose message is meant for the buyer
BUYER_FACING_ERRORS = ("card_error", "validation_error")


class CheckoutState(str, Enum):
    IDLE = "idle"
    FETCHING_SECRET = "fetching_secret"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED_LOCAL = "succeeded_local"
    REQUIRES_ACTION = "requires_action"
    FAILED = "failed"


class CheckoutError(Exception):
    pass


def status_message(status: Optional[str]) -> str:
    return STATUS_MESSAGES.get(status, UNKNOWN_STATUS_MESSAGE)


def fetch_client_secret(api_url: str, amount, order_id: Optional[str] = None, timeout: float = 10) -> str:
    try:
        resp = requests.post(
            f"{api_url.rstrip('/')}/api/create-payment-intent",
            json={"totalAmount": amount, "orderId": order_id},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise CheckoutError(f"Error connecting to backend: {e}") from e

    if not resp.ok:
        try:
            detail = resp.json().get("error")
        except ValueError:
            detail = None
        raise CheckoutError(detail or "Server Error")
    return resp.json()["clientSecret"]


class CheckoutController:
    def __init__(
        self,
        fetch_secret: Callable[..., str],
        confirm_payment: Callable[..., Mapping],
        on_success: Callable[[Mapping], None],
        return_url: str,
        retrieve_status: Optional[Callable[[str], str]] = None,
    ):
        self.fetch_secret = fetch_secret
        self.confirm_payment = confirm_payment
        self.on_success = on_success
        self.return_url = return_url
        self.retrieve_status = retrieve_status

        self.state = CheckoutState.IDLE
        self.history = [CheckoutState.IDLE]
        self.client_secret: Optional[str] = None
        self.message: Optional[str] = None
        self._finalized = False

    def _move(self, state: CheckoutState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(self, message: str) -> CheckoutState:
        self.message = message
        self._move(CheckoutState.FAILED)
        self._move(CheckoutState.READY)
        return CheckoutState.FAILED

    def start(self, amount, order_id: Optional[str] = None) -> bool:
        """Fetch a client secret once a positive amount is known."""
        if self.state is not CheckoutState.IDLE:
            raise CheckoutError("checkout already started")
        try:
            positive = amount is not None and float(amount) > 0
        except (TypeError, ValueError):
            positive = False
        if not positive:
            return False

        self._move(CheckoutState.FETCHING_SECRET)
        try:
            self.client_secret = self.fetch_secret(amount, order_id)
        except CheckoutError as e:
            logger.error("could not fetch client secret: %s", e)
            self.message = str(e)
            self._move(CheckoutState.IDLE)
            return False

        self._move(CheckoutState.READY)
        return True

    def submit(self) -> CheckoutState:
        """Confirm the payment with the provider and return the outcome state."""
        if self.state is not CheckoutState.READY:
            raise CheckoutError(f"cannot submit from state {self.state.value}")

        self.message = None
        self._move(CheckoutState.SUBMITTING)
        try:
            result = self.confirm_payment(self.client_secret, return_url=self.return_url, redirect="if_required")
        except Exception:
            logger.exception("payment confirmation raised")
            return self._fail(UNEXPECTED_ERROR_MESSAGE)

        error = result.get("error")
        if error:
            if error.get("type") in BUYER_FACING_ERRORS:
                return self._fail(error.get("message") or UNEXPECTED_ERROR_MESSAGE)
            return self._fail(UNEXPECTED_ERROR_MESSAGE)

        intent = result.get("payment_intent") or {}
        status = intent.get("status")
        if status == "succeeded":
            self.message = status_message(status)
            self._move(CheckoutState.SUCCEEDED_LOCAL)
            if not self._finalized:
                self._finalized = True
                self.on_success(intent)
            return self.state
        if status == "requires_action":
            self.message = REQUIRES_ACTION_MESSAGE
            self._move(CheckoutState.REQUIRES_ACTION)
            return self.state
        if status == "processing":
            self.message = status_message(status)
            self._move(CheckoutState.REQUIRES_ACTION)
            return self.state
        return self._fail(status_message(status))

    def resume(self, query: Mapping[str, str]) -> Optional[str]:
        """Interpret the query string the provider appends after a forced redirect."""
        client_secret = query.get("payment_intent_client_secret")
        if not client_secret:
            return None
        if self.retrieve_status is not None:
            status = self.retrieve_status(client_secret)
        else:
            status = query.get("redirect_status")
        self.message = status_message(status)
        return self.message
