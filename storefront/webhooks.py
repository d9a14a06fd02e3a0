"""Provider webhook events: the only path that marks an order paid."""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.models import Order
from storefront.payments import to_minor_units

logger = logging.getLogger(__name__)

SUCCEEDED = "payment_intent.succeeded"
FAILED = "payment_intent.payment_failed"


def _order_for(db: Session, intent: dict):
    order_id = (intent.get("metadata") or {}).get("orderId")
    if not order_id:
        return None
    return db.get(Order, order_id)


def mark_paid(db: Session, intent: dict) -> str:
    order = _order_for(db, intent)
    if order is None:
        logger.warning("webhook: no order for intent %s", intent.get("id"))
        return "unknown_order"
    if order.payment_status == "paid":
        return "already_paid"

    received = intent.get("amount_received", intent.get("amount"))
    expected = to_minor_units(order.total_amount)
    currency = (intent.get("currency") or "").lower()
    if received != expected or currency != order.currency:
        logger.warning(
            "webhook: amount mismatch order=%s intent=%s expected=%s %s got=%s %s",
            order.id, intent.get("id"), expected, order.currency, received, currency,
        )
        return "amount_mismatch"

    order.payment_status = "paid"
    order.payment_intent_id = intent.get("id")
    order.paid_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("webhook: order %s paid by intent %s", order.id, order.payment_intent_id)
    return "paid"


def mark_failed(db: Session, intent: dict) -> str:
    order = _order_for(db, intent)
    if order is None:
        return "unknown_order"
    if order.payment_status == "paid":
        return "already_paid"
    order.payment_status = "failed"
    order.payment_intent_id = intent.get("id")
    db.commit()
    return "failed"


HANDLERS = {
    SUCCEEDED: mark_paid,
    FAILED: mark_failed,
}


def handle_event(db: Session, event) -> str:
    handler = HANDLERS.get(event["type"])
    if handler is None:
        return "ignored"
    return handler(db, event["data"]["object"])
