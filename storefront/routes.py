from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from storefront.checkout import status_message
from storefront.payments import create_intent

router = APIRouter(prefix="/api", tags=["payments"])


class PaymentIntentRequest(BaseModel):
    totalAmount: Any = None
    orderId: Optional[str] = None


@router.post("/create-payment-intent")
def create_payment_intent(body: PaymentIntentRequest, request: Request):
    client_secret = create_intent(
        body.totalAmount,
        body.orderId,
        currency=request.app.state.settings.currency,
    )
    return {"clientSecret": client_secret}


@router.get("/order-success")
def order_success(redirect_status: Optional[str] = None, payment_intent: Optional[str] = None):
    # Display only; the order itself is finalized by the webhook
    return {
        "payment_intent": payment_intent,
        "status": redirect_status,
        "message": status_message(redirect_status),
    }
