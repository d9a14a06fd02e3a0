import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.auth import Identity, require_admin, require_user
from storefront.cart import cart_items, clear_cart
from storefront.database import get_db
from storefront.models import Order, Product

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])

ORDER_STATUSES = {"pending", "dispatched", "delivered", "cancelled"}


class CreateOrderRequest(BaseModel):
    address: Optional[dict] = None


class UpdateOrderRequest(BaseModel):
    status: str


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@router.post("", status_code=201)
def create_order(
    body: CreateOrderRequest,
    request: Request,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Snapshot the caller's cart into a pending order and empty the cart.

    The order stays unpaid until the provider webhook confirms the payment.
    Emptying the cart in the same transaction means one cart yields at most
    one order.
    """
    items = cart_items(db, identity.id)
    if not items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    lines, total = [], Decimal("0")
    for item in items:
        product = db.get(Product, item.product_id)
        if product is None:
            raise HTTPException(status_code=409, detail=f"Product {item.product_id} is no longer available")
        price = Decimal(product.price)
        lines.append({
            "product_id": product.id,
            "title": product.title,
            "price": float(price),
            "quantity": item.quantity,
        })
        total += price * item.quantity

    order = Order(
        user_id=identity.id,
        items=lines,
        total_amount=_money(total),
        total_items=sum(line["quantity"] for line in lines),
        currency=request.app.state.settings.currency,
        address=body.address,
    )
    db.add(order)
    clear_cart(db, identity.id)
    db.commit()
    db.refresh(order)
    logger.info("order created id=%s user=%s total=%s", order.id, identity.id, order.total_amount)
    return order.as_api()


@router.get("/own")
def own_orders(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    orders = db.query(Order).filter_by(user_id=identity.id).order_by(Order.created_at.desc()).all()
    return [o.as_api() for o in orders]


@router.get("")
def all_orders(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(Order)
    response.headers["X-Total-Count"] = str(q.count())
    orders = q.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return [o.as_api() for o in orders]


@router.get("/{order_id}")
def get_order(order_id: str, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    # Other users' orders are indistinguishable from missing ones
    if order is None or (order.user_id != identity.id and not identity.is_admin):
        raise HTTPException(status_code=404, detail="Order not found")
    return order.as_api()


@router.patch("/{order_id}")
def update_order(
    order_id: str,
    body: UpdateOrderRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if body.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    order = db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    order.status = body.status
    db.commit()
    return order.as_api()
