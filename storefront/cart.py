from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.auth import Identity, require_user
from storefront.database import get_db
from storefront.models import CartItem, Product

# The gate is attached when the router is included
router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class UpdateItemRequest(BaseModel):
    quantity: int = Field(ge=0)


def cart_items(db: Session, user_id: str):
    return db.query(CartItem).filter_by(user_id=user_id).order_by(CartItem.id).all()


def clear_cart(db: Session, user_id: str) -> int:
    return db.query(CartItem).filter_by(user_id=user_id).delete()


def _serialize(db: Session, items):
    out = []
    for item in items:
        product = db.get(Product, item.product_id)
        out.append({
            "product_id": item.product_id,
            "title": product.title if product else None,
            "price": float(product.price) if product else None,
            "quantity": item.quantity,
        })
    return out


@router.get("")
def get_cart(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return _serialize(db, cart_items(db, identity.id))


@router.post("", status_code=201)
def add_item(
    body: AddItemRequest,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    if db.get(Product, body.product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")

    item = db.query(CartItem).filter_by(user_id=identity.id, product_id=body.product_id).first()
    if item:
        item.quantity += body.quantity
    else:
        db.add(CartItem(user_id=identity.id, product_id=body.product_id, quantity=body.quantity))
    db.commit()
    return _serialize(db, cart_items(db, identity.id))


@router.patch("/{product_id}")
def update_item(
    product_id: str,
    body: UpdateItemRequest,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    item = db.query(CartItem).filter_by(user_id=identity.id, product_id=product_id).first()
    if item is None:
        raise HTTPException(status_code=404, detail="Item not in cart")

    if body.quantity == 0:
        db.delete(item)
    else:
        item.quantity = body.quantity
    db.commit()
    return _serialize(db, cart_items(db, identity.id))


@router.delete("/{product_id}")
def remove_item(product_id: str, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    deleted = db.query(CartItem).filter_by(user_id=identity.id, product_id=product_id).delete()
    if not deleted:
        raise HTTPException(status_code=404, detail="Item not in cart")
    db.commit()
    return _serialize(db, cart_items(db, identity.id))
