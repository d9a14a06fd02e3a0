import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Numeric, LargeBinary, JSON, DateTime, ForeignKey, UniqueConstraint,
)
from storefront.database import Base


def _new_id():
    return uuid.uuid4().hex


def _now():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(180))
    role = Column(String(20), nullable=False, default="user")   # user | admin
    password = Column(LargeBinary, nullable=False)              # PBKDF2 derived key
    salt = Column(LargeBinary, nullable=False)
    addresses = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=_now)

    def as_api(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "addresses": self.addresses or [],
        }


class Product(Base):
    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "price": float(self.price),
            "stock": self.stock,
        }


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "product_id"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(String(32), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    items = Column(JSON, nullable=False)          # [{product_id, title, price, quantity}]
    total_amount = Column(Numeric(10, 2), nullable=False)
    total_items = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    address = Column(JSON)
    status = Column(String(20), nullable=False, default="pending")          # pending | dispatched | delivered | cancelled
    payment_status = Column(String(20), nullable=False, default="pending")  # pending | paid | failed
    payment_intent_id = Column(String(255), index=True)
    paid_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_now)

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": self.items,
            "total_amount": float(self.total_amount),
            "total_items": self.total_items,
            "currency": self.currency,
            "address": self.address,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_intent_id": self.payment_intent_id,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
