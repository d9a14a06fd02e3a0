from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.auth import Identity, require_admin
from storefront.database import get_db
from storefront.models import Product

# Browsing is public; writes are admin only
router = APIRouter(prefix="/api/products", tags=["products"])


class CreateProductRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)


class UpdateProductRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0)


@router.get("")
def list_products(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    q = db.query(Product)
    response.headers["X-Total-Count"] = str(q.count())
    products = q.order_by(Product.title, Product.id).offset((page - 1) * limit).limit(limit).all()
    return [p.as_api() for p in products]


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product.as_api()


@router.post("", status_code=201)
def create_product(
    body: CreateProductRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = Product(title=body.title.strip(), price=body.price, stock=body.stock)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product.as_api()


@router.patch("/{product_id}")
def update_product(
    product_id: str,
    body: UpdateProductRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    # Existing orders keep their snapshot price
    for field, value in body.model_dump(exclude_none=True).items():
        setattr(product, field, value)
    db.commit()
    return product.as_api()
