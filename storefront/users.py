from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.auth import Identity, require_user
from storefront.database import get_db
from storefront.models import User

# The gate is attached when the router is included
router = APIRouter(prefix="/api/users", tags=["users"])


class UpdateUserRequest(BaseModel):
    """Profile fields a user may edit. Email, role and password are not among them."""

    name: Optional[str] = Field(default=None, max_length=180)
    addresses: Optional[List[dict]] = None


@router.get("/own")
def own_profile(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return db.get(User, identity.id).as_api()


@router.patch("/own")
def update_own_profile(
    body: UpdateUserRequest,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    user = db.get(User, identity.id)
    for field, value in body.model_dump(exclude_none=True).items():
        setattr(user, field, value)
    db.commit()
    return user.as_api()
