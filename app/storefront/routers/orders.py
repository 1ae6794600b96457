from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from storefront.database import get_db
from storefront import schemas, models, auth, order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders")

@router.post("", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_in: schemas.OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    order, created = order_service.create_order(db, current_user, order_in, idempotency_key)
    if not created:
        response.status_code = status.HTTP_200_OK
    return order

@router.get("/myorders", response_model=List[schemas.OrderOut])
async def get_my_orders(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return order_service.list_orders_for_user(db, current_user)

@router.get("", response_model=List[schemas.OrderOut])
async def list_orders(
    db: Session = Depends(get_db),
    admin: models.User = Depends(auth.require_admin)
):
    """Все заказы, для администратора."""
    return order_service.list_all_orders(db)

@router.get("/{order_id}", response_model=schemas.OrderOut)
async def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return order_service.get_visible_order(db, order_id, current_user)

@router.put("/{order_id}/cancel", response_model=schemas.OrderOut)
async def cancel_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return order_service.cancel_order(db, order_id, current_user)

@router.put("/{order_id}/deliver", response_model=schemas.OrderOut)
async def deliver_order(
    order_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(auth.require_admin)
):
    return order_service.mark_delivered(db, order_id)
