from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from storefront.database import get_db
from storefront import schemas, models, auth
from storefront.errors import InvalidRequestError, NotFoundError
from storefront.utils.validators import parse_id

router = APIRouter(prefix="/cart")
logger = logging.getLogger(__name__)


def cart_items(db: Session, user: models.User):
    return (
        db.query(models.CartItem)
        .filter(models.CartItem.user_id == user.id)
        .order_by(models.CartItem.id)
        .all()
    )

@router.get("", response_model=schemas.CartOut)
async def get_cart(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return {"items": cart_items(db, current_user)}

@router.put("", response_model=schemas.CartOut)
async def replace_cart(
    cart: schemas.CartUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """Заменяет содержимое корзины пользователя целиком."""
    quantities = {}
    for item in cart.items:
        product_id = parse_id(item.product, "product")
        if product_id in quantities:
            raise InvalidRequestError(f"Duplicate cart entry for product {product_id}")
        exists = db.query(models.Product.id).filter(models.Product.id == product_id).first()
        if not exists:
            raise NotFoundError(f"Product not found: {product_id}")
        quantities[product_id] = item.quantity

    db.query(models.CartItem).filter(models.CartItem.user_id == current_user.id).delete(synchronize_session=False)
    for product_id, quantity in quantities.items():
        db.add(models.CartItem(user_id=current_user.id, product_id=product_id, quantity=quantity))
    db.commit()

    logger.info(f"Cart of user {current_user.id} now holds {len(quantities)} products")
    return {"items": cart_items(db, current_user)}
