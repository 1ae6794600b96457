"""Order placement, cancellation and delivery.

Stock changes are issued as single conditional UPDATE statements and committed
in the same transaction as the order row, so a request either applies every
stock change and the order together or none of them.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from storefront.utils.validators import parse_id, supplied_text

logger = logging.getLogger(__name__)

SHIPPING_FIELDS = ("full_name", "address", "city", "postal_code", "country")


def get_order(db: Session, order_id: str) -> models.Order:
    order_id = parse_id(order_id, "order")
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_visible_order(db: Session, order_id: str, user: models.User) -> models.Order:
    order = get_order(db, order_id)
    if order.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Not authorized to view this order.")
    return order


def list_orders_for_user(db: Session, user: models.User):
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user.id)
        .order_by(models.Order.created_at.desc())
        .all()
    )


def list_all_orders(db: Session):
    return db.query(models.Order).order_by(models.Order.created_at.desc()).all()


def _validate_submission(order_in: schemas.OrderCreate):
    if not order_in.order_items:
        raise InvalidRequestError("No order items")

    address = order_in.shipping_address
    for field in SHIPPING_FIELDS:
        if supplied_text(getattr(address, field)) is None:
            raise InvalidRequestError("Shipping address incomplete")


def _load_line_products(db: Session, order_in: schemas.OrderCreate):
    """Check every line item against current stock before anything is written."""
    requested = {}
    products = {}
    for item in order_in.order_items:
        product_id = parse_id(item.product, "product")
        if item.quantity <= 0:
            raise InvalidRequestError(f"Invalid quantity for {item.name or product_id}: {item.quantity}")

        product = products.get(product_id)
        if product is None:
            product = db.query(models.Product).filter(models.Product.id == product_id).first()
            if product is None:
                raise NotFoundError(f"Product not found: {item.name or product_id}")
            products[product_id] = product

        # The same product may appear on several lines
        requested[product_id] = requested.get(product_id, 0) + item.quantity
        if product.stock < requested[product_id]:
            raise InsufficientStockError(product.title, product.stock, requested[product_id])

    return products


def _decrement_stock(db: Session, product: models.Product, quantity: int):
    updated = (
        db.query(models.Product)
        .filter(models.Product.id == product.id, models.Product.stock >= quantity)
        .update({models.Product.stock: models.Product.stock - quantity}, synchronize_session=False)
    )
    if updated == 0:
        # Another order took the stock between the check and the write
        db.refresh(product)
        raise InsufficientStockError(product.title, product.stock, quantity)


def _restore_stock(db: Session, product_id: str, quantity: int) -> bool:
    updated = (
        db.query(models.Product)
        .filter(models.Product.id == product_id)
        .update({models.Product.stock: models.Product.stock + quantity}, synchronize_session=False)
    )
    return updated > 0


def _find_by_idempotency_key(db: Session, user: models.User, key: Optional[str]):
    if not key:
        return None
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user.id, models.Order.idempotency_key == key)
        .first()
    )


def clear_cart(db: Session, user: models.User):
    """Empty the caller's server-side cart. Failures are logged, never raised."""
    try:
        removed = db.query(models.CartItem).filter(models.CartItem.user_id == user.id).delete(synchronize_session=False)
        db.commit()
        if removed:
            logger.info(f"Cleared {removed} cart items for user {user.id}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to clear cart for user {user.id}: {str(e)}")


def create_order(
    db: Session,
    user: Optional[models.User],
    order_in: schemas.OrderCreate,
    idempotency_key: Optional[str] = None,
) -> Tuple[models.Order, bool]:
    """
    Place an order for ``user``.

    Returns ``(order, created)``; ``created`` is False when ``idempotency_key``
    matches an order this user already placed, in which case nothing is written.
    """
    if user is None:
        raise UnauthorizedError("Not authorized, please log in.")

    _validate_submission(order_in)

    existing = _find_by_idempotency_key(db, user, idempotency_key)
    if existing is not None:
        logger.info(f"Order {existing.id} replayed for idempotency key {idempotency_key}")
        return existing, False

    products = _load_line_products(db, order_in)

    now = models.utcnow()
    order = models.Order(
        user_id=user.id,
        payment_method=order_in.payment_method,
        shipping_price=order_in.shipping_price,
        tax_price=order_in.tax_price,
        ship_full_name=order_in.shipping_address.full_name.strip(),
        ship_address=order_in.shipping_address.address.strip(),
        ship_city=order_in.shipping_address.city.strip(),
        ship_postal_code=order_in.shipping_address.postal_code.strip(),
        ship_country=order_in.shipping_address.country.strip(),
        # Payment is simulated: every accepted order is paid on placement
        is_paid=True,
        paid_at=now,
        is_cancelled=False,
        idempotency_key=idempotency_key or None,
    )

    try:
        for item in order_in.order_items:
            product = products[parse_id(item.product, "product")]
            _decrement_stock(db, product, item.quantity)
            order.order_items.append(
                models.OrderItem(
                    product_id=product.id,
                    name=product.title,
                    quantity=item.quantity,
                    price=product.price,
                    image_url=product.image_url,
                )
            )

        items_price = sum(line.price * line.quantity for line in order.order_items)
        order.items_price = order_in.items_price if order_in.items_price is not None else round(items_price, 2)
        if order_in.total_price is not None:
            order.total_price = order_in.total_price
        else:
            order.total_price = round(order.items_price + order.shipping_price + order.tax_price, 2)

        db.add(order)
        db.commit()
    except InsufficientStockError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        # Two requests raced on the same idempotency key
        existing = _find_by_idempotency_key(db, user, idempotency_key)
        if existing is not None:
            return existing, False
        raise

    db.refresh(order)
    logger.info(f"Order {order.id} placed by user {user.id}: {len(order.order_items)} items, total {order.total_price}")

    clear_cart(db, user)
    return order, True


def cancel_order(db: Session, order_id: str, user: models.User) -> models.Order:
    order = get_order(db, order_id)

    if order.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Not authorized to cancel this order.")
    if order.is_delivered:
        raise InvalidStateError("Cannot cancel a delivered order.")
    if order.is_cancelled:
        raise InvalidStateError("Order is already cancelled.")

    now = models.utcnow()
    # Flip the flag first so a concurrent cancel cannot restore stock twice
    flipped = (
        db.query(models.Order)
        .filter(
            models.Order.id == order.id,
            models.Order.is_cancelled.is_(False),
            models.Order.is_delivered.is_(False),
        )
        .update(
            {models.Order.is_cancelled: True, models.Order.cancelled_at: now, models.Order.updated_at: now},
            synchronize_session=False,
        )
    )
    if flipped == 0:
        db.rollback()
        raise InvalidStateError("Order can no longer be cancelled.")

    for item in order.order_items:
        if not _restore_stock(db, item.product_id, item.quantity):
            logger.warning(
                f"Product with ID {item.product_id} not found during stock restoration for order {order.id}"
            )

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} cancelled by user {user.id}")
    return order


def mark_delivered(db: Session, order_id: str) -> models.Order:
    order = get_order(db, order_id)
    if order.is_cancelled:
        raise InvalidStateError("Cannot deliver a cancelled order.")
    if order.is_delivered:
        return order

    order.is_delivered = True
    order.delivered_at = models.utcnow()
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} marked as delivered")
    return order
