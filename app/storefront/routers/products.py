from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from storefront.database import get_db
from storefront import schemas, models, auth
from storefront.config import settings
from storefront.errors import InternalError, NotFoundError, UnauthorizedError
from storefront.utils import storage
from storefront.utils.validators import parse_id, require_text, supplied_text

router = APIRouter(prefix="/products")
logger = logging.getLogger(__name__)


def get_product_or_404(db: Session, product_id: str) -> models.Product:
    product_id = parse_id(product_id, "product")
    db_product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if db_product is None:
        raise NotFoundError("Product not found")
    return db_product

@router.post("", response_model=schemas.ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    title: str = Form(...),
    description: str = Form(...),
    price: float = Form(..., ge=0),
    category: str = Form(...),
    stock: int = Form(..., ge=0),
    discount: float = Form(0, ge=0, le=100),
    product_image: Optional[UploadFile] = File(None, alias="productImage"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    title = require_text(title, "Title")
    description = require_text(description, "Description")
    category = require_text(category, "Category")

    image_url = storage.save_image(product_image) or settings.PLACEHOLDER_IMAGE

    db_product = models.Product(
        user_id=current_user.id,
        title=title,
        description=description,
        price=price,
        stock=stock,
        discount=discount,
        category=category,
        image_url=image_url,
        created_by_name=current_user.name,
        created_by_email=current_user.email,
    )

    db.add(db_product)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Product creation failed: {str(e)}")
        # Не оставляем на диске файл без записи в БД
        storage.remove_image(image_url)
        raise InternalError("Failed to create product")
    db.refresh(db_product)

    logger.info(f"Product {db_product.id} created by user {current_user.id}")
    return db_product

@router.get("/{product_id}", response_model=schemas.ProductOut)
async def get_product(product_id: str, db: Session = Depends(get_db)):
    return get_product_or_404(db, product_id)

@router.get("", response_model=List[schemas.ProductOut])
async def list_products(
    my_products: bool = Query(False, alias="myProducts"),
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(auth.oauth2_scheme)
):
    query = db.query(models.Product)

    # The plain listing is public; a token is only looked at for myProducts
    if my_products:
        if not token:
            raise UnauthorizedError("Not authorized, please log in to view your products.")
        current_user = auth.resolve_token(token, db)
        query = query.filter(models.Product.user_id == current_user.id)

    return query.order_by(models.Product.created_at.desc()).all()

@router.put("/{product_id}", response_model=schemas.ProductOut)
async def update_product(
    product_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None, ge=0),
    category: Optional[str] = Form(None),
    stock: Optional[int] = Form(None, ge=0),
    discount: Optional[float] = Form(None, ge=0, le=100),
    product_image: Optional[UploadFile] = File(None, alias="productImage"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    db_product = get_product_or_404(db, product_id)
    auth.ensure_owner_or_admin(current_user, db_product.user_id, "Not authorized to update this product.")

    # The upload is only written once the caller is known to own the product
    new_image_url = storage.save_image(product_image)
    old_image_url = db_product.image_url

    # Blank text keeps the stored value; numbers are replaced whenever sent, zero included
    db_product.title = supplied_text(title) or db_product.title
    db_product.description = supplied_text(description) or db_product.description
    db_product.category = supplied_text(category) or db_product.category
    if price is not None:
        db_product.price = price
    if stock is not None:
        db_product.stock = stock
    if discount is not None:
        db_product.discount = discount
    if new_image_url:
        db_product.image_url = new_image_url

    db_product.created_by_name = current_user.name
    db_product.created_by_email = current_user.email

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Product update failed for {db_product.id}: {str(e)}")
        storage.remove_image(new_image_url)
        raise InternalError("Failed to update product")
    db.refresh(db_product)

    if new_image_url and old_image_url != new_image_url:
        storage.remove_image(old_image_url)

    logger.info(f"Product {db_product.id} updated by user {current_user.id}")
    return db_product

@router.delete("/{product_id}", response_model=schemas.MessageOut)
async def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    db_product = get_product_or_404(db, product_id)
    auth.ensure_owner_or_admin(current_user, db_product.user_id, "Not authorized to delete this product.")

    deleted_id = db_product.id
    image_url = db_product.image_url

    db.query(models.CartItem).filter(models.CartItem.product_id == deleted_id).delete(synchronize_session=False)
    db.delete(db_product)
    db.commit()
    storage.remove_image(image_url)

    logger.info(f"Product {deleted_id} deleted by user {current_user.id}")
    return {"message": "Product removed"}
