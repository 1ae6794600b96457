from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from storefront.database import get_db
from storefront import schemas, models, auth
from storefront.errors import ConflictError
from storefront.routers.auth import normalize_email
from storefront.utils.validators import supplied_email

router = APIRouter(prefix="/users")
logger = logging.getLogger(__name__)

@router.get("/profile", response_model=schemas.ProfileOut)
async def get_profile(current_user: models.User = Depends(auth.get_current_user)):
    """Возвращает профиль текущего пользователя."""
    return current_user

@router.put("/profile", response_model=schemas.ProfileUpdateOut)
async def update_profile(
    profile: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """Обновляет имя, email и пароль; пустые значения игнорируются."""
    email = supplied_email(profile.email)

    if profile.name is not None and profile.name.strip():
        current_user.name = profile.name.strip()

    if email is not None:
        email = normalize_email(email)
        if email != current_user.email:
            taken = db.query(models.User).filter(models.User.email == email).first()
            if taken:
                raise ConflictError("Email already in use")
            current_user.email = email

    if profile.password is not None and profile.password.strip():
        current_user.hashed_password = auth.get_password_hash(profile.password)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")
    db.refresh(current_user)

    logger.info(f"Profile of user {current_user.id} updated")
    return {
        "id": current_user.id,
        "name": current_user.name,
        "email": current_user.email,
        "role": current_user.role,
        "created_at": current_user.created_at,
        "token": auth.create_user_token(current_user),
    }
