from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from storefront.database import get_db
from storefront import schemas, models, auth
from storefront.config import settings
from storefront.errors import ConflictError, InvalidCredentialsError, InvalidRequestError

router = APIRouter(prefix="/auth")
logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()

def auth_response(user: models.User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "token": auth.create_user_token(user),
    }

def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == normalize_email(email)).first()
    # Same error for unknown email and wrong password
    if user is None or not auth.verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    return user


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
@auth.limiter.limit(settings.RATE_LIMIT_AUTH)
async def register(
    request: Request,
    user_in: schemas.UserRegister,
    db: Session = Depends(get_db)
):
    name = user_in.name.strip()
    if not name or not user_in.password.strip():
        raise InvalidRequestError("Name, email and password are required")

    email = normalize_email(user_in.email)
    if db.query(models.User).filter(models.User.email == email).first():
        raise ConflictError("User already exists")

    db_user = models.User(
        name=name,
        email=email,
        hashed_password=auth.get_password_hash(user_in.password),
        role=models.ROLE_CUSTOMER,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User already exists")
    db.refresh(db_user)

    logger.info(f"Registered user {db_user.id} ({db_user.email})")
    return auth_response(db_user)

@router.post("/login", response_model=schemas.AuthResponse)
@auth.limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    credentials: schemas.UserLogin,
    db: Session = Depends(get_db)
):
    try:
        user = authenticate(db, credentials.email, credentials.password)
    except InvalidCredentialsError:
        logger.warning(f"Failed login attempt for {credentials.email}")
        raise
    logger.info(f"User {user.id} logged in")
    return auth_response(user)

@router.post("/token", response_model=schemas.Token)
@auth.limiter.limit(settings.RATE_LIMIT_AUTH)
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """OAuth2 password flow for the interactive docs; ``username`` is the email."""
    user = authenticate(db, form_data.username, form_data.password)
    return {"access_token": auth.create_user_token(user), "token_type": "bearer"}

@router.get("/me", response_model=schemas.UserOut)
async def read_me(current_user: models.User = Depends(auth.get_current_user)):
    return current_user
