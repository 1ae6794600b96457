from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session
from typing import Optional
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import logging

from storefront.database import get_db
from storefront import models
from storefront.config import settings
from storefront.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

# JWT constants come from settings
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/token", auto_error=False)

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def create_user_token(user: models.User):
    return create_access_token(data={"sub": user.id})

def resolve_token(token: str, db: Session) -> models.User:
    """Verify a bearer token and load the user it was issued to.

    The user is re-read on every call, so deleted accounts stop authenticating
    immediately even though their tokens are still within the expiry window.
    """
    invalid = UnauthorizedError("Token invalid or expired")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise invalid

    user_id = payload.get("sub")
    if user_id is None:
        raise invalid

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise invalid
    return user

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    if not token:
        raise UnauthorizedError("Not authorized, no token")
    return resolve_token(token, db)

async def require_admin(current_user: models.User = Depends(get_current_user)):
    if not current_user.is_admin:
        raise ForbiddenError("Not authorized. Admin access required.")
    return current_user

def ensure_owner_or_admin(user: models.User, owner_id: str, message: str):
    if user.id != owner_id and not user.is_admin:
        raise ForbiddenError(message)

def setup_limiter(app):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    if settings.RATE_LIMIT_ENABLED:
        logger.info(f"Rate limiting configured: {settings.RATE_LIMIT_AUTH} on auth endpoints")
    else:
        logger.warning("Rate limiting disabled by configuration")
    return limiter
