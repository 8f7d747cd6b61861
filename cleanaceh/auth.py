import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, JWT_EXPIRES_MINUTES, JWT_SECRET
from .database import get_db
from .errors import Forbidden, Unauthorized
from .models import User, UserType

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Issue an HS256 token carrying the `userId` claim"""
    expires = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or JWT_EXPIRES_MINUTES)
    payload = {"userId": user_id, "exp": expires}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        logger.info("ℹ️ Expired token presented")
        raise Unauthorized("Token expired") from e
    except JWTError as e:
        logger.warning(f"⚠️ Invalid token: {str(e)}")
        raise Unauthorized("Invalid token") from e


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user"""
    if not credentials:
        raise Unauthorized("Access token required")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("userId")
    if not user_id:
        logger.error(f"❌ Token missing userId claim. Available claims: {list(payload.keys())}")
        raise Unauthorized("Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthorized("Invalid token")

    if user.status != "active":
        logger.warning(f"⚠️ Inactive user {user.id} attempted to authenticate")
        raise Unauthorized("Account is suspended or inactive")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


def require_role(*roles: UserType):
    """
    Dependency factory gating a route to the given user types.

    Usage:
        current_user: User = Depends(require_role(UserType.CUSTOMER))
    """

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.user_type not in roles:
            required = " or ".join(r.value for r in roles)
            raise Forbidden(f"Access denied. Required role: {required}")
        return user

    return checker


require_customer = require_role(UserType.CUSTOMER)
require_cleaner = require_role(UserType.CLEANER)
