from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.core.database import get_db
from backend.core.config import settings
from backend.models.profile import Profile
from backend.utils.logger import get_logger

logger = get_logger("backend.core.security")

# Tokens come from the external identity provider; this service only verifies them
bearer_scheme = HTTPBearer(auto_error=False)

credential_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

def decode_access_token(token: str) -> Optional[str]:
    """
    Decode a bearer token and return the user id stored in 'sub',
    or None if the token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        return None
    except JWTError as e:
        logger.warning("Token decode failed", extra={"error": str(e)})
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token has no subject")
        return None
    return str(user_id)

def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Dependency for routes that only need to know who is calling."""
    if credentials is None:
        raise credential_exception
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise credential_exception
    return user_id

async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Dependency for routes that need the caller's profile.
    Raises 401 when the token is valid but no profile exists yet.
    """
    result = await db.execute(select(Profile).filter(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        logger.warning("Authentication failed - profile not found", extra={"user_id": user_id})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Profile not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile
