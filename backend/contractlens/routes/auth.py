"""
Authentication boundary for ContractLens.

Users sign in with an external identity provider, which issues bearer JWTs
signed with the shared secret. This module only verifies those tokens and
exposes the caller's identity; the ``sub`` claim is the owning user id for
every document, analysis, annotation and conversation.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from contractlens.config import settings

# Configure logging
logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Identity carried by a verified access token."""
    id: str
    email: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Used by the identity provider integration and by tests.

    Args:
        data (dict): Claims to encode; ``sub`` must be the user id
        expires_delta (timedelta, optional): Token lifetime

    Returns:
        str: JWT token
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Resolve the calling user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.warning(f"Rejected access token: {e}")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    return CurrentUser(id=str(user_id), email=payload.get("email"))


@router.get("/me", response_model=CurrentUser)
async def read_users_me(current_user: CurrentUser = Depends(get_current_user)):
    """Return the identity of the caller."""
    return current_user
