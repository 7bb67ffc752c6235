"""
Authentication utilities - JWT token issuing and verification.

Account management lives outside this service; tokens arrive already issued
and are only verified here. ``create_access_token`` exists for development
and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError

from ..config import settings
from ..core.exceptions import AuthenticationError, TokenExpiredError
from ..models import AuthenticatedUser, TokenData

# Bearer token security
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` carries the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iss": settings.token_issuer,
        "aud": settings.token_audience,
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> TokenData:
    """
    Decode and verify a JWT access token (signature, expiry, issuer, audience).

    Raises:
        TokenExpiredError: The token is past its expiry
        AuthenticationError: The token is invalid or carries no user id
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            audience=settings.token_audience,
            issuer=settings.token_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise AuthenticationError("Invalid token")

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise AuthenticationError("Token carries no user id")

    return TokenData(user_id=str(user_id), email=payload.get("email"))


def verify_access_token(token: Optional[str]) -> AuthenticatedUser:
    """Verify a bearer token and return the identity it carries."""
    if not token:
        raise AuthenticationError("Authentication token required")

    token_data = decode_access_token(token)
    try:
        return AuthenticatedUser(user_id=token_data.user_id, email=token_data.email)
    except ValidationError:
        raise AuthenticationError("Invalid token")


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header value."""
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthenticatedUser:
    """
    Dependency to get the current user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    try:
        return verify_access_token(credentials.credentials if credentials else None)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_id(user: AuthenticatedUser = Depends(get_current_user)) -> str:
    """Dependency to get current user ID from JWT token."""
    return user.user_id
