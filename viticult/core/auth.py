"""Authentication and authorization for the admin dashboard.

Implements bcrypt password hashing and JWT-based authentication. Tokens are
accepted from the ``Authorization: Bearer`` header or from the httpOnly
auth cookie set at login.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from viticult.core.config import settings
from viticult.core.logging import get_logger
from viticult.domain.admin import AdminPrincipal, TokenData
from viticult.infrastructure.mongo import get_database
from viticult.utils.dates import ensure_utc

logger = get_logger(__name__)

BCRYPT_ROUNDS = 10
ADMIN_ROLE = "admin"

# Header auth is optional because the cookie is an accepted alternative
security_optional = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password

    Returns:
        bcrypt hash as a string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a plain-text password against a bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Malformed password hash encountered")
        return False


def create_access_token(
    admin: AdminPrincipal,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token for an admin.

    Args:
        admin: Authenticated admin
        expires_delta: Token expiration time (default: 24 hours)

    Returns:
        Encoded JWT token

    Example:
        >>> token = create_access_token(AdminPrincipal(email="admin@viticult.co.uk"))
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": admin.email,
        "email": admin.email,
        "role": admin.role,
        "exp": expire,
        "iat": now,
    }

    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    logger.info(
        f"Access token created for admin {admin.email}",
        extra={"admin_email": admin.email}
    )

    return token


def decode_token(token: str) -> TokenData:
    """Decode and validate JWT token.

    Args:
        token: JWT token string

    Returns:
        TokenData with admin info

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

        return TokenData(
            sub=payload.get("sub") or payload.get("email") or "",
            email=payload.get("email") or payload.get("sub") or "",
            role=payload.get("role") or "",
            exp=datetime.fromtimestamp(payload.get("exp"), tz=timezone.utc),
            iat=payload.get("iat"),
        )

    except jwt.ExpiredSignatureError:
        logger.warning("Expired token attempted")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token attempted: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the auth cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name)


def password_changed_after(changed_at: Optional[datetime], issued_at: Optional[int]) -> bool:
    """True when the password was changed after the token was issued."""
    if changed_at is None or issued_at is None:
        return False
    return int(ensure_utc(changed_at).timestamp()) > issued_at


def get_current_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    db: Database = Depends(get_database),
) -> AdminPrincipal:
    """FastAPI dependency returning the authenticated admin.

    Raises:
        HTTPException: 401 for a missing/invalid/stale token, 403 for a
            token whose role is not admin

    Example:
        >>> @router.get("/protected")
        >>> def protected_route(admin: AdminPrincipal = Depends(get_current_admin)):
        ...     return {"email": admin.email}
    """
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")

    token_data = decode_token(token)

    if token_data.role != ADMIN_ROLE:
        logger.warning(
            f"Non-admin token rejected for {token_data.email}",
            extra={"admin_email": token_data.email}
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    admin = db["admins"].find_one({"email": token_data.email})
    if not admin or not admin.get("isActive", True):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin account not found or inactive"
        )

    if password_changed_after(admin.get("passwordChangedAt"), token_data.iat):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Password recently changed. Please log in again."
        )

    principal = AdminPrincipal(id=str(admin.get("_id")), email=admin["email"], role=ADMIN_ROLE)
    request.state.admin_email = principal.email
    return principal


def set_auth_cookie(response: Response, token: str) -> None:
    """Attach the JWT as an httpOnly cookie for browser sessions."""
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.auth_cookie_secure or settings.is_production,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(settings.auth_cookie_name)
