"""
Authentication utilities for Supabase JWT verification.

The portal frontend signs in with Supabase and sends the JWT in the
Authorization header. This module verifies the JWT and extracts the portal
user (id, email, display name and portal role: admin, teacher or student).
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from typing import Optional
import requests
from docportal.core.config import settings

# Security schemes for Bearer token
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


class User:
    """User model extracted from JWT token."""
    def __init__(
        self,
        user_id: str,
        email: Optional[str] = None,
        role: Optional[str] = None,
        name: Optional[str] = None,
    ):
        self.id = user_id
        self.email = email
        self.role = role or "student"  # Least-privileged portal role
        self.name = name


# Cache for JWKS keys (to avoid fetching on every request)
_jwks_cache = None


def get_supabase_jwks():
    """
    Fetch Supabase's JSON Web Key Set (JWKS) for JWT verification.

    Returns:
        dict: JWKS containing public keys for token verification
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    if not settings.SUPABASE_URL:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured. Set SUPABASE_URL in .env.",
        )

    try:
        jwks_url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except requests.RequestException as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )


def verify_token(token: str) -> dict:
    """
    Verify Supabase JWT token and return decoded payload.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        jwks = get_supabase_jwks()
        # Supabase uses ES256 for newer projects and RS256 for older ones
        payload = jwt.decode(
            token,
            jwks,
            algorithms=["ES256", "RS256"],
            audience="authenticated",
            options={"verify_aud": True}
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_payload(payload: dict) -> User:
    """
    Build a User from a verified JWT payload.

    The portal role lives in app_metadata (set server-side), the display
    name in user_metadata. Supabase's own "role" claim is always
    "authenticated" and is ignored.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    app_metadata = payload.get("app_metadata") or {}
    user_metadata = payload.get("user_metadata") or {}
    return User(
        user_id=user_id,
        email=payload.get("email"),
        role=app_metadata.get("role"),
        name=user_metadata.get("name") or user_metadata.get("full_name"),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    FastAPI dependency to get current authenticated user from JWT token.

    Usage in route:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            return {"user_id": current_user.id, "role": current_user.role}
    """
    return user_from_payload(verify_token(credentials.credentials))


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None (public verification)."""
    if credentials is None:
        return None
    return user_from_payload(verify_token(credentials.credentials))


def require_roles(*roles: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.patch("/documents/{id}/status")
        def update_status(id: str, current_user: User = Depends(require_roles("admin"))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {' or '.join(roles)}",
            )
        return current_user
    return role_checker
