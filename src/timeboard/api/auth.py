"""JWT authentication for API endpoints.

Tokens are signed with the secret key stored in the configuration.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status  # type: ignore[import-untyped]
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # type: ignore[import-untyped]
from jose import JWTError, jwt  # type: ignore[import-untyped]

from timeboard.api.dependencies import get_config
from timeboard.api.models import TokenResponse
from timeboard.core.config import ConfigManager

security = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict[str, Any], secret_key: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed JWT access token.

    Example:
        >>> token = create_access_token({"sub": "cli-user"}, "secret", timedelta(hours=1))
    """
    to_encode = data.copy()
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (expires_delta or timedelta(hours=24))
    to_encode.update({"exp": expire, "iat": issued_at})

    encoded_jwt: str = jwt.encode(to_encode, secret_key, algorithm="HS256")
    return encoded_jwt


def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, Any]:
    """Verify the bearer token of a request.

    Returns:
        Decoded token payload (``{"sub": "anonymous"}`` when auth is disabled)

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    config = get_config(request)

    if not config.get("api.authentication.enabled", True):
        return {"sub": "anonymous"}

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    secret_key = config.get("api.authentication.secret_key")
    if not secret_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API secret key not configured",
        )

    try:
        payload: dict[str, Any] = jwt.decode(
            credentials.credentials, secret_key, algorithms=["HS256"]
        )
        return payload
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_token_expiry_seconds(config: ConfigManager) -> int:
    hours: int = config.get("api.authentication.token_expiry_hours", 24)
    return hours * 3600


def create_token_for_user(config: ConfigManager, user_id: str = "cli-user") -> dict[str, Any]:
    """Create a complete token response.

    Returns:
        Dictionary with access_token, token_type, and expires_in
    """
    secret_key = config.ensure_api_secret_key()
    expires_delta = timedelta(seconds=get_token_expiry_seconds(config))
    access_token = create_access_token(
        data={"sub": user_id}, secret_key=secret_key, expires_delta=expires_delta
    )

    return TokenResponse(
        access_token=access_token, expires_in=get_token_expiry_seconds(config)
    ).model_dump()
