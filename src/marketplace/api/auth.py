"""Bearer credential resolution.

Tokens are HS256 JWTs carrying ``sub`` (user id) and ``role``. Issuing
tokens belongs to the user service; ``issue_token`` exists for that service's
contract and for tests.
"""

from datetime import UTC, datetime, timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from marketplace.access.policy import Principal, Role
from marketplace.config import get_settings
from marketplace.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


def issue_token(user_id: str, role: str, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user_id), "role": role, "iat": now, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Principal:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Token is not valid") from exc

    user_id = claims.get("sub")
    try:
        role = Role(claims.get("role"))
    except ValueError as exc:
        raise AuthenticationError("Token carries an unknown role") from exc
    if not user_id:
        raise AuthenticationError("Token has no subject")
    return Principal(user_id=str(user_id), role=role)


async def get_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Resolve the caller; remembered on the request for error rendering."""
    if credentials is None:
        raise AuthenticationError("No token, authorization denied")
    principal = decode_token(credentials.credentials)
    request.state.principal = principal
    return principal
