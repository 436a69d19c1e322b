import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError

from .models import TokenClaims

ALGO = "HS256"

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


def make_password_context(schemes) -> CryptContext:
    return CryptContext(schemes=list(schemes), deprecated="auto")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def issue_token(
    user_id: int,
    is_admin: bool,
    *,
    secret: str,
    expires_hours: int = 24,
    now: Optional[datetime] = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    to_encode = {
        "user_id": user_id,
        "is_admin": bool(is_admin),
        "iat": issued,
        "exp": issued + timedelta(hours=expires_hours),
    }
    return jwt.encode(to_encode, secret, algorithm=ALGO)


def validate_token(token: str, *, secret: str) -> TokenClaims:
    """Check signature and expiry and return the identity the token carries.

    Raises a 401 ``HTTPException`` with ``Token expired`` or ``Invalid token``.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGO])
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized("Invalid token")

    user_id = payload.get("user_id")
    exp = payload.get("exp")
    if user_id is None or exp is None:
        raise _unauthorized("Invalid token")

    try:
        return TokenClaims(
            user_id=user_id,
            is_admin=bool(payload.get("is_admin", False)),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
    except (ValidationError, TypeError, ValueError):
        raise _unauthorized("Invalid token")


async def get_claims(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> TokenClaims:
    # Older clients send the raw token without the "Bearer" prefix.
    if not token:
        token = request.headers.get("Authorization", "").strip()

    if not token:
        logger.debug("Rejected request without token", extra={"path": request.url.path})
        raise _unauthorized("Unauthorized")

    try:
        return validate_token(token, secret=request.app.state.settings.JWT_SECRET)
    except HTTPException as exc:
        logger.debug("Rejected token: %s", exc.detail, extra={"path": request.url.path})
        raise


async def require_admin(claims: TokenClaims = Depends(get_claims)) -> TokenClaims:
    if not claims.is_admin:
        raise HTTPException(status_code=403, detail="Permission denied")
    return claims
