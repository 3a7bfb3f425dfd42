"""Company-scoped bearer tokens.

A token names the user and the company it was issued for. Portal requests are
scoped to that company, and a token whose user has since moved to another
company no longer authorises anything.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from config import settings


SESSION_TOKEN_TYPE = "agd_portal"


class SessionClaims(BaseModel):
    user_id: str = Field(alias="sub", min_length=1)
    company_id: str = Field(alias="cid", min_length=1)
    token_type: str = Field(alias="typ")
    email: Optional[str] = None
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")


class IssuedToken(BaseModel):
    token: str
    expires_at: int


def create_session_token(
    user_id: str,
    company_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> dict:
    """Mint a portal token. Issuance belongs to the auth service; used by tests and tooling."""
    now = datetime.now(timezone.utc)
    ttl_hours = max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1)
    expires_at = int((now + timedelta(hours=ttl_hours)).timestamp())
    claims = {
        "sub": user_id,
        "cid": company_id,
        "typ": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": expires_at,
    }
    if email:
        claims["email"] = email

    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return IssuedToken(token=token, expires_at=expires_at).model_dump()


def decode_session_token(token: str) -> SessionClaims:
    """Verify the signature and expiry, then require a portal token with user and company."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        claims = SessionClaims.model_validate(payload)
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc
    except ValidationError as exc:
        raise ValueError("Session token is missing user or company scope.") from exc

    if claims.token_type != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")
    return claims
