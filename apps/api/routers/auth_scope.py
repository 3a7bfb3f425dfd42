"""Authentication dependencies for company scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.company import Company
from models.user import User
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    company_id: str
    email: Optional[str] = None


@dataclass
class CompanyScope:
    user: User
    company: Company

    @property
    def company_id(self) -> str:
        return self.company.id


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the user and company from the Bearer portal token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return AuthContext(user_id=claims.user_id, company_id=claims.company_id, email=claims.email)


async def get_company_scope(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> CompanyScope:
    """Load the user and the token's company; every query is scoped to that company."""
    result = await db.execute(
        select(User, Company)
        .join(Company, Company.id == User.company_id)
        .where(User.id == auth.user_id, Company.id == auth.company_id)
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=401, detail="User not found for this company.")
    user, company = row
    return CompanyScope(user=user, company=company)
