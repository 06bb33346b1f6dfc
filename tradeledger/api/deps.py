from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from tradeledger.core.config import settings
from tradeledger.core.security import decode_token
from tradeledger.db.database import get_db
from tradeledger.services.reconciliation import ReconciliationService
from tradeledger.services.repository import SqlAlchemyTransactionStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

ROLE_PERMISSIONS: dict[str, set[str]] = {
    "owner": {"ledger:view", "reports:view"},
    "accountant": {"ledger:view", "reports:view"},
    "clerk": {"ledger:view"},
}


@dataclass(frozen=True)
class Principal:
    subject: str
    role: str


ANONYMOUS = Principal(subject="anonymous", role="owner")


def get_current_principal(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> Principal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    def _clean_candidate(value: str | None) -> str | None:
        if not value:
            return None
        cleaned = value.strip().strip("\"'").strip()
        # Normalize accidental duplicated prefixes like: "Bearer Bearer <jwt>"
        while cleaned.lower().startswith("bearer "):
            cleaned = cleaned[7:].strip().strip("\"'").strip()
        return cleaned or None

    raw_token = _clean_candidate(token) or _clean_candidate(request.headers.get("x-access-token"))
    if not raw_token:
        raise credentials_exception

    try:
        payload = decode_token(raw_token)
    except JWTError:
        raise credentials_exception

    subject = payload.get("sub")
    role = payload.get("role")
    if subject is None or role is None or payload.get("type") != "access":
        raise credentials_exception
    return Principal(subject=str(subject), role=str(role))


def require_permission(permission: str):
    def checker(request: Request, token: str | None = Depends(oauth2_scheme)) -> Principal:
        if not settings.auth_enabled:
            return ANONYMOUS
        principal = get_current_principal(request, token)
        permissions = ROLE_PERMISSIONS.get(principal.role, set())
        if permission not in permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission}",
            )
        return principal

    return checker


def get_service(db: Session = Depends(get_db)) -> ReconciliationService:
    return ReconciliationService(SqlAlchemyTransactionStore(db))
