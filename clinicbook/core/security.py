import uuid
from typing import Literal
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from clinicbook.core.config import settings
from clinicbook.core.errors import Unauthenticated, Forbidden

Role = Literal["patient", "doctor", "staff", "admin"]

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    user_id: uuid.UUID
    role: Role

def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
    except JWTError as e:
        raise Unauthenticated(f"Token is invalid or expired: {e}")

def principal_from_token(token: str) -> Principal:
    data = _decode_token(token)
    raw_id = data.get("sub") or data.get("user_id")
    role = data.get("role") or data.get("user_type")
    if not raw_id or role not in ("patient", "doctor", "staff", "admin"):
        raise Unauthenticated("Token is missing user id or role")
    try:
        user_id = uuid.UUID(str(raw_id))
    except ValueError:
        raise Unauthenticated("Token carries a malformed user id")
    return Principal(user_id=user_id, role=role)

def principal_from_request(request: Request) -> Principal | None:
    """Best-effort actor lookup for middleware; never raises."""
    header = request.headers.get("authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    try:
        return principal_from_token(header.split(" ", 1)[1].strip())
    except Unauthenticated:
        return None

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    if creds is None:
        raise Unauthenticated("You are not logged in. Please log in to access this route.")
    return principal_from_token(creds.credentials)

def require_roles(*allowed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden("You do not have permission to perform this action.")
        return principal
    return dep
