"""
Server-side authorization.

Every handler declares the capability it needs with `Depends(require(...))`.
The caller's token is verified against the identity provider on each request
and the role is taken from the verified claim; the informational `user_role`
cookie set at login is never trusted.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request

from identity import IdentityProvider, get_identity
from errors import InvalidCredentialsError
from schemas import UserIdentity

TOKEN_COOKIE = "auth_token"
ROLE_COOKIE = "user_role"

CAPABILITIES = {
    "accounts:create": {"admin"},
    "roles:manage": {"admin"},
    "roles:check": {"admin", "expert", "family"},
    "directory:read": {"admin"},
    "assignments:write": {"admin"},
    "children:write": {"admin"},
    "children:read": {"admin", "expert"},
    "expert-profile:write": {"admin", "expert"},
    "family-profile:write": {"admin", "family"},
    "family:read": {"admin", "expert", "family"},
    "expert-families:read": {"admin", "expert"},
    "media:write": {"admin", "expert"},
    "reports:write": {"expert"},
    "reports:read": {"admin", "expert", "family"},
    "reports:review": {"family"},
    "reports:manage": {"admin"},
    "maintenance:run": {"admin"},
}


def extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(TOKEN_COOKIE)


def get_current_user(request: Request, identity: IdentityProvider = Depends(get_identity)) -> UserIdentity:
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return identity.verify_token(token)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=401, detail=e.message)


def require(capability: str):
    allowed = CAPABILITIES[capability]

    def dependency(user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Unauthorized access")
        return user

    return dependency


def ensure_self_or_admin(user: UserIdentity, uid: str) -> None:
    if user.role != "admin" and user.uid != uid:
        raise HTTPException(status_code=403, detail="Unauthorized access")
