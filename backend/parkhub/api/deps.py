"""
Caller capability, trusted from the auth gateway in front of this service.

The gateway verifies the token and forwards X-User-Id / X-User-Role; the core only asks
is_admin / is_user. Missing headers mean an anonymous caller.
"""
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Caller:
    user_id: str | None
    role: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_user(self) -> bool:
        return self.role == ROLE_USER and bool(self.user_id)


def get_caller(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
) -> Caller:
    return Caller(
        user_id=(x_user_id or "").strip() or None,
        role=(x_user_role or "").strip().lower() or None,
    )


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return caller


def require_user(caller: Caller = Depends(get_caller)) -> Caller:
    if not (caller.is_user or caller.is_admin):
        raise HTTPException(status_code=401, detail="User access required")
    return caller
