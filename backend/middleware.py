from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header, HTTPException, Request, status

from .config import Settings
from .security import AuthError, decode_access_token


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str
    username: str
    class_name: Optional[str] = None

    @property
    def object_id(self) -> ObjectId:
        return ObjectId(self.id)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def parse_object_id(value: str, label: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")


def _parse_token(auth_header: Optional[str]) -> str:
    if not auth_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth scheme")
    return parts[1].strip()


def get_current_user(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    token = _parse_token(authorization)
    try:
        payload = decode_access_token(settings, token)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if not ObjectId.is_valid(payload["sub"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return CurrentUser(
        id=payload["sub"],
        role=payload["role"],
        username=payload.get("username", ""),
        class_name=payload.get("class"),
    )


def require_roles(*allowed_roles: str) -> Callable:
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied: insufficient role")
        return current_user

    return dependency
