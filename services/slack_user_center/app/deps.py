"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from .security import SessionIssuer
from .user_center import SlackUserCenter

bearer = HTTPBearer(auto_error=False)


def get_user_center(request: Request) -> SlackUserCenter:
    return request.app.state.user_center


def get_session_issuer(request: Request) -> SessionIssuer:
    return request.app.state.session_issuer


def require_admin(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> dict:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        payload = issuer.verify(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if "admin" not in set(payload.get("roles", [])):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return payload
