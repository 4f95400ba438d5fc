"""Unauthenticated endpoints driving the Slack OAuth login."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..deps import get_session_issuer, get_user_center
from ..errors import (
    EmailRequired,
    ExchangeFailed,
    MissingParameter,
    NotConfigured,
    UserUnavailable,
)
from ..schemas import RespBody
from ..security import SessionIssuer
from ..user_center import SlackUserCenter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack/login", tags=["login"])


def error_response(status_code: int, message: str, data: object = None) -> JSONResponse:
    body = RespBody(code=status_code, reason="error", msg=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/url", response_model=RespBody)
def login_url(user_center: SlackUserCenter = Depends(get_user_center)):
    try:
        redirect = user_center.handshake.initiate()
    except NotConfigured as exc:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    return RespBody(code=status.HTTP_200_OK, reason="success", data=redirect.model_dump())


@router.get("/callback", response_model=RespBody)
async def login_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    user_center: SlackUserCenter = Depends(get_user_center),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    """Handle Slack's redirect, or answer a poll when no ``code`` is present."""

    if code is None:
        login_status = user_center.handshake.poll(state)
        return RespBody(code=status.HTTP_200_OK, reason="success", data=login_status.model_dump())

    try:
        user = await user_center.handshake.complete(code, state)
    except EmailRequired as exc:
        return RedirectResponse(exc.redirect_url, status_code=status.HTTP_302_FOUND)
    except MissingParameter as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))
    except NotConfigured as exc:
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    except UserUnavailable as exc:
        return error_response(status.HTTP_403_FORBIDDEN, str(exc))
    except ExchangeFailed as exc:
        return error_response(status.HTTP_502_BAD_GATEWAY, str(exc))

    token = issuer.issue(user)
    user_center.after_login(user.external_id, token)
    return RespBody(code=status.HTTP_200_OK, reason="success", data=user.model_dump(mode="json"))
