"""Admin endpoints: directory sync, cached data, configuration and notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..config import UserCenterConfigUpdate
from ..deps import get_user_center, require_admin
from ..schemas import NotificationMessage, RespBody, UserPreference
from ..user_center import SlackUserCenter
from .login import error_response

router = APIRouter(prefix="/slack", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/sync", response_model=RespBody)
async def sync_now(user_center: SlackUserCenter = Depends(get_user_center)):
    if await user_center.directory_sync.sync(trigger="manual"):
        return RespBody(
            code=status.HTTP_200_OK,
            reason="success",
            data={"message": "User data synced successfully"},
        )
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Failed to sync user data",
        {"err_type": "toast"},
    )


@router.get("/sync/status", response_model=RespBody)
def sync_status(user_center: SlackUserCenter = Depends(get_user_center)) -> RespBody:
    report = user_center.directory_sync.report()
    return RespBody(code=status.HTTP_200_OK, reason="success", data=report.model_dump())


@router.get("/data", response_model=RespBody)
def directory_data(user_center: SlackUserCenter = Depends(get_user_center)):
    users = user_center.cached_users()
    if users is None:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "No user data available",
            {"message": "No user data available"},
        )
    return RespBody(
        code=status.HTTP_200_OK,
        reason="success",
        data={
            "users": [user.model_dump() for user in users],
            "workspace": user_center.settings.workspace(),
        },
    )


@router.get("/users/{external_id}", response_model=RespBody)
async def user_info(
    external_id: str,
    user_center: SlackUserCenter = Depends(get_user_center),
) -> RespBody:
    info = await user_center.user_info(external_id)
    return RespBody(code=status.HTTP_200_OK, reason="success", data=info.model_dump(mode="json"))


@router.put("/config", response_model=RespBody)
async def update_config(
    payload: UserCenterConfigUpdate,
    user_center: SlackUserCenter = Depends(get_user_center),
) -> RespBody:
    config = user_center.reconfigure(payload.to_config())
    return RespBody(
        code=status.HTTP_200_OK,
        reason="success",
        data=config.model_dump(exclude={"client_secret"}),
    )


@router.put("/users/{user_id}/preferences", response_model=RespBody)
def update_preferences(
    user_id: str,
    payload: UserPreference,
    user_center: SlackUserCenter = Depends(get_user_center),
) -> RespBody:
    user_center.preferences.set(user_id, payload)
    return RespBody(code=status.HTTP_200_OK, reason="success", data=payload.model_dump())


@router.post("/notifications", response_model=RespBody, status_code=status.HTTP_202_ACCEPTED)
async def notify(
    payload: NotificationMessage,
    user_center: SlackUserCenter = Depends(get_user_center),
) -> RespBody:
    delivered = await user_center.dispatcher.notify(payload)
    return RespBody(code=status.HTTP_202_ACCEPTED, reason="success", data={"delivered": delivered})
