"""Pydantic models for the Slack user center."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UserStatus(str, Enum):
    """Canonical account status reported to the host."""

    available = "available"
    suspended = "suspended"
    deleted = "deleted"


class ExternalIdentity(BaseModel):
    """The ``authed_user`` returned by the OAuth code exchange."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    name: str = ""
    email: str = ""
    avatar: str = Field("", alias="image_192")
    is_available: bool = True


class DirectoryUser(BaseModel):
    """A member record from ``users.info`` or ``users.list``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    deleted: bool = False
    is_active: bool = True
    email: str = ""

    @model_validator(mode="before")
    @classmethod
    def _lift_profile_email(cls, data: Any) -> Any:
        if isinstance(data, dict) and "email" not in data:
            profile = data.get("profile") or {}
            if isinstance(profile, dict) and profile.get("email"):
                data = {**data, "email": profile["email"]}
        return data


def identity_status(identity: ExternalIdentity) -> UserStatus:
    """Status implied by an OAuth identity."""

    if not identity.is_available:
        return UserStatus.suspended
    return UserStatus.available


def directory_status(user: DirectoryUser) -> UserStatus:
    """Status implied by a directory record; deletion wins over activity."""

    if user.deleted:
        return UserStatus.deleted
    if not user.is_active:
        return UserStatus.suspended
    return UserStatus.available


class UserCenterBasicUserInfo(BaseModel):
    """The host's view of a Slack backed account."""

    external_id: str
    username: str = ""
    display_name: str = ""
    email: str = ""
    avatar: str = ""
    bio: str = ""
    rank: int = 0
    status: UserStatus = UserStatus.available

    @classmethod
    def from_identity(cls, identity: ExternalIdentity) -> "UserCenterBasicUserInfo":
        return cls(
            external_id=identity.id,
            username=identity.id,
            display_name=identity.name,
            email=identity.email,
            avatar=identity.avatar,
            status=identity_status(identity),
        )

    @classmethod
    def from_directory(cls, user: DirectoryUser) -> "UserCenterBasicUserInfo":
        return cls(
            external_id=user.id,
            username=user.id,
            display_name=user.name,
            email=user.email,
            bio=f"Slack user: {user.name}",
            status=directory_status(user),
        )


class NotificationType(str, Enum):
    """Host events that can be forwarded to Slack."""

    update_question = "update_question"
    answer_the_question = "answer_the_question"
    update_answer = "update_answer"
    accept_answer = "accept_answer"
    comment_question = "comment_question"
    comment_answer = "comment_answer"
    reply_to_you = "reply_to_you"
    mention_you = "mention_you"
    invited_you_to_answer = "invited_you_to_answer"
    new_question = "new_question"
    new_question_followed_tag = "new_question_followed_tag"


class NotificationMessage(BaseModel):
    """A host event addressed to one user."""

    type: NotificationType
    receiver_user_id: str
    receiver_external_id: str = ""
    receiver_lang: str = "en_US"
    trigger_user_display_name: str = ""
    trigger_user_url: str = ""
    question_title: str = ""
    question_url: str = ""
    question_tags: str = ""
    answer_url: str = ""
    answer_summary: str = ""
    comment_url: str = ""
    comment_summary: str = ""


class UserPreference(BaseModel):
    """Per-user opt-in flags for Slack notifications."""

    all_new_questions: bool = False
    new_questions_for_following_tags: bool = False
    inbox_notifications: bool = False

    def allows(self, notification_type: NotificationType) -> bool:
        if notification_type == NotificationType.new_question:
            return self.all_new_questions
        if notification_type == NotificationType.new_question_followed_tag:
            return self.new_questions_for_following_tags
        return self.inbox_notifications


class AuthorizeRedirect(BaseModel):
    redirect_url: str
    key: str


class LoginStatus(BaseModel):
    is_login: bool
    token: str = ""


class SyncReport(BaseModel):
    """Snapshot of the directory sync state for the admin console."""

    state: str = Field(..., description="none|pending|complete")
    syncing: bool
    last_sync_succeeded: bool
    last_successful_sync_at: Optional[str] = None


class RespBody(BaseModel):
    """Response envelope expected by the host frontend."""

    code: int
    reason: str
    msg: str = ""
    data: Any = None
