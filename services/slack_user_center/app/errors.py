"""Exceptions raised by the Slack user center."""

from __future__ import annotations


class SlackAPIError(Exception):
    """Raised when a call to the Slack Web API does not succeed."""


class TransportError(SlackAPIError):
    """Slack could not be reached or answered with an unreadable payload."""


class ProviderRejected(SlackAPIError):
    """Slack answered ``ok: false``."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API error on {method}: {error}")
        self.method = method
        self.error = error


class LoginError(Exception):
    """Raised when an OAuth callback cannot produce a logged in user."""


class MissingParameter(LoginError):
    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is empty")
        self.name = name


class ExchangeFailed(LoginError):
    """The authorization code could not be exchanged for an identity."""


class UserUnavailable(LoginError):
    def __init__(self, external_id: str) -> None:
        super().__init__("user is not available")
        self.external_id = external_id


class EmailRequired(LoginError):
    """The Slack account has no email; the browser must be redirected."""

    def __init__(self, external_id: str, redirect_url: str) -> None:
        super().__init__("user email is empty")
        self.external_id = external_id
        self.redirect_url = redirect_url


class NotConfigured(LoginError):
    """Client id, client secret or redirect URI has not been supplied yet."""

    def __init__(self) -> None:
        super().__init__("user center is not configured")
