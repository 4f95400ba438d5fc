"""Router exports for the Slack user center."""

from . import admin, login

__all__ = ["admin", "login"]
