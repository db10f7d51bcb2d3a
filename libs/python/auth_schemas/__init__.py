"""Shared schema exports."""

from .account import AccountView, ProfileView
from .tokens import REFRESH_TOKEN_TYPE, TokenClaims

__all__ = [
    "AccountView",
    "ProfileView",
    "REFRESH_TOKEN_TYPE",
    "TokenClaims",
]
