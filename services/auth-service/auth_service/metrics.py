"""Prometheus counters for credential flows."""

from __future__ import annotations

from prometheus_client import Counter

LOGINS = Counter("auth_logins_total", "Login attempts by outcome.", ["outcome"])
REGISTRATIONS = Counter("auth_registrations_total", "Registration attempts by outcome.", ["outcome"])
TOKEN_REFRESHES = Counter("auth_token_refreshes_total", "Refresh attempts by outcome.", ["outcome"])
