# forge/admin_auth.py
"""
Admin capability check.

The request path only needs "is this caller allowed to run admin tooling".
SignedRoleAuthorizer answers it from a bearer token of the form

    <subject>:<role>:<expires_epoch>:<hex hmac-sha256 of the first three parts>

signed with FORGE_ADMIN_SIGNING_KEY. Anything else (an OIDC verifier, a
session lookup) can stand in as long as it implements `authorize`.
"""

import hashlib
import hmac
import logging
import os
import time
from typing import Optional

from forge.errors import Unauthorized

logger = logging.getLogger("forge_backend")

ADMIN_ROLE = "admin"
DEFAULT_TOKEN_TTL_SECONDS = 12 * 3600


class AdminAuthorizer:
    def authorize(self, token: Optional[str]) -> str:
        """Return the authorized subject or raise Unauthorized."""
        raise NotImplementedError


class DenyAllAuthorizer(AdminAuthorizer):
    def authorize(self, token: Optional[str]) -> str:
        raise Unauthorized("Admin access is not configured")


def _sign(key: bytes, payload: str) -> str:
    return hmac.new(key, payload.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_admin_token(
    subject: str,
    signing_key: str,
    role: str = ADMIN_ROLE,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    now: Optional[float] = None,
) -> str:
    if not subject or ":" in subject:
        raise ValueError("subject must be non-empty and must not contain ':'")
    expires = int((now if now is not None else time.time()) + ttl_seconds)
    payload = f"{subject}:{role}:{expires}"
    return f"{payload}:{_sign(signing_key.encode('utf-8'), payload)}"


class SignedRoleAuthorizer(AdminAuthorizer):
    def __init__(self, signing_key: str, required_role: str = ADMIN_ROLE, clock=time.time) -> None:
        if not signing_key:
            raise ValueError("signing_key is required")
        self._key = signing_key.encode("utf-8")
        self.required_role = required_role
        self.clock = clock

    def authorize(self, token: Optional[str]) -> str:
        if not token:
            raise Unauthorized("Missing admin token")

        parts = token.split(":")
        if len(parts) != 4:
            raise Unauthorized("Malformed admin token")
        subject, role, expires, signature = parts

        expected = _sign(self._key, f"{subject}:{role}:{expires}")
        if not hmac.compare_digest(expected, signature):
            logger.warning("authorize: bad signature for subject '%s'", subject)
            raise Unauthorized("Invalid admin token")

        try:
            expires_at = int(expires)
        except ValueError:
            raise Unauthorized("Malformed admin token")
        if expires_at < self.clock():
            raise Unauthorized("Admin token expired")

        if role != self.required_role:
            logger.warning("authorize: subject '%s' has role '%s', not '%s'", subject, role, self.required_role)
            raise Unauthorized("Admin access required")

        return subject


def authorizer_from_env() -> AdminAuthorizer:
    key = os.getenv("FORGE_ADMIN_SIGNING_KEY", "")
    if not key:
        logger.warning("FORGE_ADMIN_SIGNING_KEY is not set, admin endpoints will reject every request")
        return DenyAllAuthorizer()
    return SignedRoleAuthorizer(key)
