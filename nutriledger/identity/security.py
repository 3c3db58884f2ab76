# -*- coding: utf-8 -*-
"""
Identity: password hashes and signed session tokens.

A session token is ``<claims>.<signature>``: base64url JSON claims
(``sub``, ``exp``) followed by their HMAC-SHA256 under the configured secret.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Optional

from fastapi import Request

from ..config import settings
from ..errors import Unauthorized

PBKDF2_ITERATIONS = 200_000


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    """``<iterations>$<salt>$<digest>`` with pbkdf2-sha256."""
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{iterations}${_b64(salt)}${_b64(digest)}"


def verify_password(password: str, stored: str) -> bool:
    try:
        iterations, salt, digest = stored.split("$")
        expected = _unb64(digest)
        actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), _unb64(salt), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(actual, expected)


def _signature(body: str, secret: str) -> bytes:
    return _b64(hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).digest()).encode("ascii")


def issue_session_token(
    user_id: str,
    *,
    secret: Optional[str] = None,
    ttl_days: Optional[int] = None,
    now: Optional[float] = None,
) -> str:
    issued = int(time.time() if now is None else now)
    ttl = settings.token_ttl_days if ttl_days is None else ttl_days
    claims = {"sub": user_id, "exp": issued + int(ttl) * 86400}
    body = _b64(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    return f"{body}.{_signature(body, secret or settings.jwt_secret).decode('ascii')}"


def read_session_token(token: str, *, secret: Optional[str] = None, now: Optional[float] = None) -> str:
    """The user id a token was issued for; raises ``Unauthorized`` otherwise."""
    body, _, signature = (token or "").partition(".")
    expected = _signature(body, secret or settings.jwt_secret)
    if not body or not hmac.compare_digest(signature.encode("utf-8"), expected):
        raise Unauthorized("Invalid token")
    try:
        claims = json.loads(_unb64(body))
    except ValueError as exc:
        raise Unauthorized("Invalid token") from exc
    if not isinstance(claims, dict) or not claims.get("sub"):
        raise Unauthorized("Invalid token")
    if int(claims.get("exp") or 0) < (time.time() if now is None else now):
        raise Unauthorized("Token expired")
    return str(claims["sub"])


def bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_current_user(request: Request) -> Dict[str, Any]:
    """Route dependency; the auth gate in ``nutriledger.api`` resolves the user first."""
    user = getattr(request.state, "user", None)
    if not user:
        raise Unauthorized()
    return user
