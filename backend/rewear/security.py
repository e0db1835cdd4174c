from __future__ import annotations

import os
from typing import Optional, Tuple
from flask import current_app, has_app_context
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


def _secret() -> str:
    if has_app_context():
        return current_app.config.get("SECRET_KEY") or "change-me"
    return os.getenv("SECRET_KEY", "change-me")


def _serializer() -> URLSafeTimedSerializer:
    # Salt provides namespace isolation for tokens
    return URLSafeTimedSerializer(secret_key=_secret(), salt="auth-token")


def issue_token(user_id: int, role: str) -> str:
    """Issue a signed token for a user.

    Payload is minimal: {"id": int, "role": str}. The role is informational;
    authorization always re-reads it from the stored user.
    """
    s = _serializer()
    return s.dumps({"id": int(user_id), "role": str(role or "user")})


def verify_token(token: str) -> Tuple[Optional[int], Optional[str]]:
    """Verify a token and return (user_id, role) if valid, else (None, None).

    Max age comes from AUTH_TOKEN_MAX_AGE seconds (default 30 days).
    """
    max_age = 60 * 60 * 24 * 30
    if has_app_context():
        max_age = int(current_app.config.get("AUTH_TOKEN_MAX_AGE", max_age))
    try:
        data = _serializer().loads(token, max_age=max_age)
        uid = int(data.get("id")) if isinstance(data, dict) and data.get("id") is not None else None
        role = str(data.get("role")) if isinstance(data, dict) and data.get("role") is not None else None
        return (uid, role)
    except (BadSignature, SignatureExpired, ValueError, TypeError):
        return (None, None)
