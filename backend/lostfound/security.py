from __future__ import annotations

from typing import Optional, Tuple

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


def _serializer() -> URLSafeTimedSerializer:
    # Salt provides namespace isolation for tokens
    return URLSafeTimedSerializer(secret_key=current_app.config["SECRET_KEY"], salt="auth-token")


def issue_token(user_id: int, role: str) -> str:
    """Issue a signed token for a user.

    Payload is minimal: {"id": int, "role": str}
    """
    return _serializer().dumps({"id": int(user_id), "role": str(role or "user")})


def verify_token(token: str) -> Tuple[Optional[int], Optional[str]]:
    """Verify a token and return (user_id, role) if valid, else (None, None).

    Max age is AUTH_TOKEN_MAX_AGE seconds (default 30 days).
    """
    max_age = int(current_app.config.get("AUTH_TOKEN_MAX_AGE", 60 * 60 * 24 * 30))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return (None, None)
    if not isinstance(data, dict) or data.get("id") is None:
        return (None, None)
    try:
        return (int(data["id"]), str(data.get("role")) if data.get("role") else None)
    except (TypeError, ValueError):
        return (None, None)
