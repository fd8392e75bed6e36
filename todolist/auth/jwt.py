from datetime import datetime, timedelta, timezone

import jwt


def create_access_token(user_id, email, secret, ttl_minutes=15):
    """Create a signed access token for ``user_id``."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_access_token(token, secret):
    """Validate an access token and return ``(payload, error)``."""
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as exc:
        return None, str(exc)
    if "type" in payload and payload.get("type") != "access":
        return None, f"Invalid token type: expected access, got {payload.get('type')}"
    return payload, None
