# ice_ops/utils/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

# Tokens are issued by the external auth service and only verified here.
# Format: <urlsafe-b64 payload>.<urlsafe-b64 HMAC-SHA256(payload)>

_DEFAULT_TTL = timedelta(hours=12)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    pad = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + pad)


def _sign(payload_b64: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def make_token(user_id: int, role: str, secret: str, *, ttl: timedelta = _DEFAULT_TTL) -> str:
    """
    Build a signed bearer token for `user_id`. Used by the auth service and
    by tests; the API itself never issues tokens.
    """
    exp = datetime.now(timezone.utc) + ttl
    payload = json.dumps(
        {"user_id": int(user_id), "role": role, "exp": int(exp.timestamp())},
        separators=(",", ":"),
    )
    payload_b64 = _b64encode(payload.encode("utf-8"))
    return f"{payload_b64}.{_sign(payload_b64, secret)}"


def decode_token(token: str, secret: str) -> Optional[dict]:
    """
    Verify signature and expiry. Returns the payload dict, or None when the
    token is malformed, tampered with or expired.
    """
    if not token or token.count(".") != 1:
        return None
    payload_b64, sig = token.split(".", 1)
    if not hmac.compare_digest(sig, _sign(payload_b64, secret)):
        return None
    try:
        payload = json.loads(_b64decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    if exp is not None and int(exp) < int(datetime.now(timezone.utc).timestamp()):
        return None
    return payload
