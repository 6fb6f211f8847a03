"""Webhook payload builders shared by POS tests."""

import hashlib
import hmac
import json
import uuid
from typing import Any

SKYTAB_LOCATION_GUID = "loc-guid-test"


def make_envelope(event_type: str, data: dict[str, Any], **overrides: Any) -> dict:
    """Build a webhook envelope."""
    return {
        "eventType": event_type,
        "eventId": overrides.pop("eventId", f"evt-{uuid.uuid4().hex[:12]}"),
        "timestamp": overrides.pop("timestamp", "2025-01-15T12:00:00Z"),
        "locationGuid": overrides.pop("locationGuid", SKYTAB_LOCATION_GUID),
        "data": data,
        **overrides,
    }


def sign(body: bytes, secret: str) -> str:
    """HMAC-SHA256 hex signature of a raw body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode()
