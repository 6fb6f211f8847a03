"""
Webhook envelope parsing and signature checks shared by POS adapters.

Envelope shape:
    {"eventType", "eventId", "timestamp", "locationGuid", "data": {...}}
"""

import hashlib
import hmac
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from orderhub_schemas import (
    LocationHoursChangedEvent,
    MenuUpdatedEvent,
    POSProvider,
    POSWebhookEvent,
    StockLevel,
    StockUpdatedEvent,
    TicketCancelledEvent,
    TicketStatusChangedEvent,
    UnknownEvent,
)

from apps.web.pos.adapters.mapping import map_vendor_status
from apps.web.pos.exceptions import POSWebhookError

TICKET_STATUS_EVENTS = ("ticket.created", "ticket.updated", "ticket.status_changed")
MENU_EVENTS = ("menu.updated", "menu.item_availability_changed")


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of the raw body."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_hmac_signature(payload: bytes, signature: str, secret: str) -> bool:
    """
    Constant-time comparison of ``signature`` against the expected HMAC.

    A signature of the wrong length is rejected before comparing.
    """
    if not signature:
        return False
    expected = compute_signature(payload, secret)
    signature = signature.strip().lower()
    if len(signature) != len(expected):
        return False
    return hmac.compare_digest(signature, expected)


def _parse_datetime(value: Any, provider: POSProvider) -> datetime | None:
    if not value:
        return None
    if not isinstance(value, str):
        raise POSWebhookError(
            f"Invalid timestamp in webhook: {value!r}",
            provider=provider.value,
        )
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise POSWebhookError(
            f"Invalid timestamp in webhook: {value}",
            provider=provider.value,
        ) from e


def parse_event_envelope(
    payload: dict[str, Any], provider: POSProvider
) -> POSWebhookEvent:
    """
    Parse a webhook envelope into a typed event.

    Unrecognized event types parse to ``UnknownEvent`` rather than failing.

    Raises:
        POSWebhookError: If required envelope fields are missing or malformed,
            including values of the wrong JSON type.
    """
    try:
        return _parse_envelope(payload, provider)
    except (ValidationError, TypeError, AttributeError, ValueError) as e:
        raise POSWebhookError(
            f"Malformed {payload.get('eventType')} webhook: {e}",
            provider=provider.value,
        ) from e


def _parse_envelope(
    payload: dict[str, Any], provider: POSProvider
) -> POSWebhookEvent:
    event_type = payload.get("eventType")
    event_id = payload.get("eventId")
    if not event_type or not event_id:
        raise POSWebhookError(
            "Webhook payload missing eventType or eventId",
            provider=provider.value,
        )

    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise POSWebhookError("Webhook data must be an object", provider=provider.value)

    base: dict[str, Any] = {
        "provider": provider,
        "event_id": str(event_id),
        "occurred_at": _parse_datetime(payload.get("timestamp"), provider)
        or datetime.now(UTC),
        "location_id": payload.get("locationGuid") or data.get("locationGuid") or "",
    }

    if event_type in TICKET_STATUS_EVENTS:
        vendor_status = data.get("status", "")
        return TicketStatusChangedEvent(
            **base,
            event_type=event_type,
            ticket_id=data.get("ticketGuid", ""),
            external_reference=data.get("externalReference", ""),
            status=map_vendor_status(vendor_status),
            vendor_status=vendor_status,
            previous_status=data.get("previousStatus") or "",
            estimated_ready_time=_parse_datetime(
                data.get("estimatedReadyTime"), provider
            ),
        )

    if event_type == "ticket.cancelled":
        return TicketCancelledEvent(
            **base,
            ticket_id=data.get("ticketGuid", ""),
            external_reference=data.get("externalReference", ""),
            reason=data.get("cancellationReason") or "",
        )

    if event_type in MENU_EVENTS:
        return MenuUpdatedEvent(
            **base,
            event_type=event_type,
            menu_id=data.get("menuGuid", ""),
            changed_item_ids=data.get("changedItems") or [],
        )

    if event_type == "stock.updated":
        return StockUpdatedEvent(
            **base,
            items=[
                StockLevel(
                    item_id=item.get("itemGuid", ""),
                    is_available=item.get("isAvailable", True),
                    stock_level=item.get("stockLevel"),
                )
                for item in data.get("items", [])
            ],
        )

    if event_type == "location.hours_changed":
        return LocationHoursChangedEvent(
            **base,
            is_open=data.get("isOpen"),
            next_open_time=_parse_datetime(data.get("nextOpenTime"), provider),
            next_close_time=_parse_datetime(data.get("nextCloseTime"), provider),
        )
    return UnknownEvent(**base, raw_event_type=str(event_type))
