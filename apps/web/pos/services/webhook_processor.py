"""
POS webhook processor - handles incoming POS webhook events.

Webhooks are recorded in the pos_poswebhookevent table and then processed:
1. Verify signature (at the HTTP boundary, before anything is written)
2. Record the event, deduplicating on the vendor's event id
3. Parse and route to a handler
4. Update database

Status updates are applied in arrival order: the last event received wins.
"""

import logging
import time
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from orderhub_schemas import (
    LocationHoursChangedEvent,
    MenuUpdatedEvent,
    OrderStatus,
    StockUpdatedEvent,
    TicketCancelledEvent,
    TicketStatusChangedEvent,
)
from orderhub_schemas import POSWebhookEvent as POSWebhookEventSchema

from apps.web.core.models import AuditLog
from apps.web.pos.exceptions import POSSignatureError, POSWebhookError
from apps.web.pos.models import POSWebhookEvent, WebhookStatus
from apps.web.restaurant.models import (
    Location,
    Menu,
    MenuItem,
    Modifier,
    Order,
    POSSyncStatus,
)

logger = logging.getLogger(__name__)


def get_webhook_secret(provider: str) -> str:
    """Get the webhook secret for a provider from settings."""
    return getattr(settings, f"POS_{provider.upper()}_WEBHOOK_SECRET", "") or ""


def verify_signature(provider: str, body: bytes, signature: str) -> bool:
    """
    Check a webhook's HMAC signature against the provider's shared secret.

    When no secret is configured the webhook is accepted with a warning;
    the ``pos.E001`` system check flags that setup where it is not allowed.
    """
    from apps.web.pos.services import get_pos_service  # noqa: PLC0415

    secret = get_webhook_secret(provider)
    if not secret:
        logger.warning(
            "No webhook secret configured for %s, skipping signature check",
            provider,
        )
        return True

    adapter = get_pos_service().get_provider(provider)
    return adapter.verify_webhook_signature(body, signature, secret)


def check_signature(provider: str, body: bytes, signature: str) -> None:
    """
    Reject a webhook whose signature does not verify.

    Raises:
        POSSignatureError: If the signature does not match the shared secret.
    """
    if not verify_signature(provider, body, signature):
        raise POSSignatureError("Invalid webhook signature", provider=provider)


def record_webhook(
    provider: str,
    payload: dict[str, Any],
    signature: str = "",
) -> tuple[POSWebhookEvent, bool]:
    """
    Store a verified webhook for processing.

    Returns:
        Tuple of (event row, is_duplicate). A redelivery of an event that
        was already processed or skipped is a duplicate; a redelivery of a
        pending or failed event is not, so it gets another chance.

    Raises:
        POSWebhookError: If the envelope carries no event id.
    """
    event_id = payload.get("eventId")
    if not event_id:
        raise POSWebhookError("Webhook payload missing eventId", provider=provider)

    location_guid = str(payload.get("locationGuid") or "")
    location = (
        Location.objects.for_pos(location_guid).filter(pos_provider=provider).first()
        if location_guid
        else None
    )
    defaults = {
        "provider": provider,
        "event_type": str(payload.get("eventType") or ""),
        "location": location,
        "location_guid": location_guid,
        "payload": payload,
        "signature": signature,
    }

    try:
        with transaction.atomic():
            webhook, created = POSWebhookEvent.objects.get_or_create(
                event_id=str(event_id), defaults=defaults
            )
    except IntegrityError:
        # Lost a race with a concurrent delivery of the same event
        webhook = POSWebhookEvent.objects.get(event_id=str(event_id))
        created = False

    if created:
        logger.info(
            "Recorded %s webhook %s (%s)", provider, event_id, webhook.event_type
        )
        return webhook, False

    logger.info(
        "Redelivery of %s webhook %s (status: %s)", provider, event_id, webhook.status
    )
    return webhook, webhook.is_settled


def process_pending_webhooks(
    limit: int = 100,
    include_failed: bool = False,
    max_retries: int = 5,
) -> int:
    """
    Process pending POS webhooks.

    Args:
        limit: Maximum number of webhooks to process in one batch.
        include_failed: Also retry failed webhooks under ``max_retries``.
        max_retries: Retry budget for failed webhooks.

    Returns:
        Number of webhooks processed.
    """
    query = Q(status=WebhookStatus.PENDING)
    if include_failed:
        query |= Q(status=WebhookStatus.FAILED, retry_count__lt=max_retries)

    pending = POSWebhookEvent.objects.filter(query).order_by("received_at")[:limit]

    processed_count = 0
    for webhook in pending:
        try:
            process_webhook(str(webhook.id))
            processed_count += 1
        except Exception as e:
            logger.exception("Failed to process webhook %s: %s", webhook.id, e)

    return processed_count


def process_webhook(webhook_id: str) -> None:
    """
    Process a single POS webhook event.

    Args:
        webhook_id: The UUID of the webhook to process.

    Raises:
        POSWebhookError: If the payload cannot be parsed.
        Exception: Whatever a handler raised; the row is marked failed first.
    """
    from apps.web.pos.services import get_pos_service  # noqa: PLC0415

    start_time = time.monotonic()
    error_to_raise: Exception | None = None

    with transaction.atomic():
        webhook = POSWebhookEvent.objects.select_for_update().get(id=webhook_id)

        # Skip if already processed
        if webhook.status not in (WebhookStatus.PENDING, WebhookStatus.FAILED):
            logger.info(
                "Webhook %s already processed (status: %s)",
                webhook_id,
                webhook.status,
            )
            return

        try:
            adapter = get_pos_service().get_provider(webhook.provider)
            event = adapter.parse_webhook(webhook.payload)

            applied = _handle_pos_event(webhook, event)

            duration_ms = int((time.monotonic() - start_time) * 1000)
            webhook.status = (
                WebhookStatus.PROCESSED if applied else WebhookStatus.SKIPPED
            )
            webhook.processed_at = timezone.now()
            webhook.processing_duration_ms = duration_ms
            webhook.error = ""
            webhook.save(
                update_fields=[
                    "status",
                    "processed_at",
                    "processing_duration_ms",
                    "error",
                ]
            )

            logger.info(
                "Processed webhook %s (%s:%s) in %dms",
                webhook_id,
                webhook.provider,
                webhook.event_type,
                duration_ms,
            )

        except Exception as e:
            # Mark as failed - save the error but don't re-raise yet
            # so the transaction commits the failed status
            duration_ms = int((time.monotonic() - start_time) * 1000)
            mark_webhook_failed(webhook, str(e), duration_ms)

            logger.exception(
                "Failed to process webhook %s: %s",
                webhook_id,
                e,
            )
            error_to_raise = e

    # Re-raise outside the transaction so the failed status is committed
    if error_to_raise is not None:
        raise error_to_raise


def mark_webhook_failed(
    webhook: POSWebhookEvent, error: str, duration_ms: int = 0
) -> None:
    """Record a failed attempt on the event row and count it as a retry."""
    webhook.status = WebhookStatus.FAILED
    webhook.processed_at = timezone.now()
    webhook.processing_duration_ms = duration_ms
    webhook.error = error
    webhook.retry_count += 1
    webhook.save(
        update_fields=[
            "status",
            "processed_at",
            "processing_duration_ms",
            "error",
            "retry_count",
        ]
    )



# =============================================================================
# Event handlers
# =============================================================================


def _handle_pos_event(webhook: POSWebhookEvent, event: POSWebhookEventSchema) -> bool:
    """
    Route a POS event to the appropriate handler.

    Returns:
        True if the event changed local state, False if it was skipped.
    """
    if isinstance(event, TicketStatusChangedEvent):
        return _handle_ticket_status(webhook, event)
    if isinstance(event, TicketCancelledEvent):
        return _handle_ticket_cancelled(webhook, event)
    if isinstance(event, MenuUpdatedEvent):
        return _handle_menu_updated(webhook, event)
    if isinstance(event, StockUpdatedEvent):
        return _handle_stock_updated(webhook, event)
    if isinstance(event, LocationHoursChangedEvent):
        return _handle_hours_changed(webhook, event)

    logger.info(
        "Ignoring unhandled %s webhook event type: %s",
        webhook.provider,
        webhook.event_type,
    )
    return False


def _resolve_location(webhook: POSWebhookEvent) -> Location | None:
    if webhook.location is not None:
        return webhook.location
    location_id = webhook.location_guid or webhook.payload.get("locationGuid", "")
    if not location_id:
        return None
    return (
        Location.objects.for_pos(location_id)
        .filter(pos_provider=webhook.provider)
        .first()
    )


def _find_order(
    webhook: POSWebhookEvent, ticket_id: str, external_reference: str
) -> Order | None:
    location = _resolve_location(webhook)
    orders = Order.objects.all()
    if location is not None:
        orders = orders.filter(client=location.client)
    order = orders.find_by_pos_reference(ticket_id, external_reference)
    if order is None:
        logger.warning(
            "Order not found for %s ticket %s (reference %r)",
            webhook.provider,
            ticket_id,
            external_reference,
        )
    return order


def _handle_ticket_status(
    webhook: POSWebhookEvent, event: TicketStatusChangedEvent
) -> bool:
    """
    Handle ticket created/updated/status change.

    Links the order to its ticket and records the new status.
    """
    order = _find_order(webhook, event.ticket_id, event.external_reference)
    if order is None:
        return False

    now = timezone.now()
    extra_fields = ["pos_sync_status", "pos_synced_at"]
    order.pos_sync_status = POSSyncStatus.SYNCED
    order.pos_synced_at = now
    if event.ticket_id and order.pos_order_id != event.ticket_id:
        order.pos_order_id = event.ticket_id
        extra_fields.append("pos_order_id")
    if event.estimated_ready_time:
        order.estimated_ready_at = event.estimated_ready_time
        extra_fields.append("estimated_ready_at")

    previous = order.status
    order.record_status(
        event.status.value,
        note=f"Status updated from POS: {event.vendor_status or event.status.value}",
        extra_fields=extra_fields,
    )
    logger.info(
        "Updated order %s status: %s -> %s",
        order.order_number,
        previous,
        event.status.value,
    )
    return True


def _handle_ticket_cancelled(
    webhook: POSWebhookEvent, event: TicketCancelledEvent
) -> bool:
    order = _find_order(webhook, event.ticket_id, event.external_reference)
    if order is None:
        return False

    note = "Cancelled from POS"
    if event.reason:
        note = f"{note}: {event.reason}"
    order.record_status(OrderStatus.CANCELLED.value, note=note)
    logger.info("Order %s cancelled from POS", order.order_number)
    return True


def _handle_menu_updated(webhook: POSWebhookEvent, event: MenuUpdatedEvent) -> bool:
    """
    Handle menu updated event.

    Clears the location's last sync time so the next menu sync picks the
    change up, and stamps the items the POS says changed.
    """
    location = _resolve_location(webhook)
    if location is None:
        logger.warning(
            "Location not found for %s menu update: %s",
            webhook.provider,
            event.location_id,
        )
        return False

    Menu.objects.filter(location=location).update(last_sync_at=None)
    touched = 0
    if event.changed_item_ids:
        touched = (
            MenuItem.objects.at_location(location)
            .by_pos_ids(event.changed_item_ids)
            .update(pos_updated_at=timezone.now())
        )

    logger.info(
        "Menu updated at POS for location %s: %d changed items flagged",
        location.slug,
        touched,
    )
    return True


def _handle_stock_updated(webhook: POSWebhookEvent, event: StockUpdatedEvent) -> bool:
    """
    Handle item availability (86'd) changes.

    Unknown items are skipped without failing the rest of the batch.
    """
    location = _resolve_location(webhook)
    items = MenuItem.objects.all()
    modifiers = Modifier.objects.all()
    if location is not None:
        items = items.at_location(location)
        modifiers = modifiers.filter(group__menu__location=location)

    now = timezone.now()
    updated_any = False
    for stock in event.items:
        if not stock.item_id:
            continue
        updated = items.filter(pos_item_id=stock.item_id).update(
            is_available=stock.is_available,
            is_86ed=not stock.is_available,
            availability_updated_at=now,
        )
        if not updated:
            updated = modifiers.filter(pos_modifier_id=stock.item_id).update(
                is_available=stock.is_available
            )

        if updated:
            updated_any = True
            logger.info(
                "Updated availability for %s: is_available=%s",
                stock.item_id,
                stock.is_available,
            )
        else:
            logger.warning(
                "Item/modifier not found for availability update: %s",
                stock.item_id,
            )

    return updated_any


def _handle_hours_changed(
    webhook: POSWebhookEvent, event: LocationHoursChangedEvent
) -> bool:
    location = _resolve_location(webhook)
    AuditLog.objects.record(
        action="POS_HOURS_CHANGED",
        entity_type="Location",
        entity_id=location.pk if location else event.location_id,
        changes={
            "is_open": event.is_open,
            "next_open_time": (
                event.next_open_time.isoformat() if event.next_open_time else None
            ),
            "next_close_time": (
                event.next_close_time.isoformat() if event.next_close_time else None
            ),
        },
        client=location.client if location else None,
    )
    logger.info("Recorded POS hours change for location %s", event.location_id)
    return True
