"""
POS orchestration service - the single entry point the rest of the app uses.

Resolves a location's adapter from the registry, bridges the async adapters
into Django's synchronous request/command code with ``asyncio.run``, persists
the results, and decides when a failed call is queued for retry.
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, NoReturn, TypeVar

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from orderhub_schemas import (
    AvailabilityUpdateRequest,
    FailedRequestPayload,
    MenuSyncResult,
    OrderCancelRequest,
    OrderStatus,
    OrderSubmitRequest,
    POSOrderResult,
    POSOrderStatus,
    POSProvider,
)

from apps.web.core.models import AuditLog
from apps.web.pos.adapters.base import POSAdapter
from apps.web.pos.adapters.registry import POSRegistry
from apps.web.pos.exceptions import (
    MenuSyncError,
    POSAPIError,
    POSConfigurationError,
    POSError,
    POSOrderError,
)
from apps.web.pos.models import (
    FailedRequest,
    FailedRequestStatus,
    POSWebhookEvent,
    SyncLog,
    SyncStatus,
    SyncType,
)
from apps.web.pos.services import failed_requests
from apps.web.pos.services.order_submission import (
    OrderSubmissionError,
    build_pos_order,
)
from apps.web.restaurant.models import (
    Location,
    Menu,
    MenuCategory,
    MenuItem,
    Modifier,
    ModifierGroup,
    Order,
    POSSyncStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_WEBHOOK_WINDOW = timedelta(hours=24)


@dataclass
class MenuSyncSummary:
    """What one menu sync changed."""

    sync_log_id: int
    sync_type: str
    items_synced: int
    modifiers_synced: int
    items_deactivated: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive an adapter coroutine from synchronous code."""
    return asyncio.run(coro)


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, POSAPIError) and error.is_retryable


class POSService:
    """
    Orchestrates POS operations for locations, orders and menu items.

    Built once at startup (see PosConfig.ready) around the adapter registry.

    Usage:
        service = get_pos_service()
        summary = service.sync_menu(location.pk)
        result = service.send_order_to_pos(order.pk)
    """

    def __init__(self, registry: POSRegistry) -> None:
        self.registry = registry

    # =========================================================================
    # Provider resolution
    # =========================================================================

    def get_provider(self, vendor: POSProvider | str) -> POSAdapter:
        return self.registry.get_provider(vendor)

    def provider_for_location(self, location: Location) -> POSAdapter:
        """
        Adapter for the POS a location is connected to.

        Raises:
            POSConfigurationError: If the location has no POS configured.
            ProviderNotFoundError: If its vendor has no registered adapter.
        """
        if not location.has_pos:
            raise POSConfigurationError(
                f"Location {location.slug} has no POS configured",
                provider=location.pos_provider or None,
            )
        return self.get_provider(location.pos_provider)

    # =========================================================================
    # Menu sync
    # =========================================================================

    def sync_menu(self, location_id: int, full: bool = True) -> MenuSyncSummary:
        """
        Pull the POS catalog for a location into the local menu.

        An incremental sync fetches changes since the last completed sync and
        falls back to a full sync when there is none.

        Args:
            location_id: Local Location primary key.
            full: Full snapshot (True) or incremental delta (False).

        Returns:
            Counts of what the sync changed.

        Raises:
            Location.DoesNotExist: If the location does not exist.
            POSConfigurationError: If the location has no POS.
            MenuSyncError: If fetching or applying the catalog failed.
        """
        location = Location.objects.select_related("client").get(pk=location_id)
        adapter = self.provider_for_location(location)

        since: datetime | None = None
        if not full:
            last = (
                SyncLog.objects.filter(location=location, status=SyncStatus.COMPLETED)
                .order_by("-started_at")
                .first()
            )
            if last is None:
                logger.info(
                    "No completed sync for location %s, running full sync",
                    location.slug,
                )
                full = True
            else:
                since = last.started_at

        sync_log = SyncLog.objects.create(
            location=location,
            provider=location.pos_provider,
            sync_type=SyncType.FULL if full else SyncType.INCREMENTAL,
        )
        logger.info(
            "Starting %s menu sync for location %s (log %s)",
            sync_log.sync_type,
            location.slug,
            sync_log.pk,
        )

        try:
            if since is None:
                result = _run(adapter.sync_full_menu(location.pos_location_id))
            else:
                result = _run(adapter.sync_menu_updates(location.pos_location_id, since))
            with transaction.atomic():
                deactivated = self._apply_menu(location, result, full=full)
        except Exception as e:
            sync_log.fail(str(e))
            logger.exception("Menu sync failed for location %s", location.slug)
            raise MenuSyncError(
                f"Menu sync failed: {e}",
                provider=location.pos_provider,
                sync_log_id=sync_log.pk,
            ) from e

        sync_log.complete(result.item_count, result.modifier_count, deactivated)
        AuditLog.objects.record(
            action="POS_MENU_SYNC",
            entity_type="Location",
            entity_id=location.pk,
            changes={
                "sync_log_id": sync_log.pk,
                "sync_type": sync_log.sync_type,
                "items_synced": result.item_count,
                "modifiers_synced": result.modifier_count,
                "items_deactivated": deactivated,
            },
            client=location.client,
        )
        logger.info(
            "Menu sync completed for location %s: %d items, %d modifiers, %d deactivated",
            location.slug,
            result.item_count,
            result.modifier_count,
            deactivated,
        )
        return MenuSyncSummary(
            sync_log_id=sync_log.pk,
            sync_type=sync_log.sync_type,
            items_synced=result.item_count,
            modifiers_synced=result.modifier_count,
            items_deactivated=deactivated,
        )

    def _apply_menu(
        self, location: Location, result: MenuSyncResult, full: bool
    ) -> int:
        """Upsert the catalog into the local menu; returns items deactivated."""
        now = timezone.now()
        menu = location.menus.order_by("display_order", "pk").first()
        if menu is None:
            menu = Menu.objects.create(
                client=location.client,
                location=location,
                name=f"{location.name} Menu",
            )

        categories: dict[str, MenuCategory] = {}
        for pos_category in result.categories:
            categories[pos_category.id], _ = MenuCategory.objects.update_or_create(
                menu=menu,
                pos_category_id=pos_category.id,
                defaults={
                    "client": location.client,
                    "name": pos_category.name,
                    "description": pos_category.description,
                    "is_active": pos_category.is_active,
                    "display_order": pos_category.sort_order,
                },
            )

        def category_for(pos_category_id: str) -> MenuCategory:
            if pos_category_id not in categories:
                categories[pos_category_id] = (
                    menu.categories.filter(pos_category_id=pos_category_id).first()
                    or MenuCategory.objects.create(
                        client=location.client,
                        menu=menu,
                        pos_category_id=pos_category_id,
                        name=pos_category_id or "Uncategorized",
                    )
                )
            return categories[pos_category_id]

        local_items = MenuItem.objects.at_location(location)
        for pos_item in result.items:
            fields = {
                "category": category_for(pos_item.category_id),
                "name": pos_item.name,
                "description": pos_item.description,
                "price": pos_item.price,
                "sku": pos_item.sku,
                "is_available": pos_item.is_available,
                "pos_updated_at": now,
            }
            item = local_items.filter(pos_item_id=pos_item.id).first()
            if item is None:
                MenuItem.objects.create(
                    client=location.client, pos_item_id=pos_item.id, **fields
                )
            else:
                for name, value in fields.items():
                    setattr(item, name, value)
                item.save(update_fields=[*fields, "updated_at"])

        groups: dict[str, ModifierGroup] = {}
        for pos_modifier in result.modifiers:
            group = groups.get(pos_modifier.group_id)
            if group is None:
                group, _ = ModifierGroup.objects.update_or_create(
                    menu=menu,
                    pos_group_id=pos_modifier.group_id,
                    defaults={
                        "client": location.client,
                        "name": pos_modifier.group_name or pos_modifier.group_id,
                        "is_active": True,
                    },
                )
                groups[pos_modifier.group_id] = group
            Modifier.objects.update_or_create(
                group=group,
                pos_modifier_id=pos_modifier.id,
                defaults={
                    "client": location.client,
                    "name": pos_modifier.name,
                    "price_adjustment": pos_modifier.price,
                    "is_available": pos_modifier.is_available,
                },
            )

        if full:
            # Anything the snapshot no longer contains is gone from the POS
            seen = [item.id for item in result.items]
            stale = local_items.exclude(pos_item_id="").exclude(pos_item_id__in=seen)
        else:
            stale = local_items.by_pos_ids(result.deleted_item_ids)
            if result.deleted_category_ids:
                menu.categories.filter(
                    pos_category_id__in=result.deleted_category_ids
                ).update(is_active=False)
            if result.deleted_modifier_group_ids:
                menu.modifier_groups.filter(
                    pos_group_id__in=result.deleted_modifier_group_ids
                ).update(is_active=False)

        deactivated = stale.filter(is_available=True).update(
            is_available=False, availability_updated_at=now
        )
        Menu.objects.filter(location=location).update(last_sync_at=now)
        return deactivated

    # =========================================================================
    # Orders
    # =========================================================================

    def _load_order(self, order_id: int) -> Order:
        try:
            return Order.objects.select_related("location", "client").get(pk=order_id)
        except Order.DoesNotExist as e:
            raise OrderSubmissionError(
                f"Order {order_id} not found",
                order_id=order_id,
                is_retryable=False,
            ) from e

    def send_order_to_pos(
        self, order_id: int, queue_on_failure: bool = True
    ) -> POSOrderResult:
        """
        Submit an order to its location's POS.

        Orders already synced are not sent twice. A retryable failure is
        parked in the failed-request queue when ``queue_on_failure`` is set.

        Args:
            order_id: ID of the Order to submit.
            queue_on_failure: Enqueue a replay on retryable failure.

        Returns:
            Result with the POS ticket id.

        Raises:
            OrderSubmissionError: If submission fails.
        """
        order = self._load_order(order_id)

        if order.pos_sync_status == POSSyncStatus.SYNCED and order.pos_order_id:
            logger.info(
                "Order %s already submitted (pos_order_id=%s)",
                order.order_number,
                order.pos_order_id,
            )
            return POSOrderResult(
                pos_order_id=order.pos_order_id,
                status=OrderStatus(order.status),
                estimated_ready_time=order.estimated_ready_at,
            )

        try:
            adapter = self.provider_for_location(order.location)
            result = _run(adapter.send_order(build_pos_order(order)))
        except POSError as e:
            self._order_failed(
                order,
                e,
                OrderSubmitRequest(order_id=order.pk) if queue_on_failure else None,
            )

        with transaction.atomic():
            order.pos_order_id = result.pos_order_id
            order.pos_sync_status = POSSyncStatus.SYNCED
            order.pos_synced_at = timezone.now()
            order.pos_error_message = ""
            extra_fields = [
                "pos_order_id",
                "pos_sync_status",
                "pos_synced_at",
                "pos_error_message",
            ]
            if result.estimated_ready_time:
                order.estimated_ready_at = result.estimated_ready_time
                extra_fields.append("estimated_ready_at")
            order.record_status(
                order.status,
                note=f"Sent to POS as ticket {result.pos_order_id}",
                extra_fields=extra_fields,
            )

        logger.info(
            "Order %s submitted to POS: pos_order_id=%s",
            order.order_number,
            result.pos_order_id,
        )
        return result

    def _order_failed(
        self,
        order: Order,
        error: POSError,
        replay: FailedRequestPayload | None,
    ) -> NoReturn:
        """Record a failed submission, queue it if retryable, and raise."""
        order.pos_sync_status = POSSyncStatus.FAILED
        order.pos_error_message = str(error)
        order.save(update_fields=["pos_sync_status", "pos_error_message", "updated_at"])
        logger.error("POS submission failed for order %s: %s", order.order_number, error)

        retryable = _is_retryable(error)
        queued_id = None
        if retryable and replay is not None:
            queued_id = failed_requests.enqueue_failed_request(
                replay,
                str(error),
                location=order.location,
            ).pk
        raise OrderSubmissionError(
            str(error),
            order_id=order.pk,
            is_retryable=retryable,
            queued_request_id=queued_id,
        ) from error

    def cancel_order_in_pos(self, order_id: int, queue_on_failure: bool = True) -> bool:
        """
        Cancel an order's POS ticket and mark the order cancelled.

        Raises:
            OrderSubmissionError: If the order does not exist.
            POSOrderError: If the order was never sent to the POS.
            POSError: If the POS call fails.
        """
        order = self._load_order(order_id)
        if not order.pos_order_id:
            raise POSOrderError(
                f"Order {order.order_number} has no POS ticket to cancel",
                provider=order.location.pos_provider or None,
                order_id=str(order.pk),
            )

        adapter = self.provider_for_location(order.location)
        try:
            cancelled = _run(adapter.cancel_order(order.pos_order_id))
        except POSError as e:
            logger.error("POS cancel failed for order %s: %s", order.order_number, e)
            if queue_on_failure and _is_retryable(e):
                failed_requests.enqueue_failed_request(
                    OrderCancelRequest(order_id=order.pk),
                    str(e),
                    location=order.location,
                )
            raise

        if cancelled and order.status != OrderStatus.CANCELLED:
            order.record_status(
                OrderStatus.CANCELLED.value,
                note=f"Cancelled in POS (ticket {order.pos_order_id})",
            )
        logger.info("Cancelled order %s in POS", order.order_number)
        return cancelled

    def refresh_order_status(self, order_id: int) -> POSOrderStatus:
        """Poll the POS for an order's ticket status and reconcile locally."""
        order = self._load_order(order_id)
        if not order.pos_order_id:
            raise POSOrderError(
                f"Order {order.order_number} has not been sent to the POS",
                provider=order.location.pos_provider or None,
                order_id=str(order.pk),
            )

        adapter = self.provider_for_location(order.location)
        status = _run(adapter.get_order_status(order.pos_order_id))

        extra_fields: list[str] = []
        if status.estimated_ready_time and (
            order.estimated_ready_at != status.estimated_ready_time
        ):
            order.estimated_ready_at = status.estimated_ready_time
            extra_fields.append("estimated_ready_at")

        if status.status.value != order.status:
            order.record_status(
                status.status.value,
                note=f"Status polled from POS: {status.status.value}",
                extra_fields=extra_fields,
            )
        elif extra_fields:
            order.save(update_fields=[*extra_fields, "updated_at"])
        return status

    # =========================================================================
    # Availability
    # =========================================================================

    def update_item_availability(
        self, item_id: int, is_available: bool, queue_on_failure: bool = True
    ) -> bool:
        """
        86 or restore a menu item at the POS, then locally.

        Raises:
            MenuItem.DoesNotExist: If the item does not exist.
            POSError: If the POS call fails (queued first when retryable).
        """
        item = MenuItem.objects.select_related("category__menu__location").get(
            pk=item_id
        )
        location = item.category.menu.location
        adapter = self.provider_for_location(location)

        try:
            _run(
                adapter.update_item_availability(
                    item.pos_item_id or str(item.pk),
                    is_available,
                    location.pos_location_id,
                )
            )
        except POSError as e:
            logger.error("POS availability update failed for item %s: %s", item.pk, e)
            if queue_on_failure and _is_retryable(e):
                failed_requests.enqueue_failed_request(
                    AvailabilityUpdateRequest(item_id=item.pk, is_available=is_available),
                    str(e),
                    location=location,
                )
            raise

        item.is_available = is_available
        item.is_86ed = not is_available
        item.availability_updated_at = timezone.now()
        item.save(
            update_fields=[
                "is_available",
                "is_86ed",
                "availability_updated_at",
                "updated_at",
            ]
        )
        logger.info("Item %s availability set to %s", item.pk, is_available)
        return True

    def get_unavailable_items(self, location_id: int) -> list[str]:
        """Vendor ids of items the POS currently reports as 86'd."""
        location = Location.objects.get(pk=location_id)
        adapter = self.provider_for_location(location)
        return _run(adapter.get_unavailable_items(location.pos_location_id))

    # =========================================================================
    # Reporting
    # =========================================================================

    def status_summary(self, location_id: int | None = None) -> dict[str, Any]:
        """
        Connectivity and recent activity for the POS integration.

        Covers one location when ``location_id`` is given, otherwise every
        registered vendor.
        """
        if location_id is not None:
            location = Location.objects.get(pk=location_id)
            vendors = [location.pos_provider] if location.has_pos else []
            sync_logs = SyncLog.objects.filter(location=location)
            retries = FailedRequest.objects.filter(location=location)
            webhooks = POSWebhookEvent.objects.filter(location=location)
        else:
            vendors = self.registry.vendors()
            sync_logs = SyncLog.objects.all()
            retries = FailedRequest.objects.all()
            webhooks = POSWebhookEvent.objects.all()

        connectivity = {
            vendor: _run(self.get_provider(vendor).authenticate()) for vendor in vendors
        }
        recent_webhooks = dict(
            webhooks.filter(received_at__gte=timezone.now() - RECENT_WEBHOOK_WINDOW)
            .values_list("status")
            .annotate(count=Count("id"))
            .order_by()
        )
        return {
            "connected": connectivity,
            "recent_syncs": [
                _sync_log_to_dict(log)
                for log in sync_logs.select_related("location")[:5]
            ],
            "pending_retries": retries.filter(
                status__in=[FailedRequestStatus.PENDING, FailedRequestStatus.RETRYING]
            ).count(),
            "abandoned_retries": retries.filter(
                status=FailedRequestStatus.ABANDONED
            ).count(),
            "recent_webhooks": recent_webhooks,
        }

    def sync_history(
        self, location_id: int, limit: int = 20, offset: int = 0
    ) -> dict[str, Any]:
        logs = SyncLog.objects.filter(location_id=location_id)
        return {
            "total": logs.count(),
            "limit": limit,
            "offset": offset,
            "results": [
                _sync_log_to_dict(log) for log in logs[offset : offset + limit]
            ],
        }

    # =========================================================================
    # Failed-request replay
    # =========================================================================

    def retry_failed_requests(
        self, batch_size: int = 10
    ) -> list[failed_requests.RetryOutcome]:
        return failed_requests.retry_failed_requests(self, batch_size=batch_size)

    def replay_request(self, request: FailedRequestPayload) -> None:
        """Re-issue a queued request without queueing it again on failure."""
        match request:
            case OrderSubmitRequest(order_id=order_id):
                self.send_order_to_pos(order_id, queue_on_failure=False)
            case OrderCancelRequest(order_id=order_id):
                self.cancel_order_in_pos(order_id, queue_on_failure=False)
            case AvailabilityUpdateRequest(item_id=item_id, is_available=is_available):
                self.update_item_availability(
                    item_id, is_available, queue_on_failure=False
                )


def _sync_log_to_dict(log: SyncLog) -> dict[str, Any]:
    return {
        "id": log.pk,
        "location_id": log.location_id,
        "provider": log.provider,
        "sync_type": log.sync_type,
        "status": log.status,
        "items_synced": log.items_synced,
        "modifiers_synced": log.modifiers_synced,
        "items_deactivated": log.items_deactivated,
        "error_message": log.error_message,
        "started_at": log.started_at.isoformat(),
        "completed_at": log.completed_at.isoformat() if log.completed_at else None,
        "duration_seconds": log.duration_seconds,
    }
