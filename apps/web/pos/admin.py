"""Admin registration for POS models."""

from typing import Any

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest

from apps.web.pos.models import FailedRequest, FailedRequestStatus, POSWebhookEvent, SyncLog


@admin.register(POSWebhookEvent)
class POSWebhookEventAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    """Admin for POS webhook events."""

    list_display = [
        "event_id",
        "location",
        "provider",
        "event_type",
        "status",
        "retry_count",
        "received_at",
        "processed_at",
    ]
    list_filter = ["provider", "event_type", "status"]
    search_fields = ["event_id", "location_guid", "location__name"]
    readonly_fields = [
        "id",
        "received_at",
        "processed_at",
        "processing_duration_ms",
    ]
    ordering = ["-received_at"]
    date_hierarchy = "received_at"
    actions = ["reprocess"]

    @admin.action(description="Reprocess selected events")
    def reprocess(self, request: HttpRequest, queryset: QuerySet[Any]) -> None:
        from apps.web.pos.services import process_webhook  # noqa: PLC0415

        processed = 0
        for event in queryset:
            try:
                process_webhook(str(event.id))
                processed += 1
            except Exception as e:
                self.message_user(
                    request, f"{event.event_id}: {e}", level=messages.ERROR
                )
        self.message_user(request, f"Reprocessed {processed} events")


@admin.register(SyncLog)
class SyncLogAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = [
        "location",
        "provider",
        "sync_type",
        "status",
        "items_synced",
        "modifiers_synced",
        "items_deactivated",
        "started_at",
        "completed_at",
    ]
    list_filter = ["provider", "sync_type", "status"]
    search_fields = ["location__name", "error_message"]
    readonly_fields = ["started_at", "completed_at"]
    date_hierarchy = "started_at"


@admin.register(FailedRequest)
class FailedRequestAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    """Admin for the failed-request retry queue."""

    list_display = [
        "id",
        "request_type",
        "location",
        "status",
        "retry_count",
        "max_retries",
        "next_retry_at",
        "created_at",
    ]
    list_filter = ["request_type", "status", "provider"]
    search_fields = ["error_message"]
    readonly_fields = ["created_at", "updated_at", "completed_at"]
    actions = ["requeue"]

    @admin.action(description="Requeue for immediate retry")
    def requeue(self, request: HttpRequest, queryset: QuerySet[Any]) -> None:
        updated = queryset.exclude(status=FailedRequestStatus.COMPLETED).update(
            status=FailedRequestStatus.PENDING,
            retry_count=0,
            next_retry_at=None,
        )
        self.message_user(request, f"Requeued {updated} requests")
