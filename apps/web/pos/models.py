"""POS models - webhook audit trail, menu sync log, and failed-request queue."""

import uuid
from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from apps.web.restaurant.models import POSProvider


def _default_max_retries() -> int:
    return settings.POS_FAILED_REQUEST_MAX_RETRIES


# =============================================================================
# Webhooks
# =============================================================================


class WebhookStatus(models.TextChoices):
    """Webhook processing status."""

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"  # e.g., no matching local record


class POSWebhookEvent(models.Model):
    """
    Audit trail for POS webhook events.

    Stores raw webhook payloads for debugging and reprocessing.
    ``event_id`` is the vendor's event id and the deduplication key.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    location = models.ForeignKey(
        "restaurant.Location",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pos_webhook_events",
    )

    # Provider info
    provider = models.CharField(
        max_length=20,
        choices=POSProvider.choices,
    )
    event_type = models.CharField(
        max_length=100,
        help_text="Event type from the POS system",
    )
    location_guid = models.CharField(
        max_length=255,
        blank=True,
        help_text="Vendor location id from the envelope",
    )

    # Payload
    payload = models.JSONField(
        help_text="Raw webhook payload",
    )
    signature = models.CharField(
        max_length=500,
        blank=True,
        help_text="Signature header for verification",
    )

    # Idempotency
    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Event ID from the POS system (for deduplication)",
    )

    # Processing status
    status = models.CharField(
        max_length=20,
        choices=WebhookStatus.choices,
        default=WebhookStatus.PENDING,
    )
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    error = models.TextField(
        blank=True,
        help_text="Error message if processing failed",
    )
    retry_count = models.PositiveIntegerField(default=0)

    # Processing metrics
    processing_duration_ms = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Time to process webhook in milliseconds",
    )

    class Meta:
        ordering = ["-received_at"]
        indexes = [
            models.Index(fields=["status", "received_at"]),
            models.Index(fields=["provider", "event_type"]),
            models.Index(fields=["location_guid"]),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.event_type} ({self.status})"

    @property
    def is_settled(self) -> bool:
        """Processed or skipped events must not be applied again."""
        return self.status in (WebhookStatus.PROCESSED, WebhookStatus.SKIPPED)


# =============================================================================
# Menu sync
# =============================================================================


class SyncType(models.TextChoices):
    FULL = "full", "Full"
    INCREMENTAL = "incremental", "Incremental"


class SyncStatus(models.TextChoices):
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class SyncLog(models.Model):
    """
    One row per menu-sync attempt.

    Created when the sync starts and finalized exactly once by that sync.
    """

    location = models.ForeignKey(
        "restaurant.Location",
        on_delete=models.CASCADE,
        related_name="sync_logs",
    )
    provider = models.CharField(max_length=20, choices=POSProvider.choices)
    sync_type = models.CharField(max_length=20, choices=SyncType.choices)
    status = models.CharField(
        max_length=20,
        choices=SyncStatus.choices,
        default=SyncStatus.IN_PROGRESS,
    )
    items_synced = models.PositiveIntegerField(default=0)
    modifiers_synced = models.PositiveIntegerField(default=0)
    items_deactivated = models.PositiveIntegerField(default=0)
    error_message = models.TextField(blank=True)
    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["location", "started_at"]),
            models.Index(fields=["location", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.sync_type} sync of {self.location_id} ({self.status})"

    def complete(
        self, items_synced: int, modifiers_synced: int, items_deactivated: int = 0
    ) -> None:
        self.status = SyncStatus.COMPLETED
        self.items_synced = items_synced
        self.modifiers_synced = modifiers_synced
        self.items_deactivated = items_deactivated
        self.completed_at = timezone.now()
        self.save(
            update_fields=[
                "status",
                "items_synced",
                "modifiers_synced",
                "items_deactivated",
                "completed_at",
            ]
        )

    def fail(self, error_message: str) -> None:
        self.status = SyncStatus.FAILED
        self.error_message = error_message
        self.completed_at = timezone.now()
        self.save(update_fields=["status", "error_message", "completed_at"])

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


# =============================================================================
# Failed-request queue
# =============================================================================


class FailedRequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    RETRYING = "retrying", "Retrying"
    COMPLETED = "completed", "Completed"
    ABANDONED = "abandoned", "Abandoned"  # needs manual intervention


class FailedRequestQuerySet(models.QuerySet["FailedRequest"]):
    def due(self, now: datetime | None = None) -> "FailedRequestQuerySet":
        """Rows the retry sweep may pick up, oldest first."""
        now = now or timezone.now()
        return (
            self.filter(
                status__in=[FailedRequestStatus.PENDING, FailedRequestStatus.RETRYING],
                retry_count__lt=F("max_retries"),
            )
            .filter(Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now))
            .order_by("created_at", "pk")
        )


class FailedRequest(models.Model):
    """
    A synchronous POS call that failed with a retryable condition.

    ``payload`` holds the JSON of one typed replay request; its
    ``request_type`` is mirrored in the column of the same name.
    """

    location = models.ForeignKey(
        "restaurant.Location",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="failed_pos_requests",
    )
    provider = models.CharField(max_length=20, choices=POSProvider.choices, blank=True)
    request_type = models.CharField(max_length=50)
    payload = models.JSONField()
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=_default_max_retries)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=FailedRequestStatus.choices,
        default=FailedRequestStatus.PENDING,
    )
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = FailedRequestQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "next_retry_at"]),
            models.Index(fields=["request_type"]),
        ]

    def __str__(self) -> str:
        return f"{self.request_type} #{self.pk} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            FailedRequestStatus.COMPLETED,
            FailedRequestStatus.ABANDONED,
        )
