"""
Failed POS request queue - durable retry for calls that failed transiently.

Rows are written when an order submission, cancellation or availability push
fails with a retryable error, and replayed later by the retry sweep
(``manage.py retry_pos_requests``) with exponential backoff.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone
from pydantic import ValidationError

from orderhub_schemas import FailedRequestPayload, parse_failed_request_payload

from apps.web.pos.models import FailedRequest, FailedRequestStatus

if TYPE_CHECKING:
    from apps.web.pos.services.pos_service import POSService
    from apps.web.restaurant.models import Location

logger = logging.getLogger(__name__)

# Delay before the first replay of a newly queued request
INITIAL_RETRY_DELAY = timedelta(seconds=60)
MAX_RETRY_DELAY = timedelta(minutes=30)


@dataclass
class RetryOutcome:
    """Result of replaying one queued request."""

    request_id: int
    request_type: str
    succeeded: bool
    status: str
    error: str = ""


def next_retry_delay(retry_count: int) -> timedelta:
    """Backoff after ``retry_count`` failed replays: 2s, 4s, 8s ... capped at 30 min."""
    return min(timedelta(milliseconds=1000 * 2**retry_count), MAX_RETRY_DELAY)


def enqueue_failed_request(
    request: FailedRequestPayload,
    error_message: str,
    location: "Location | None" = None,
    provider: str = "",
    max_retries: int | None = None,
) -> FailedRequest:
    """
    Park a failed POS call for later replay.

    Args:
        request: Typed replay request (order submit/cancel, availability push).
        error_message: Why the original call failed.
        location: Location the call was made for, when known.
        provider: Vendor id the call was made against.
        max_retries: Replay budget (defaults to POS_FAILED_REQUEST_MAX_RETRIES).

    Returns:
        The created FailedRequest row.
    """
    failed = FailedRequest(
        location=location,
        provider=provider or (location.pos_provider if location else ""),
        request_type=request.request_type,
        payload=request.model_dump(mode="json"),
        error_message=error_message,
        next_retry_at=timezone.now() + INITIAL_RETRY_DELAY,
    )
    if max_retries is not None:
        failed.max_retries = max_retries
    failed.save()

    logger.warning(
        "Queued failed POS %s request #%s: %s",
        failed.request_type,
        failed.pk,
        error_message,
    )
    return failed


def due_failed_requests(
    batch_size: int = 10, now: datetime | None = None
) -> list[FailedRequest]:
    """Rows eligible for replay now, oldest first."""
    return list(FailedRequest.objects.due(now)[:batch_size])


def _claim_due_requests(batch_size: int, now: datetime) -> list[FailedRequest]:
    """Lock a batch of due rows and flip them to retrying."""
    with transaction.atomic():
        batch = list(
            FailedRequest.objects.due(now).select_for_update(skip_locked=True)[
                :batch_size
            ]
        )
        for failed in batch:
            failed.status = FailedRequestStatus.RETRYING
            failed.save(update_fields=["status", "updated_at"])
    return batch


def _mark_completed(failed: FailedRequest) -> None:
    failed.status = FailedRequestStatus.COMPLETED
    failed.completed_at = timezone.now()
    failed.save(update_fields=["status", "completed_at", "updated_at"])


def _mark_failed(failed: FailedRequest, error: str, now: datetime) -> None:
    failed.retry_count += 1
    failed.error_message = error
    if failed.retry_count >= failed.max_retries:
        failed.status = FailedRequestStatus.ABANDONED
        failed.next_retry_at = None
        logger.error(
            "Abandoning POS %s request #%s after %d attempts: %s",
            failed.request_type,
            failed.pk,
            failed.retry_count,
            error,
        )
    else:
        failed.status = FailedRequestStatus.PENDING
        failed.next_retry_at = now + next_retry_delay(failed.retry_count)
    failed.save(
        update_fields=[
            "retry_count",
            "error_message",
            "status",
            "next_retry_at",
            "updated_at",
        ]
    )


def retry_failed_requests(
    service: "POSService",
    batch_size: int = 10,
    now: datetime | None = None,
) -> list[RetryOutcome]:
    """
    Replay a batch of due requests through ``service``.

    A row is attempted at most once per sweep. Success marks it completed;
    failure increments ``retry_count`` and either reschedules it with
    backoff or abandons it once the budget is spent.

    Returns:
        One RetryOutcome per attempted row.
    """
    now = now or timezone.now()
    outcomes: list[RetryOutcome] = []

    for failed in _claim_due_requests(batch_size, now):
        try:
            request = parse_failed_request_payload(failed.payload)
        except ValidationError as e:
            # A payload we cannot read will never succeed
            failed.status = FailedRequestStatus.ABANDONED
            failed.error_message = f"Invalid payload: {e}"
            failed.save(update_fields=["status", "error_message", "updated_at"])
            logger.error("Abandoning unreadable failed request #%s", failed.pk)
            outcomes.append(
                RetryOutcome(
                    failed.pk, failed.request_type, False, failed.status, str(e)
                )
            )
            continue

        try:
            service.replay_request(request)
        except Exception as e:
            logger.warning(
                "Retry of POS %s request #%s failed: %s",
                failed.request_type,
                failed.pk,
                e,
            )
            _mark_failed(failed, str(e), now)
            outcomes.append(
                RetryOutcome(
                    failed.pk, failed.request_type, False, failed.status, str(e)
                )
            )
        else:
            _mark_completed(failed)
            logger.info(
                "Retried POS %s request #%s successfully",
                failed.request_type,
                failed.pk,
            )
            outcomes.append(
                RetryOutcome(failed.pk, failed.request_type, True, failed.status)
            )

    return outcomes
