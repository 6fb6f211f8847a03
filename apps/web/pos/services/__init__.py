"""POS services - webhook processing, menu sync, order submission and retries."""

from django.apps import apps

from apps.web.pos.services.failed_requests import (
    RetryOutcome,
    due_failed_requests,
    enqueue_failed_request,
    next_retry_delay,
    retry_failed_requests,
)
from apps.web.pos.services.order_submission import (
    OrderSubmissionError,
    build_pos_order,
)
from apps.web.pos.services.pos_service import MenuSyncSummary, POSService
from apps.web.pos.services.webhook_processor import (
    check_signature,
    mark_webhook_failed,
    process_pending_webhooks,
    process_webhook,
    record_webhook,
    verify_signature,
)


def get_pos_service() -> POSService:
    """The process-wide POSService built in PosConfig.ready()."""
    return apps.get_app_config("pos").service


__all__ = [
    "MenuSyncSummary",
    "OrderSubmissionError",
    "POSService",
    "RetryOutcome",
    "build_pos_order",
    "check_signature",
    "due_failed_requests",
    "enqueue_failed_request",
    "get_pos_service",
    "mark_webhook_failed",
    "next_retry_delay",
    "process_pending_webhooks",
    "process_webhook",
    "record_webhook",
    "retry_failed_requests",
    "verify_signature",
]
