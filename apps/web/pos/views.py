"""
POS API views - vendor webhooks and staff tooling.

Endpoints (all under /pos/{vendor}/):
- webhook: signed event delivery from the POS, always acknowledged
- sync-menu, send-order, cancel-order, availability, retry-failed: actions
- unavailable, status, sync-history: read-only reports
"""

import json
import logging
from functools import wraps
from typing import Any, TypeVar

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from apps.web.core.decorators import idempotency_key_required, staff_json_required
from apps.web.pos.exceptions import (
    MenuSyncError,
    POSAPIError,
    POSConfigurationError,
    POSError,
    POSOrderError,
    POSSignatureError,
    POSWebhookError,
    ProviderNotFoundError,
)
from apps.web.pos.serializers import (
    AvailabilityRequest,
    ErrorBody,
    ErrorResponse,
    LocationQuery,
    OptionalLocationQuery,
    OrderActionRequest,
    RetryFailedRequest,
    SyncHistoryQuery,
    SyncMenuRequest,
    ValidationErrorDetail,
)
from apps.web.pos.services import (
    OrderSubmissionError,
    check_signature,
    get_pos_service,
    mark_webhook_failed,
    process_webhook,
    record_webhook,
)
from apps.web.restaurant.models import Location, MenuItem, Order

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class _BadRequest(Exception):
    def __init__(self, response: JsonResponse) -> None:
        self.response = response


def _error(
    code: str,
    message: str,
    status: int,
    details: list[ValidationErrorDetail] | None = None,
    **extra: Any,
) -> JsonResponse:
    """Build the standard ``{"error": {"code", "message"}}`` response."""
    body = ErrorResponse(
        error=ErrorBody(code=code, message=message, details=details or [])
    ).model_dump(exclude_defaults=True)
    body["error"].update(extra)
    return JsonResponse(body, status=status)


def _parse(schema: type[SchemaT], data: Any) -> SchemaT:
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        details = [
            ValidationErrorDetail(
                field=".".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
            )
            for err in e.errors()
        ]
        raise _BadRequest(
            _error("VALIDATION_ERROR", "Invalid request", 400, details=details)
        ) from e


def _parse_body(request: HttpRequest, schema: type[SchemaT]) -> SchemaT:
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError as e:
        raise _BadRequest(
            _error("INVALID_JSON", "Invalid JSON in request body", 400)
        ) from e
    return _parse(schema, data)


def _parse_query(request: HttpRequest, schema: type[SchemaT]) -> SchemaT:
    return _parse(schema, request.GET.dict())


def _pos_error_response(error: POSError) -> JsonResponse:
    """Translate a POS exception into an error response."""
    if isinstance(error, ProviderNotFoundError):
        return _error("PROVIDER_NOT_FOUND", error.message, 404)
    if isinstance(error, POSConfigurationError):
        return _error("POS_NOT_CONFIGURED", error.message, 400)
    if isinstance(error, MenuSyncError):
        return _error(
            "MENU_SYNC_FAILED", error.message, 500, sync_log_id=error.sync_log_id
        )
    if isinstance(error, POSOrderError):
        return _error("ORDER_REJECTED", error.message, 400)
    if isinstance(error, POSAPIError):
        return _error(error.code, error.message, 500)
    return _error("POS_ERROR", error.message, 500)


def _location_or_404(request: HttpRequest, vendor: str, location_id: int) -> Location:
    location = (
        Location.objects.for_client(request)
        .filter(pk=location_id, pos_provider=vendor)
        .first()
    )
    if location is None:
        raise _BadRequest(
            _error("NOT_FOUND", f"No {vendor} location {location_id}", 404)
        )
    return location


def _order_or_404(request: HttpRequest, vendor: str, order_id: int) -> Order:
    order = (
        Order.objects.for_client(request)
        .filter(pk=order_id, location__pos_provider=vendor)
        .first()
    )
    if order is None:
        raise _BadRequest(_error("NOT_FOUND", f"Order {order_id} not found", 404))
    return order


def _handle_errors(view: Any) -> Any:
    """Map validation and POS errors raised inside a staff view to JSON."""

    @wraps(view)
    def wrapper(request: HttpRequest, vendor: str, *args: Any, **kwargs: Any) -> Any:
        try:
            get_pos_service().get_provider(vendor)
            return view(request, vendor, *args, **kwargs)
        except _BadRequest as e:
            return e.response
        except POSError as e:
            logger.warning("POS %s request failed: %s", vendor, e)
            return _pos_error_response(e)

    return wrapper


# =============================================================================
# Webhooks
# =============================================================================


@csrf_exempt
@require_POST
def pos_webhook(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    Handle POS webhook events.

    POST /pos/{vendor}/webhook

    An invalid signature is rejected with 401 before anything is stored.
    Every other delivery is acknowledged with 200 so the vendor does not
    retry storms; failures are recorded on the event row instead. A delivery
    that has an event id is stored before it is parsed, so one that cannot
    be parsed is kept as a failed row.
    """
    try:
        adapter = get_pos_service().get_provider(vendor)
    except ProviderNotFoundError as e:
        return _error("PROVIDER_NOT_FOUND", e.message, 404)

    signature = request.headers.get(adapter.signature_header, "")
    try:
        check_signature(vendor, request.body, signature)
    except POSSignatureError as e:
        logger.warning("Invalid %s webhook signature", vendor)
        return _error("INVALID_SIGNATURE", e.message, 401)

    try:
        payload = json.loads(request.body)
        if not isinstance(payload, dict):
            raise POSWebhookError("Webhook body must be an object", provider=vendor)
        webhook, is_duplicate = record_webhook(vendor, payload, signature)
    except (json.JSONDecodeError, POSWebhookError) as e:
        logger.warning("Malformed %s webhook: %s", vendor, e)
        return JsonResponse({"received": True, "error": str(e)})
    except Exception as e:
        logger.exception("Error recording %s webhook: %s", vendor, e)
        return JsonResponse({"received": True, "error": "Webhook processing failed"})

    if is_duplicate:
        return JsonResponse({"received": True, "duplicate": True})

    try:
        adapter.parse_webhook(payload)
    except Exception as e:
        logger.warning("Malformed %s webhook %s: %s", vendor, webhook.event_id, e)
        mark_webhook_failed(webhook, str(e))
        return JsonResponse({"received": True, "error": str(e)})

    try:
        if settings.POS_WEBHOOK_PROCESS_INLINE:
            process_webhook(str(webhook.id))
    except Exception as e:
        # The event row keeps the failure; the worker retries it
        logger.exception("Error handling %s webhook: %s", vendor, e)
        return JsonResponse({"received": True, "error": "Webhook processing failed"})

    return JsonResponse({"received": True})


# =============================================================================
# Staff actions
# =============================================================================


@csrf_exempt
@require_POST
@staff_json_required
@_handle_errors
def sync_menu(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    POST /pos/{vendor}/sync-menu

    Request body: SyncMenuRequest
    Response: MenuSyncSummary, or 500 with sync_log_id on failure
    """
    body = _parse_body(request, SyncMenuRequest)
    location = _location_or_404(request, vendor, body.location_id)
    summary = get_pos_service().sync_menu(location.pk, full=body.full)
    return JsonResponse({"success": True, **summary.to_dict()})


@csrf_exempt
@require_POST
@staff_json_required
@idempotency_key_required
@_handle_errors
def send_order(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    POST /pos/{vendor}/send-order

    Request body: OrderActionRequest
    Response: POS ticket id, or 500 with ``queued`` when parked for retry
    """
    body = _parse_body(request, OrderActionRequest)
    order = _order_or_404(request, vendor, body.order_id)
    try:
        result = get_pos_service().send_order_to_pos(order.pk)
    except OrderSubmissionError as e:
        return _error(
            "ORDER_SUBMIT_FAILED",
            e.message,
            500,
            retryable=e.is_retryable,
            queued=e.queued,
        )
    return JsonResponse(
        {
            "success": result.success,
            "pos_order_id": result.pos_order_id,
            "status": result.status.value,
        }
    )


@csrf_exempt
@require_POST
@staff_json_required
@idempotency_key_required
@_handle_errors
def cancel_order(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    POST /pos/{vendor}/cancel-order

    Request body: OrderActionRequest
    """
    body = _parse_body(request, OrderActionRequest)
    order = _order_or_404(request, vendor, body.order_id)
    cancelled = get_pos_service().cancel_order_in_pos(order.pk)
    return JsonResponse({"success": cancelled, "order_id": order.pk})


@csrf_exempt
@require_POST
@staff_json_required
@_handle_errors
def update_availability(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    POST /pos/{vendor}/availability

    86 or restore a menu item at the POS and locally.
    """
    body = _parse_body(request, AvailabilityRequest)
    item = (
        MenuItem.objects.for_client(request)
        .filter(pk=body.item_id, category__menu__location__pos_provider=vendor)
        .first()
    )
    if item is None:
        return _error("NOT_FOUND", f"Menu item {body.item_id} not found", 404)

    get_pos_service().update_item_availability(item.pk, body.is_available)
    return JsonResponse(
        {"success": True, "item_id": item.pk, "is_available": body.is_available}
    )


@csrf_exempt
@require_POST
@staff_json_required
@_handle_errors
def retry_failed(request: HttpRequest, vendor: str) -> JsonResponse:
    """
    POST /pos/{vendor}/retry-failed

    Run one sweep of the failed-request queue.
    """
    body = _parse_body(request, RetryFailedRequest)
    outcomes = get_pos_service().retry_failed_requests(batch_size=body.batch_size)
    return JsonResponse(
        {
            "attempted": len(outcomes),
            "succeeded": sum(1 for o in outcomes if o.succeeded),
            "results": [
                {
                    "id": o.request_id,
                    "request_type": o.request_type,
                    "succeeded": o.succeeded,
                    "status": o.status,
                    "error": o.error,
                }
                for o in outcomes
            ],
        }
    )


# =============================================================================
# Staff reports
# =============================================================================


@require_GET
@staff_json_required
@_handle_errors
def unavailable_items(request: HttpRequest, vendor: str) -> JsonResponse:
    """GET /pos/{vendor}/unavailable?location_id= - items the POS reports 86'd."""
    query = _parse_query(request, LocationQuery)
    location = _location_or_404(request, vendor, query.location_id)
    item_ids = get_pos_service().get_unavailable_items(location.pk)
    return JsonResponse({"location_id": location.pk, "unavailable_item_ids": item_ids})


@require_GET
@staff_json_required
@_handle_errors
def integration_status(request: HttpRequest, vendor: str) -> JsonResponse:
    """GET /pos/{vendor}/status[?location_id=] - connectivity and recent activity."""
    query = _parse_query(request, OptionalLocationQuery)
    location_id = None
    if query.location_id is not None:
        location_id = _location_or_404(request, vendor, query.location_id).pk
    return JsonResponse(get_pos_service().status_summary(location_id))


@require_GET
@staff_json_required
@_handle_errors
def sync_history(request: HttpRequest, vendor: str) -> JsonResponse:
    """GET /pos/{vendor}/sync-history?location_id=&limit=&offset="""
    query = _parse_query(request, SyncHistoryQuery)
    location = _location_or_404(request, vendor, query.location_id)
    return JsonResponse(
        get_pos_service().sync_history(
            location.pk, limit=query.limit, offset=query.offset
        )
    )
