"""
Decorators for request handling and validation.
"""

import json
from collections.abc import Callable
from functools import wraps
from typing import Any

from django.contrib.auth.views import redirect_to_login
from django.core.cache import cache
from django.http import HttpRequest, JsonResponse


def staff_json_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator for operator JSON endpoints.

    Anonymous users are redirected to login; authenticated users without a
    client or staff flag get a 403 JSON error.
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        user: Any = request.user
        if not user.is_authenticated:
            return redirect_to_login(request.get_full_path())
        if not user.is_staff and getattr(request, "client", None) is None:
            return JsonResponse(
                {"error": {"code": "FORBIDDEN", "message": "Staff access required"}},
                status=403,
            )
        return view_func(request, *args, **kwargs)

    return wrapper


def idempotency_key_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator that requires an Idempotency-Key header for POST requests.

    If the same key is used twice, returns the cached response from the first request.
    Cached responses are stored for 24 hours.

    Usage:
        @idempotency_key_required
        def send_order(request, vendor):
            ...
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        key = request.headers.get("Idempotency-Key")

        if not key:
            return JsonResponse(
                {
                    "error": {
                        "code": "IDEMPOTENCY_KEY_REQUIRED",
                        "message": "Idempotency-Key header is required",
                    }
                },
                status=400,
            )

        cache_key = f"idempotency:{request.path}:{key}"
        cached = cache.get(cache_key)

        if cached:
            # Return cached response
            return JsonResponse(
                cached["data"],
                status=cached["status"],
            )

        # Call the actual view
        response = view_func(request, *args, **kwargs)

        # Cache successful responses for 24 hours
        if response.status_code < 400:
            cache.set(
                cache_key,
                {
                    "data": json.loads(response.content),
                    "status": response.status_code,
                },
                timeout=86400,  # 24 hours
            )

        return response

    return wrapper
