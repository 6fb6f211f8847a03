"""SkyTab (Shift4) POS integration."""

from apps.web.pos.adapters.skytab.client import SkyTabClient, SlidingWindowRateLimiter
from apps.web.pos.adapters.skytab.provider import SkyTabAdapter

__all__ = ["SkyTabAdapter", "SkyTabClient", "SlidingWindowRateLimiter"]
