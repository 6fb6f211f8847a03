"""POS adapters - implementations for each POS provider."""

from orderhub_schemas import POSProvider

from apps.web.pos.adapters.base import POSAdapter
from apps.web.pos.adapters.mock import MockPOSAdapter
from apps.web.pos.adapters.registry import POSRegistry, build_registry
from apps.web.pos.adapters.skytab import SkyTabAdapter, SkyTabClient


def get_adapter(provider: POSProvider | str) -> POSAdapter:
    """
    Get the adapter registered for a POS provider.

    Uses the registry built at app startup. Prefer this over instantiating
    adapters directly so every caller shares one SkyTab token cache and
    rate-limit window.

    Raises:
        ProviderNotFoundError: If the provider is not supported.

    Example:
        adapter = get_adapter(POSProvider.SKYTAB)
        menu = await adapter.sync_full_menu(location.pos_location_id)
    """
    from apps.web.pos.services import get_pos_service  # noqa: PLC0415

    return get_pos_service().get_provider(provider)


__all__ = [
    "MockPOSAdapter",
    "POSAdapter",
    "POSRegistry",
    "SkyTabAdapter",
    "SkyTabClient",
    "build_registry",
    "get_adapter",
]
