"""Registry mapping POS vendor identifiers to adapter instances."""

import logging

from django.conf import settings

from orderhub_schemas import POSProvider

from apps.web.pos.adapters.base import POSAdapter
from apps.web.pos.adapters.mock import MockPOSAdapter
from apps.web.pos.adapters.skytab import SkyTabAdapter, SkyTabClient
from apps.web.pos.exceptions import ProviderNotFoundError

logger = logging.getLogger(__name__)


class POSRegistry:
    """Lookup of adapters by vendor id ("skytab", "mock", ...)."""

    def __init__(self) -> None:
        self._adapters: dict[str, POSAdapter] = {}

    def register(self, vendor: POSProvider | str, adapter: POSAdapter) -> None:
        key = POSProvider(vendor).value
        if key in self._adapters:
            logger.info("Replacing registered POS adapter for %s", key)
        self._adapters[key] = adapter

    def get_provider(self, vendor: POSProvider | str) -> POSAdapter:
        """
        Return the adapter registered for ``vendor``.

        Raises:
            ProviderNotFoundError: If no adapter is registered under that id.
        """
        key = vendor.value if isinstance(vendor, POSProvider) else str(vendor)
        try:
            return self._adapters[key]
        except KeyError:
            raise ProviderNotFoundError(
                f"Unsupported POS provider: {key}. "
                f"Supported: {', '.join(self.vendors())}",
                provider=key,
            ) from None

    def vendors(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, vendor: object) -> bool:
        key = vendor.value if isinstance(vendor, POSProvider) else vendor
        return key in self._adapters


def build_registry() -> POSRegistry:
    """Wire the mock and SkyTab adapters from Django settings."""
    registry = POSRegistry()
    registry.register(POSProvider.MOCK, MockPOSAdapter())
    registry.register(
        POSProvider.SKYTAB,
        SkyTabAdapter(
            SkyTabClient.from_settings(),
            location_guid=settings.SKYTAB_LOCATION_ID,
        ),
    )
    return registry
