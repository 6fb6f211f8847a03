"""Django app configuration for POS integration."""

from typing import TYPE_CHECKING

from django.apps import AppConfig

if TYPE_CHECKING:
    from apps.web.pos.services.pos_service import POSService


class PosConfig(AppConfig):
    """
    POS integration app configuration.

    Builds the adapter registry and the POSService once per process, so
    every caller shares one SkyTab token cache and rate-limit window.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.pos"
    label = "pos"
    verbose_name = "POS Integration"

    service: "POSService"

    def ready(self) -> None:
        from apps.web.pos import checks  # noqa: F401, PLC0415
        from apps.web.pos.adapters.registry import build_registry  # noqa: PLC0415
        from apps.web.pos.services.pos_service import POSService  # noqa: PLC0415

        self.service = POSService(build_registry())
