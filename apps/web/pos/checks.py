"""System checks for POS integration settings."""

from typing import Any

from django.conf import settings
from django.core.checks import Error, register


def _vendors_in_use() -> list[str]:
    vendors = []
    if settings.SKYTAB_API_KEY:
        vendors.append("skytab")
    return vendors


@register()
def check_webhook_secrets(app_configs: Any, **kwargs: Any) -> list[Error]:  # noqa: ARG001
    """Every configured vendor needs a webhook secret when signatures are required."""
    if not settings.POS_REQUIRE_WEBHOOK_SECRET:
        return []

    errors: list[Error] = []
    for vendor in _vendors_in_use():
        setting = f"POS_{vendor.upper()}_WEBHOOK_SECRET"
        if not getattr(settings, setting, ""):
            errors.append(
                Error(
                    f"{setting} is not set but webhook signatures are required.",
                    hint=(
                        f"Set {setting}, or POS_REQUIRE_WEBHOOK_SECRET=False "
                        "for local development."
                    ),
                    id="pos.E001",
                )
            )
    return errors
