"""
Pull menus from the POS for connected locations.

Usage:
    uv run python apps/web/manage.py sync_pos_menus
    uv run python apps/web/manage.py sync_pos_menus --location downtown --incremental
"""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from apps.web.pos.exceptions import POSError
from apps.web.pos.services import get_pos_service
from apps.web.restaurant.models import Location

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Sync menus from the POS for every connected location"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--location",
            help="Only sync the location with this slug or id",
        )
        parser.add_argument(
            "--incremental",
            action="store_true",
            help="Fetch changes since the last completed sync",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        locations = Location.objects.with_pos().filter(is_active=True)
        selector = options["location"]
        if selector:
            lookup = {"pk": int(selector)} if selector.isdigit() else {"slug": selector}
            locations = locations.filter(**lookup)
            if not locations.exists():
                raise CommandError(f"No POS-connected location matches {selector!r}")

        service = get_pos_service()
        failures = 0
        for location in locations.order_by("pk"):
            try:
                summary = service.sync_menu(location.pk, full=not options["incremental"])
            except POSError as e:
                failures += 1
                self.stderr.write(f"{location.slug}: sync failed: {e}")
                continue
            self.stdout.write(
                f"{location.slug}: {summary.items_synced} items, "
                f"{summary.modifiers_synced} modifiers, "
                f"{summary.items_deactivated} deactivated"
            )

        if failures:
            raise CommandError(f"{failures} location(s) failed to sync")
