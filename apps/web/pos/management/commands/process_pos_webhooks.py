"""
Process recorded POS webhook events.

Picks up events left pending (when POS_WEBHOOK_PROCESS_INLINE is off) and,
with --include-failed, events whose processing failed earlier.

Usage:
    uv run python apps/web/manage.py process_pos_webhooks
    uv run python apps/web/manage.py process_pos_webhooks --once --include-failed
"""

import logging
import time
from typing import Any

from django.core.management.base import BaseCommand

from apps.web.pos.services import process_pending_webhooks

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Process pending POS webhook events"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--once",
            action="store_true",
            help="Process once and exit (default: poll every 10s)",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=10,
            help="Polling interval in seconds (default: 10)",
        )
        parser.add_argument(
            "--include-failed",
            action="store_true",
            help="Also retry failed events under --max-retries",
        )
        parser.add_argument(
            "--max-retries",
            type=int,
            default=5,
            help="Retry budget for failed events (default: 5)",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum events per batch (default: 100)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        self.stdout.write("Starting POS webhook processor...")

        while True:
            processed = process_pending_webhooks(
                limit=options["limit"],
                include_failed=options["include_failed"],
                max_retries=options["max_retries"],
            )

            if processed:
                self.stdout.write(f"Processed {processed} webhooks")

            if options["once"]:
                break

            time.sleep(options["interval"])
