"""
Replay failed POS requests (order submissions, cancellations, 86 pushes).

Usage:
    uv run python apps/web/manage.py retry_pos_requests
    uv run python apps/web/manage.py retry_pos_requests --once
    uv run python apps/web/manage.py retry_pos_requests --interval 30 --batch-size 20
"""

import logging
import time
from typing import Any

from django.core.management.base import BaseCommand

from apps.web.pos.services import get_pos_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Retry failed POS requests with exponential backoff"

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run one sweep and exit (default: poll every 60s)",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=60,
            help="Polling interval in seconds (default: 60)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=10,
            help="Maximum requests to replay per sweep (default: 10)",
        )

    def handle(self, *_args: Any, **options: Any) -> None:
        once = options["once"]
        interval = options["interval"]
        batch_size = options["batch_size"]

        self.stdout.write("Starting POS retry worker...")
        service = get_pos_service()

        while True:
            outcomes = service.retry_failed_requests(batch_size=batch_size)

            if outcomes:
                succeeded = sum(1 for o in outcomes if o.succeeded)
                self.stdout.write(
                    f"Retried {len(outcomes)} requests: {succeeded} succeeded, "
                    f"{len(outcomes) - succeeded} failed"
                )

            if once:
                break

            time.sleep(interval)
