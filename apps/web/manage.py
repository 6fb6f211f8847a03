#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""

import os
import sys
from pathlib import Path


def main() -> None:
    """Run administrative tasks."""
    # Make ``apps.web`` and ``orderhub_schemas`` importable from a checkout
    root = Path(__file__).resolve().parents[2]
    sys.path[:0] = [str(root), str(root / "packages" / "schemas")]
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "apps.web.config.settings")
    from django.core.management import execute_from_command_line  # noqa: PLC0415

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
