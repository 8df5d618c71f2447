#!/usr/bin/env python
"""
Drain pending outbox events once, without a running worker.

Useful in development to push queued lifecycle events to the configured
webhook and see what failed.

Usage:
    python scripts/dispatch_outbox.py [batch_size]
"""

import asyncio
import sys

from trustwork.core.config import get_settings
from trustwork.core.logging import setup_logging
from trustwork.workers.jobs import dispatch_outbox


def main() -> None:
    setup_logging()
    settings = get_settings()
    batch_size = int(sys.argv[1]) if len(sys.argv) > 1 else settings.outbox_batch_size
    if not settings.events_webhook_url:
        print("EVENTS_WEBHOOK_URL is not set; nothing can be delivered")
        sys.exit(1)

    result = asyncio.run(dispatch_outbox(batch_size=batch_size))
    print(
        f"pending={result['pending']} delivered={result['delivered']} failed={result['failed']}"
    )


if __name__ == "__main__":
    main()
