#!/usr/bin/env python3
"""
Seed the skill catalog: skills, assessment templates and their question banks.

Existing rows with the same ids are left untouched, so the script can be
re-run safely after a deploy.

Run with:
    python scripts/seed_catalog.py
"""

import asyncio

from sqlalchemy import select

from trustwork.core.clock import SystemClock
from trustwork.core.logging import setup_logging
from trustwork.domain.reference_data import build_catalog
from trustwork.infrastructure.db import get_session_factory


async def seed_catalog() -> int:
    session_factory = get_session_factory()
    inserted = 0
    async with session_factory() as session:
        for row in build_catalog(SystemClock().now()):
            model = type(row)
            existing = await session.scalar(select(model.id).where(model.id == row.id))
            if existing is not None:
                continue
            session.add(row)
            # parents must exist before their children are flushed
            await session.flush()
            inserted += 1
        await session.commit()
    return inserted


def main() -> None:
    setup_logging()
    inserted = asyncio.run(seed_catalog())
    print(f"Seeded {inserted} catalog rows")


if __name__ == "__main__":
    main()
