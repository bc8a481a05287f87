"""
Create every table the planner reads and writes.

    python -m scripts.init_db
"""
from __future__ import annotations

import asyncio
import logging

from config import settings
from services.db import create_all, engine


async def _init() -> None:
    await create_all()
    await engine().dispose()
    print("✓ tables created")


def main() -> None:
    logging.basicConfig(level=settings.log_level)
    asyncio.run(_init())


if __name__ == "__main__":  # pragma: no cover
    main()
