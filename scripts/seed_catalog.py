#!/usr/bin/env python3
"""Seed the pricing catalog with common LLM models.

Usage:
    python -m scripts.seed_catalog
    # or from project root:
    python scripts/seed_catalog.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from paygent_engine.catalog.service import CatalogService
from paygent_engine.common.config import get_settings
from paygent_engine.common.currency import dollars_to_cents
from paygent_engine.common.database import DatabaseManager

# slug -> (input $ per 1M tokens, output $ per 1M tokens)
MODEL_SEEDS = {
    "gpt-4o": ("3.00", "15.00"),
    "gpt-4o-mini": ("0.15", "0.60"),
    "claude-3-5-sonnet": ("3.00", "15.00"),
    "claude-3-5-haiku": ("0.80", "4.00"),
    "gemini-1.5-pro": ("1.25", "5.00"),
}


async def seed_catalog() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = CatalogService(settings)

    async with db.get_session() as session:
        for slug, (input_dollars, output_dollars) in MODEL_SEEDS.items():
            if await svc.get_model_by_slug(session, slug):
                print(f"  [skip] {slug} already exists")
                continue
            await svc.create_model(
                session,
                slug=slug,
                input_cost_per_1m_tokens_cents=dollars_to_cents(input_dollars),
                output_cost_per_1m_tokens_cents=dollars_to_cents(output_dollars),
            )
            print(f"  [created] {slug}")

    await db.close()
    print(f"\nDone. {len(MODEL_SEEDS)} models in catalog.")


if __name__ == "__main__":
    asyncio.run(seed_catalog())
