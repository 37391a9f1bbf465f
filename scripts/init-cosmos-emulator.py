#!/usr/bin/env python3
"""
Initialize the Cosmos DB Emulator for ProductScout local development.

Creates the database and the product-votes container, and optionally seeds
a few vote requests so the leaderboard and queue have something to show.

Prerequisites:
1. Install Cosmos DB Emulator: https://aka.ms/cosmosdb-emulator
2. Start the emulator (it runs on https://localhost:8081)
3. Run this script: python scripts/init-cosmos-emulator.py [--seed]

The emulator uses a well-known key that is safe for local development only.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent / "src" / "backend"
sys.path.insert(0, str(backend_path))

EMULATOR_CONNECTION_STRING = (
    "AccountEndpoint=https://localhost:8081/;"
    "AccountKey=C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw==;"
)

# Settings are read at import time
os.environ.setdefault("AZURE_COSMOS_CONNECTION_STRING", EMULATOR_CONNECTION_STRING)
os.environ.setdefault("AZURE_COSMOS_DISABLE_SSL", "true")

from core.exceptions import ConcurrentModificationError  # noqa: E402
from db.cosmos_session import CONTAINERS, close_cosmos, init_cosmos  # noqa: E402
from models.product_vote import VOTE_WEIGHTS, ProductVoteDocument, VoteType  # noqa: E402
from repositories.cosmos_product_vote_repository import CosmosProductVoteRepository  # noqa: E402

# barcode, name, brand, voters
SAMPLE_REQUESTS = [
    ("5000328657950", "Oat Drink Barista Edition", "Oatly", 40),
    ("3017620422003", "Hazelnut Spread", "Nutella", 120),
    ("0049000028911", None, None, 3),
]


async def seed() -> None:
    repository = CosmosProductVoteRepository()
    for barcode, name, brand, voters in SAMPLE_REQUESTS:
        doc = ProductVoteDocument(
            barcode=barcode,
            product_name=name,
            brand=brand,
            voter_fingerprints=[f"seed-voter-{i}" for i in range(voters)],
            scan_count=voters,
        )
        doc.add_weight(voters * VOTE_WEIGHTS[VoteType.SCAN])
        try:
            await repository.create(doc)
            print(f"   ✅ Seeded {barcode} ({doc.total_weighted_votes} weighted votes)")
        except ConcurrentModificationError:
            print(f"   ⏭️  {barcode} already exists")


async def init_emulator(with_seed: bool) -> None:
    """Initialize the Cosmos DB Emulator with required database and containers."""
    print("🚀 Connecting to Cosmos DB Emulator...")

    try:
        await init_cosmos()
        for container_def in CONTAINERS:
            print(f"   ✅ Container '{container_def['name']}' (partition: {container_def['partition_key']})")

        if with_seed:
            print("\n🌱 Seeding sample vote requests...")
            await seed()

        print("\n✨ Cosmos DB Emulator initialization complete!")
        print("   Start the backend: cd src/backend && uvicorn main:app --reload")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("   Make sure the emulator is running: https://localhost:8081/_explorer/index.html")
        raise
    finally:
        await close_cosmos()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the Cosmos DB Emulator")
    parser.add_argument("--seed", action="store_true", help="Insert sample vote requests")
    args = parser.parse_args()

    print("=" * 60)
    print("ProductScout - Cosmos DB Emulator Initialization")
    print("=" * 60)
    asyncio.run(init_emulator(args.seed))
