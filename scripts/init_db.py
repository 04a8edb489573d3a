"""
Create the user management tables.
Run with: python -m scripts.init_db
Run with: python -m scripts.init_db --reset  (drops every table first; destroys data)
"""

import argparse
import asyncio
from user_management.database import engine, Base
from user_management import models  # noqa: F401


async def init(reset: bool = False):
    async with engine.begin() as conn:
        if reset:
            print("Dropping user management tables...")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the user management tables")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    args = parser.parse_args()
    asyncio.run(init(args.reset))
