import asyncio
import logging

from marketplace.core.config import settings
from marketplace.core.db import Database
from marketplace.services.categories import initialize_categories

log = logging.getLogger(__name__)


async def main():
    database = Database.from_settings(settings)
    try:
        async with database.sessionmaker() as db:
            created = await initialize_categories(db)
        print(f"Inserted {created} categories" if created else "Categories already exist")
    finally:
        await database.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
