import asyncio

from database.seeds import seed_all
from shared.logging_config import configure_logging

if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_all())
