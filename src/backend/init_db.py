"""Initialize database tables from SQLModel models."""
import asyncio

from core.config import settings
from core.database import close_db, create_engine_from_settings, init_db


async def main():
    """Create all tables."""
    engine = create_engine_from_settings(settings.database)
    try:
        await init_db(engine)
    finally:
        await close_db(engine)
    print("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(main())
