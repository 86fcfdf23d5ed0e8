import asyncio
import logging
from questionbank.database import engine, Base, AsyncSessionLocal

# Import all models to ensure they are registered in Base.metadata
import questionbank.models  # noqa: F401
from questionbank.licenses.service import LicenseService

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

async def init_models():
    async with engine.begin() as conn:
        # await conn.run_sync(Base.metadata.drop_all) # Optional: Reset DB
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

    async with AsyncSessionLocal() as session:
        license = await LicenseService(session).default_license()
        await session.commit()
        print(f"Default license: {license.short_name}")

if __name__ == "__main__":
    asyncio.run(init_models())
