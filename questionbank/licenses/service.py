import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.config import settings
from questionbank.licenses.models import License

logger = logging.getLogger(__name__)


class LicenseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def default_license(self) -> License:
        """The license new questions start with, created from settings on first use."""
        result = await self.db.execute(
            select(License).where(License.is_default == True).order_by(License.id).limit(1)
        )
        license = result.scalar_one_or_none()
        if license:
            return license

        license = License(
            short_name=settings.DEFAULT_LICENSE_SHORT_NAME,
            long_name=settings.DEFAULT_LICENSE_LONG_NAME,
            url=settings.DEFAULT_LICENSE_URL,
            is_default=True,
        )
        self.db.add(license)
        await self.db.flush()
        logger.info(f"Created default license {license.short_name}")
        return license
