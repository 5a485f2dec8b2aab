import asyncio
import logging

from filebox.core.config import settings
from filebox.core.database import AsyncSessionLocal, init_models
from filebox.services.auth import AuthService
from filebox.utils.exceptions import FileboxException

logger = logging.getLogger(__name__)


async def init_admin() -> None:
    """Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD if none exists"""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")
        return

    async with AsyncSessionLocal() as db:
        try:
            user = await AuthService(db).ensure_admin(
                settings.ADMIN_EMAIL,
                settings.ADMIN_PASSWORD,
                settings.ADMIN_USERNAME
            )
        except FileboxException as e:
            logger.error(f"Admin bootstrap failed: {e.message}")
            return

    if user:
        logger.info("Admin user created")
    else:
        logger.info("Admin user already exists")


async def main() -> None:
    await init_models()
    await init_admin()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Creating initial data")
    asyncio.run(main())
    logger.info("Initial data created")
