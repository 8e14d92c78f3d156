import asyncio
import os
import logging
from services.db import engine, Base, SessionLocal
from models import user, session, share_link, invite, photo  # important: force-load all models
from dao.user_dao import UserDAO
from services.auth import get_password_hash
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

async def init_models():
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database tables ready: {list(Base.metadata.tables.keys())}")

async def seed_admin(email: str, password: str):
    """Create the admin account, or reset its password and role if it exists."""
    email = SecurityUtils.sanitize_email(email)
    async with SessionLocal() as db:
        dao = UserDAO(db)
        existing = await dao.get_by_email(email)
        if existing:
            existing.password_hash = get_password_hash(password)
            existing.role = user.UserRole.ADMIN
            await db.commit()
            logger.info(f"Updated admin user {email}")
            return existing

        admin = await dao.create_user(
            user.User(email=email, password_hash=get_password_hash(password), role=user.UserRole.ADMIN)
        )
        logger.info(f"Created admin user {email}")
        return admin

async def main():
    await init_models()

    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if admin_email and admin_password:
        await seed_admin(admin_email, admin_password)
    else:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin seed")

    await engine.dispose()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(main())
