"""
Seed script creating the bootstrap administrator.

The ADMIN role is never handed out by the sign-up or approval flows, so the
first administrator has to be created here. Running it again is harmless.

Usage:
    uv run python -m scripts.seed_admin
"""
import asyncio
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db, init_db
from app.features.users.dependencies import load_user_by_username
from app.features.users.models import User, UserRole, UserStatus
from app.utils import get_logger


log = get_logger(__name__)


async def seed_admin(db: AsyncSession, username: str, name: str) -> User:
    """Create the administrator account if it does not exist yet."""
    existing = await load_user_by_username(db, username)
    if existing:
        log.info(f"Admin account already exists: {username}")
        return existing
    
    now = datetime.now(timezone.utc)
    admin = User(
        username=username,
        name=name,
        role=UserRole.ADMIN,
        status=UserStatus.APPROVED,
        approved_at=now,
        approved_by="SYSTEM",
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    log.info(f"Created admin account: {username}")
    return admin


async def main():
    """Main seeding function."""
    log.info("Initializing database...")
    await init_db()
    
    async for db in get_db():
        try:
            await seed_admin(db, config.ADMIN_USERNAME, config.ADMIN_NAME)
            log.info("Admin seeding completed successfully!")
        except Exception as e:
            log.error(f"Error seeding admin account: {e}", exc_info=True)
            await db.rollback()
            raise
        
        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
