"""
School operations.

Each operation declares the feature it needs; those acting on one school
also name the parameter holding it so the school grant is checked too.
"""
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.catalog import Feature
from app.features.permissions.enforcement import require_permission
from app.features.permissions.store import PermissionStore
from app.features.schools.dependencies import get_school_or_404
from app.features.schools.models import School
from app.features.schools.schemas import SchoolCreate, SchoolUpdate
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def list_accessible_schools(db: AsyncSession, user: User) -> List[School]:
    """Schools the user holds a grant for; every school for administrators."""
    stmt = select(School).order_by(School.name)
    if not user.is_admin:
        school_ids = await PermissionStore(db).list_school_ids(user.id)
        stmt = stmt.where(School.id.in_(school_ids))
    result = await db.execute(stmt)
    return list(result.scalars().all())


@require_permission(Feature.SCHOOL_MANAGEMENT)
async def create_school(db: AsyncSession, data: SchoolCreate) -> School:
    school = School(**data.model_dump())
    db.add(school)
    await db.commit()
    await db.refresh(school)
    log.info("Created school %s (%s)", school.id, school.name)
    return school


@require_permission(Feature.SCHOOL_MANAGEMENT, scope_param="school_id")
async def update_school(db: AsyncSession, school_id: int, data: SchoolUpdate) -> School:
    school = await get_school_or_404(db, school_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(school, key, value)
    await db.commit()
    await db.refresh(school)
    return school


@require_permission(Feature.DATA_DELETE, scope_param="school_id")
async def delete_school(db: AsyncSession, school_id: int) -> None:
    school = await get_school_or_404(db, school_id)
    await db.delete(school)
    await db.commit()
    log.info("Deleted school %s", school_id)


@require_permission(Feature.DEVICE_LIST, scope_param="school_id")
async def get_school_detail(db: AsyncSession, school_id: int) -> School:
    # ADMIN skips the existence check in the guard
    return await get_school_or_404(db, school_id)
