"""
School lookups shared by routes and the permission layer.
"""
from typing import Any, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.schools.models import School


async def load_school(db: AsyncSession, school_id: Any) -> Optional[School]:
    """Look up a school. Ids that cannot be a school's integer key match nothing."""
    if isinstance(school_id, str) and school_id.isdigit():
        school_id = int(school_id)
    if not isinstance(school_id, int) or isinstance(school_id, bool):
        return None
    return await db.get(School, school_id)


async def get_school_or_404(db: AsyncSession, school_id: int) -> School:
    """
    Get school by ID or raise 404.
    
    Raises:
        HTTPException: 404 if school not found
    """
    school = await load_school(db, school_id)
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )
    return school
