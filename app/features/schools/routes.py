"""
School routes.

Mutations go through the permission-guarded service operations; a denial
surfaces as AuthorizationError and is mapped to 401/403/404 by the app.
"""
from typing import Annotated, List
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Feature
from app.features.permissions.dependencies import get_permission_store, require_feature
from app.features.permissions.helpers import check_scoped_or_deny, visibility_attributes, visibility_flags
from app.features.permissions.store import PermissionStore
from app.features.schools import service
from app.features.schools.dependencies import load_school
from app.features.schools.models import School
from app.features.schools.schemas import SchoolCreate, SchoolUpdate, SchoolResponse
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter(tags=["schools"])


@router.get("/", response_model=List[SchoolResponse])
async def list_schools(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
):
    """List the schools the caller may act on."""
    return await service.list_accessible_schools(db, user)


@router.get("/manage")
async def manage_schools(
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
    user: Annotated[User, Depends(require_feature(Feature.SCHOOL_MANAGEMENT))],
):
    """Every school, for the management page. Requires SCHOOL_MANAGEMENT."""
    result = await db.execute(select(School).order_by(School.name))
    return {
        "schools": [SchoolResponse.model_validate(s).model_dump(mode="json") for s in result.scalars()],
        "permissions": visibility_attributes(await visibility_flags(store, user)),
    }


@router.post("/", response_model=SchoolResponse, status_code=status.HTTP_201_CREATED)
async def create_school(
    school: SchoolCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a school. Requires SCHOOL_MANAGEMENT."""
    return await service.create_school(db, school)


@router.get("/{school_id}", response_model=SchoolResponse)
async def get_school(
    school_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get one school. Requires DEVICE_LIST and access to the school."""
    return await service.get_school_detail(db, school_id)


@router.patch("/{school_id}", response_model=SchoolResponse)
async def update_school(
    school_id: int,
    school_update: SchoolUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a school. Requires SCHOOL_MANAGEMENT and access to the school."""
    return await service.update_school(db, school_id, school_update)


@router.delete("/{school_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_school(
    school_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete a school and every grant on it. Requires DATA_DELETE and access to the school."""
    await service.delete_school(db, school_id)
    return None


@router.get("/{school_id}/overview")
async def school_overview(
    school_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
    user: Annotated[User, Depends(get_current_user)],
):
    """
    Page data for the school's device overview.

    A denied visitor is redirected to the front page with the reason in the
    "error" query parameter instead of getting an error response.
    """
    async def find_school(candidate):
        return await load_school(db, candidate)

    check = await check_scoped_or_deny(
        store, user, Feature.DEVICE_LIST, school_id, load_school=find_school
    )
    if not check.allowed:
        return RedirectResponse(
            url=f"/?{urlencode({'error': check.message})}",
            status_code=status.HTTP_303_SEE_OTHER,
        )

    school = await load_school(db, school_id)
    return {
        "school": SchoolResponse.model_validate(school).model_dump(mode="json"),
        "permissions": visibility_attributes(await visibility_flags(store, user)),
    }
