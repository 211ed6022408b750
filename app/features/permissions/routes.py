"""
Permission management API routes.

Administrators grant and revoke features and schools here. Any signed-in
user can ask for their navigation flags and for a permission decision about
themselves.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Feature
from app.features.permissions.dependencies import get_permission_store
from app.features.permissions.engine import authorize
from app.features.permissions.errors import DenyKind
from app.features.permissions.helpers import (
    SCHOOL_DENIED_MESSAGE,
    SCHOOL_NOT_FOUND_MESSAGE,
    permission_denied_message,
    visibility_attributes,
    visibility_flags,
)
from app.features.permissions.schemas import (
    FeatureResponse,
    FeatureGrantResponse,
    SchoolGrantResponse,
    UserGrantsResponse,
    GrantFeatureRequest,
    GrantSchoolRequest,
    ReplaceGrantsRequest,
    PermissionCheckRequest,
    PermissionCheckResponse,
    VisibilityResponse,
)
from app.features.permissions.store import PermissionStore
from app.features.schools.dependencies import get_school_or_404, load_school
from app.features.schools.schemas import SchoolResponse
from app.features.schools.service import list_accessible_schools
from app.features.users.dependencies import (
    get_current_admin_user,
    get_current_user,
    get_optional_user,
    get_user_by_id,
)
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _user_grants(store: PermissionStore, user: User) -> UserGrantsResponse:
    return UserGrantsResponse(
        user_id=user.id,
        role=user.role.value,
        is_admin=user.is_admin,
        features=[FeatureGrantResponse.model_validate(g) for g in await store.list_feature_grants(user.id)],
        schools=[SchoolGrantResponse.model_validate(g) for g in await store.list_scope_grants(user.id)],
    )


# ============================================================================
# Catalog and self-service
# ============================================================================

@router.get("/features", response_model=List[FeatureResponse])
async def list_features():
    """List every feature an operation can be gated on."""
    return [FeatureResponse.from_feature(feature) for feature in Feature]


@router.get("/me/visibility", response_model=VisibilityResponse)
async def get_my_visibility(
    store: Annotated[PermissionStore, Depends(get_permission_store)],
    user: Annotated[Optional[User], Depends(get_optional_user)],
):
    """Navigation flags for the caller. All false for anonymous visitors."""
    flags = await visibility_flags(store, user)
    return VisibilityResponse(
        flags={feature.name: allowed for feature, allowed in flags.items()},
        attributes=visibility_attributes(flags),
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check_request: PermissionCheckRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Decide whether a user may use a feature, optionally on one school."""
    target = current_user
    if check_request.user_id and check_request.user_id != current_user.id:
        if not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to check other users' permissions"
            )
        target = await get_user_by_id(db, check_request.user_id)

    feature = Feature.from_name(check_request.feature)

    # Same status gate as the enforcer: only approved accounts act at all
    if not target.is_approved:
        return PermissionCheckResponse(
            allowed=False,
            kind=DenyKind.UNAUTHENTICATED_CALLER.value,
            message=f"Account is {target.status.label.lower()}",
        )

    async def school_exists(school_id) -> bool:
        return await load_school(db, school_id) is not None

    decision = await authorize(
        PermissionStore(db),
        target,
        feature,
        check_request.school_id,
        scope_exists=school_exists,
    )
    if decision.allowed:
        return PermissionCheckResponse(allowed=True)

    messages = {
        DenyKind.FEATURE_DENIED: permission_denied_message(feature),
        DenyKind.UNKNOWN_SCOPE: SCHOOL_NOT_FOUND_MESSAGE,
        DenyKind.SCOPE_DENIED: SCHOOL_DENIED_MESSAGE,
    }
    subject = decision.subject.name if isinstance(decision.subject, Feature) else decision.subject
    return PermissionCheckResponse(
        allowed=False,
        kind=decision.kind.value,
        subject=subject,
        message=messages.get(decision.kind),
    )


# ============================================================================
# Grant management (admin only)
# ============================================================================

@router.get("/users/{user_id}", response_model=UserGrantsResponse)
async def get_user_grants(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """List the feature and school grants of a user."""
    user = await get_user_by_id(db, user_id)
    return await _user_grants(PermissionStore(db), user)


@router.put("/users/{user_id}", response_model=UserGrantsResponse)
async def replace_user_grants(
    user_id: str,
    grants: ReplaceGrantsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Replace all grants of a user with the submitted features and schools."""
    user = await get_user_by_id(db, user_id)
    store = PermissionStore(db)
    await store.replace_grants(
        user.id,
        [Feature.from_name(name) for name in grants.features],
        grants.school_ids,
    )
    await db.commit()
    log.info(
        "%s replaced grants of %s: features=%s schools=%s",
        admin.username, user.username, grants.features, grants.school_ids,
    )
    return await _user_grants(store, user)


@router.post("/users/{user_id}/features", response_model=FeatureGrantResponse)
async def grant_feature(
    user_id: str,
    grant: GrantFeatureRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Grant a feature to a user. Granting twice is harmless."""
    user = await get_user_by_id(db, user_id)
    row = await PermissionStore(db).grant_feature(user.id, Feature.from_name(grant.feature))
    await db.commit()
    return FeatureGrantResponse.model_validate(row)


@router.delete("/users/{user_id}/features/{feature}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_feature(
    user_id: str,
    feature: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Revoke a feature. Revoking a feature the user does not hold is a no-op."""
    user = await get_user_by_id(db, user_id)
    await PermissionStore(db).revoke_feature(user.id, Feature.from_name(feature))
    await db.commit()
    return None


@router.post("/users/{user_id}/schools", response_model=SchoolGrantResponse)
async def grant_school(
    user_id: str,
    grant: GrantSchoolRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Give a user access to a school. Granting twice is harmless."""
    user = await get_user_by_id(db, user_id)
    school = await get_school_or_404(db, grant.school_id)
    row = await PermissionStore(db).grant_scope(user.id, school.id)
    await db.commit()
    return SchoolGrantResponse.model_validate(row)


@router.delete("/users/{user_id}/schools/{school_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_school(
    user_id: str,
    school_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Remove a user's access to a school. Missing grants are ignored."""
    user = await get_user_by_id(db, user_id)
    await PermissionStore(db).revoke_scope(user.id, school_id)
    await db.commit()
    return None


@router.get("/users/{user_id}/accessible-schools", response_model=List[SchoolResponse])
async def get_accessible_schools(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin_user)],
):
    """Schools a user may act on."""
    user = await get_user_by_id(db, user_id)
    return await list_accessible_schools(db, user)
