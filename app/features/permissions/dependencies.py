"""
FastAPI dependencies for the permission store.

Service operations are guarded with ``require_permission``; routes that only
need to read grants (navigation flags, redirect-style checks) take the store
from here, and routes that gate on a feature before doing anything else
use ``require_feature``.
"""
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.catalog import Feature
from app.features.permissions.engine import authorize
from app.features.permissions.store import PermissionStore
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def get_permission_store(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> PermissionStore:
    return PermissionStore(db)


def require_feature(feature: Feature | str):
    """
    FastAPI dependency requiring a feature.
    
    Usage:
        @router.get("/manage")
        async def manage_schools(
            user: User = Depends(require_feature(Feature.SCHOOL_MANAGEMENT))
        ):
            pass
    
    Returns:
        Dependency function that returns the current user if allowed
    
    Raises:
        AuthorizationError: FEATURE_DENIED, mapped to 403 by the app
    """
    required = Feature.coerce(feature)

    async def feature_dependency(
        store: Annotated[PermissionStore, Depends(get_permission_store)],
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        decision = await authorize(store, current_user, required)
        if not decision.allowed:
            log.warning("Denied %s to %s", required.name, current_user.username)
        decision.raise_for_denial()
        return current_user

    return feature_dependency
