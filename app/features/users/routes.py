"""
User feature routes: own profile and the admin approval workflow.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.store import PermissionStore
from app.features.users.models import User, UserRole, UserStatus
from app.features.users.schemas import UserResponse, ApproveUser, ChangeRole
from app.features.users.dependencies import get_current_user, get_current_admin_user, get_user_by_id
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


# Admin-only routes
@router.get("/", response_model=list[UserResponse])
async def list_users(
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Optional[UserStatus] = None,
    skip: int = 0,
    limit: int = 50
):
    """List users, newest first, optionally only those in one status."""
    stmt = select(User).order_by(User.created_at.desc(), User.username)
    if status_filter is not None:
        stmt = stmt.where(User.status == status_filter)
    result = await db.execute(stmt.offset(skip).limit(limit))
    return result.scalars().all()


@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: str,
    approval: ApproveUser,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Approve a pending account and assign its role (admin only)."""
    if approval.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The ADMIN role cannot be assigned on approval"
        )
    
    user = await get_user_by_id(db, user_id)
    user.status = UserStatus.APPROVED
    user.role = approval.role
    user.approved_at = datetime.now(timezone.utc)
    user.approved_by = admin.username
    await db.commit()
    await db.refresh(user)
    log.info("%s approved %s as %s", admin.username, user.username, user.role.value)
    return user


@router.post("/{user_id}/suspend", response_model=UserResponse)
async def suspend_user(
    user_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Suspend an account (admin only). Grants are kept for reinstatement."""
    user = await get_user_by_id(db, user_id)
    
    # Prevent self-suspension
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot suspend your own account"
        )
    
    user.status = UserStatus.SUSPENDED
    user.approved_by = admin.username
    await db.commit()
    await db.refresh(user)
    log.info("%s suspended %s", admin.username, user.username)
    return user


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: str,
    change: ChangeRole,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Change a user's role (admin only). This is the only way to grant ADMIN."""
    user = await get_user_by_id(db, user_id)
    
    # Prevent self-demotion
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot modify your own role"
        )
    
    user.role = change.role
    await db.commit()
    await db.refresh(user)
    log.info("%s changed role of %s to %s", admin.username, user.username, user.role.value)
    return user


async def _delete_user(db: AsyncSession, user: User) -> None:
    await PermissionStore(db).revoke_all(user.id)
    await db.delete(user)
    await db.commit()


@router.post("/{user_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_user(
    user_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Reject a pending sign-up. The account is removed (admin only)."""
    user = await get_user_by_id(db, user_id)
    if user.status != UserStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending accounts can be rejected"
        )
    await _delete_user(db, user)
    log.info("%s rejected sign-up of %s", admin.username, user.username)
    return None


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete an account and all its grants (admin only)."""
    user = await get_user_by_id(db, user_id)
    
    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )
    if user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrator accounts cannot be deleted"
        )
    
    await _delete_user(db, user)
    log.info("%s deleted %s", admin.username, user.username)
    return None
