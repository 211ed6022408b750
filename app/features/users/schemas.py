"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.users.models import UserRole, UserStatus


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    username: str
    name: str
    email: str | None = None
    organization: str | None = None
    position: str | None = None
    role: UserRole
    status: UserStatus
    approved_at: datetime | None = None
    approved_by: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}


class ApproveUser(BaseModel):
    """Approval assigns the account's role; ADMIN cannot be handed out here."""
    role: UserRole = Field(UserRole.EMPLOYEE, description="EMPLOYEE or EXTERNAL")


class ChangeRole(BaseModel):
    role: UserRole
