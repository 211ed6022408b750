"""
User model with ULID primary keys, global role and approval status.
"""
from datetime import datetime
import enum
from sqlalchemy import String, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class UserRole(str, enum.Enum):
    """Global role. ADMIN bypasses feature and school checks."""
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    EXTERNAL = "EXTERNAL"

    @property
    def label(self) -> str:
        return _ROLE_LABELS[self]


class UserStatus(str, enum.Enum):
    """Account approval status. Only APPROVED users may sign in."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_ROLE_LABELS = {
    UserRole.ADMIN: "Administrator",
    UserRole.EMPLOYEE: "Employee",
    UserRole.EXTERNAL: "External",
}

_STATUS_LABELS = {
    UserStatus.PENDING: "Pending approval",
    UserStatus.APPROVED: "Approved",
    UserStatus.REJECTED: "Rejected",
    UserStatus.SUSPENDED: "Suspended",
}


class User(Base, TimestampMixin):
    """
    User model representing school IT staff and external contractors.
    
    Feature and school grants reference users.id with ON DELETE CASCADE, so
    deleting a user removes their grants at the storage layer as well.
    """
    __tablename__ = "users"
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Login name handed over by the authentication service (JWT "sub")
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    
    # User information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    organization: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"), default=UserRole.EMPLOYEE, nullable=False
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus, name="user_status"), default=UserStatus.PENDING, nullable=False, index=True
    )
    
    # Approval workflow
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    
    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    @property
    def is_approved(self) -> bool:
        return self.status == UserStatus.APPROVED
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r}, role={self.role})>"
