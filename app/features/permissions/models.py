"""
Grant tables for the two permission tiers.

A FeatureGrant lets a user use a feature; a SchoolGrant lets a user act on a
school. Rows are inserted and deleted, never updated. Both tables are unique
on their (user, subject) pair and cascade when the user or school goes away.
"""
from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, CreatedAtMixin
from app.features.permissions.catalog import Feature


class FeatureGrant(Base, CreatedAtMixin):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "feature", name="uq_permissions_user_feature"),
        {"sqlite_autoincrement": True},
    )
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    feature: Mapped[Feature] = mapped_column(SQLEnum(Feature, name="feature"), nullable=False)
    
    def __repr__(self) -> str:
        return f"<FeatureGrant(user_id={self.user_id}, feature={self.feature.name})>"


class SchoolGrant(Base, CreatedAtMixin):
    __tablename__ = "school_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "school_id", name="uq_school_permissions_user_school"),
        {"sqlite_autoincrement": True},
    )
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    school_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    def __repr__(self) -> str:
        return f"<SchoolGrant(user_id={self.user_id}, school_id={self.school_id})>"
