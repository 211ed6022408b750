"""
School model. A school is the scope a SchoolGrant refers to.
"""
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin


class School(Base, TimestampMixin):
    __tablename__ = "schools"
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    
    # Third octet of the school's management subnet
    ip: Mapped[int | None] = mapped_column(Integer, nullable=True)
    
    def __repr__(self) -> str:
        return f"<School(id={self.id}, name={self.name!r})>"
