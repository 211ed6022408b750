"""
Pydantic schemas for school requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SchoolBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    ip: Optional[int] = Field(None, ge=0, le=255, description="Third octet of the school subnet")


class SchoolCreate(SchoolBase):
    pass


class SchoolUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    ip: Optional[int] = Field(None, ge=0, le=255)


class SchoolResponse(SchoolBase):
    id: int
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
