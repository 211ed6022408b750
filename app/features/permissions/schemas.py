"""
Pydantic schemas for permission management.

Features travel as their catalog names ("DEVICE_LIST").
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.permissions.catalog import Feature
from app.features.permissions.errors import UnknownFeature


def _feature_name(value: Any) -> str:
    if isinstance(value, Feature):
        return value.name
    try:
        return Feature.from_name(value).name
    except UnknownFeature as e:
        raise ValueError(str(e))


# ============================================================================
# Catalog
# ============================================================================

class FeatureResponse(BaseModel):
    id: int
    name: str
    label: str

    @classmethod
    def from_feature(cls, feature: Feature) -> "FeatureResponse":
        return cls(id=feature.feature_id, name=feature.name, label=feature.label)


# ============================================================================
# Grants
# ============================================================================

class FeatureGrantResponse(BaseModel):
    feature: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("feature", mode="before")
    @classmethod
    def feature_as_name(cls, v: Any) -> str:
        return _feature_name(v)


class SchoolGrantResponse(BaseModel):
    school_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserGrantsResponse(BaseModel):
    """Grants held by one user. Administrators hold everything implicitly."""
    user_id: str
    role: str
    is_admin: bool
    features: List[FeatureGrantResponse] = []
    schools: List[SchoolGrantResponse] = []


class GrantFeatureRequest(BaseModel):
    feature: str = Field(..., description="Feature name, e.g. DEVICE_LIST")

    @field_validator("feature")
    @classmethod
    def known_feature(cls, v: str) -> str:
        return _feature_name(v)


class GrantSchoolRequest(BaseModel):
    school_id: int = Field(..., description="School ID")


class ReplaceGrantsRequest(BaseModel):
    """Schema for the "save permissions" form: the complete set of grants."""
    features: List[str] = Field(default_factory=list)
    school_ids: List[int] = Field(default_factory=list)

    @field_validator("features")
    @classmethod
    def known_features(cls, v: List[str]) -> List[str]:
        return [_feature_name(name) for name in v]


# ============================================================================
# Decisions
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Ask whether a user may use a feature, optionally on one school."""
    user_id: Optional[str] = Field(None, description="User to check (defaults to the caller)")
    feature: str = Field(..., description="Feature name")
    school_id: Optional[int] = Field(None, description="School the operation would act on")

    @field_validator("feature")
    @classmethod
    def known_feature(cls, v: str) -> str:
        return _feature_name(v)


class PermissionCheckResponse(BaseModel):
    allowed: bool
    kind: Optional[str] = None
    subject: Optional[Any] = None
    message: Optional[str] = None


class VisibilityResponse(BaseModel):
    flags: Dict[str, bool]
    attributes: Dict[str, bool]
