"""
Catalog of features that operations can be gated on.

The set is fixed at import time. Each member carries a stable numeric id
and a display label used in denial messages.
"""
import enum

from app.features.permissions.errors import UnknownFeature


class Feature(enum.Enum):
    DEVICE_LIST = (1, "Device list")
    DEVICE_MANAGEMENT = (2, "Device management")
    DEVICE_INSPECTION = (3, "Device inspection")
    SCHOOL_MANAGEMENT = (4, "School management")
    CLASSROOM_MANAGEMENT = (5, "Classroom management")
    FLOORPLAN_MANAGEMENT = (6, "Floor plan management")
    DATA_DELETE = (7, "Data deletion")
    WIRELESS_AP_LIST = (8, "Wireless AP list")
    WIRELESS_AP_MANAGEMENT = (9, "Wireless AP management")
    SUBMISSION_FILES = (10, "Submission file download")
    QR_CODE_GENERATION = (11, "QR code generation")

    def __init__(self, feature_id: int, label: str):
        self.feature_id = feature_id
        self.label = label

    @classmethod
    def from_name(cls, name: str) -> "Feature":
        try:
            return cls[name]
        except KeyError:
            raise UnknownFeature(name) from None

    @classmethod
    def from_id(cls, feature_id: int) -> "Feature":
        try:
            return _BY_ID[feature_id]
        except KeyError:
            raise UnknownFeature(feature_id) from None

    @classmethod
    def coerce(cls, value: "Feature | str") -> "Feature":
        """Accept a member or its name."""
        if isinstance(value, cls):
            return value
        return cls.from_name(value)


_BY_ID = {feature.feature_id: feature for feature in Feature}

# Features shown (or hidden) in the navigation bar
UI_FEATURES = (
    Feature.DEVICE_LIST,
    Feature.DEVICE_MANAGEMENT,
    Feature.SCHOOL_MANAGEMENT,
    Feature.CLASSROOM_MANAGEMENT,
    Feature.FLOORPLAN_MANAGEMENT,
    Feature.DATA_DELETE,
    Feature.WIRELESS_AP_LIST,
    Feature.WIRELESS_AP_MANAGEMENT,
    Feature.SUBMISSION_FILES,
)
