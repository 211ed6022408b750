"""
Permission checks for call sites that must keep producing a response.

Pages that populate navigation flags, or flows that redirect back with an
error message instead of failing the request, use these helpers. They ask
the same decision engine as the enforcement decorator but turn a denial
into a message rather than an exception.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from app.features.permissions.catalog import Feature, UI_FEATURES
from app.features.permissions.engine import GrantLookup, may_access_scope, may_use_feature
from app.features.users.models import User


GENERIC_DENIED_MESSAGE = "You do not have permission to use this feature. Please contact an administrator."
SCHOOL_NOT_FOUND_MESSAGE = "The school does not exist."
SCHOOL_DENIED_MESSAGE = "You do not have access to this school. Please contact an administrator."

_DENIED_MESSAGES = {
    Feature.DEVICE_LIST: "You do not have permission to view the device list. Please contact an administrator.",
    Feature.DEVICE_MANAGEMENT: "You do not have permission to manage devices. Please contact an administrator.",
    Feature.SCHOOL_MANAGEMENT: "You do not have permission to manage schools. Please contact an administrator.",
    Feature.CLASSROOM_MANAGEMENT: "You do not have permission to manage classrooms. Please contact an administrator.",
    Feature.FLOORPLAN_MANAGEMENT: "You do not have permission to manage floor plans. Please contact an administrator.",
    Feature.DATA_DELETE: "You do not have permission to delete data. Please contact an administrator.",
    Feature.WIRELESS_AP_LIST: "You do not have permission to view the wireless AP list. Please contact an administrator.",
    Feature.WIRELESS_AP_MANAGEMENT: "You do not have permission to manage wireless APs. Please contact an administrator.",
    Feature.SUBMISSION_FILES: "You do not have permission to manage submission files. Please contact an administrator.",
}


@dataclass(frozen=True)
class PermissionCheck:
    """Outcome of a helper check: the user on success, a message on denial."""
    user: Optional[User] = None
    message: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.message is None


def permission_denied_message(feature: Feature) -> str:
    return _DENIED_MESSAGES.get(feature, GENERIC_DENIED_MESSAGE)


async def visibility_flags(store: GrantLookup, user: Optional[User]) -> Dict[Feature, bool]:
    """Which navigation entries to show. Everything is hidden for anonymous visitors."""
    if user is None:
        return {feature: False for feature in UI_FEATURES}
    return {feature: await may_use_feature(store, user, feature) for feature in UI_FEATURES}


def visibility_attributes(flags: Dict[Feature, bool]) -> Dict[str, bool]:
    """
    Render flags under template attribute names.

    Feature.DEVICE_LIST -> "has_device_list_permission"
    """
    return {f"has_{feature.name.lower()}_permission": allowed for feature, allowed in flags.items()}


async def check_feature_or_deny(store: GrantLookup, user: User, feature: Feature) -> PermissionCheck:
    if not await may_use_feature(store, user, feature):
        return PermissionCheck(message=permission_denied_message(feature))
    return PermissionCheck(user=user)


async def check_scoped_or_deny(
    store: GrantLookup,
    user: User,
    feature: Feature,
    school_id: Any = None,
    *,
    load_school: Callable[[Any], Awaitable[Any]],
) -> PermissionCheck:
    """
    Check the feature, then (when ``school_id`` is given) that the school
    exists and the user may act on it.

    Args:
        load_school: Async lookup returning the school or None
    """
    check = await check_feature_or_deny(store, user, feature)
    if not check.allowed or school_id is None:
        return check

    if await load_school(school_id) is None:
        return PermissionCheck(message=SCHOOL_NOT_FOUND_MESSAGE)

    if not await may_access_scope(store, user, school_id):
        return PermissionCheck(message=SCHOOL_DENIED_MESSAGE)

    return check
