"""
Authorization decisions.

Two questions are answered independently:

- may the user use a feature?  (ADMIN, or a FeatureGrant row)
- may the user act on a school? (ADMIN, or a SchoolGrant row)

``authorize`` combines them for operations gated on both. The feature tier is
always evaluated first; when it denies, the school tier is not consulted at
all. Nothing here writes to the store.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from app.features.permissions.catalog import Feature
from app.features.permissions.errors import AuthorizationError, DenyKind
from app.features.users.models import User, UserRole
from app.utils import get_logger


log = get_logger(__name__)


class GrantLookup(Protocol):
    async def has_feature_grant(self, user_id: str, feature: Feature) -> bool: ...

    async def has_scope_grant(self, user_id: str, school_id: Any) -> bool: ...


@dataclass(frozen=True)
class Decision:
    allowed: bool
    kind: Optional[DenyKind] = None
    subject: Any = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, kind: DenyKind, subject: Any = None) -> "Decision":
        return cls(allowed=False, kind=kind, subject=subject)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise AuthorizationError(self.kind, self.subject)

    def __bool__(self) -> bool:
        return self.allowed


def has_bypass(user: User) -> bool:
    return user.role == UserRole.ADMIN


async def may_use_feature(store: GrantLookup, user: User, feature: Feature) -> bool:
    if has_bypass(user):
        return True
    return await store.has_feature_grant(user.id, feature)


async def may_access_scope(store: GrantLookup, user: User, school_id: Any) -> bool:
    if has_bypass(user):
        return True
    return await store.has_scope_grant(user.id, school_id)


async def authorize(
    store: GrantLookup,
    user: User,
    feature: Feature,
    school_id: Any = None,
    *,
    scope_exists: Optional[Callable[[Any], Awaitable[bool]]] = None,
) -> Decision:
    """
    Decide whether ``user`` may run an operation gated on ``feature`` and,
    when ``school_id`` is given, on that school.

    Args:
        store: Grant lookups (normally a PermissionStore)
        user: Fully loaded calling user
        feature: Required feature
        school_id: School the operation acts on; None for feature-only checks
        scope_exists: Optional existence check for the school, evaluated after
            the feature tier and before the school tier. Skipped for ADMIN.

    Returns:
        Decision.allow() or Decision.deny(kind, subject)
    """
    if not await may_use_feature(store, user, feature):
        decision = Decision.deny(DenyKind.FEATURE_DENIED, feature)
    elif school_id is None or has_bypass(user):
        decision = Decision.allow()
    elif scope_exists is not None and not await scope_exists(school_id):
        decision = Decision.deny(DenyKind.UNKNOWN_SCOPE, school_id)
    elif not await may_access_scope(store, user, school_id):
        decision = Decision.deny(DenyKind.SCOPE_DENIED, school_id)
    else:
        decision = Decision.allow()

    log.debug(
        "Decision for user=%s feature=%s school=%s: %s",
        user.id, feature.name, school_id,
        "allow" if decision.allowed else decision.kind.value,
    )
    return decision
