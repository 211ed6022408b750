"""
Declarative permission enforcement for service operations.

Decorate an async operation with the feature it needs and, optionally, the
name of the parameter that carries the school it acts on:

    @require_permission(Feature.DEVICE_LIST, scope_param="school_id")
    async def list_devices(db: AsyncSession, school_id: int) -> list[Device]:
        ...

Before the operation runs, the caller is taken from the security context,
loaded from the database and checked with ``authorize``. A denial raises
``AuthorizationError`` and the operation body is never entered. The check
uses its own short-lived session and never commits, so a denied call leaves
no trace in the database.

The scope argument may be a raw school id or an object with an ``id``
attribute (a ``School``). When the argument is not passed, or is None, only
the feature is checked for that call.
"""
from dataclasses import dataclass
import functools
import inspect
from typing import Any, Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import AsyncSessionLocal
from app.core.security_context import current_identity
from app.features.permissions.catalog import Feature
from app.features.permissions.engine import authorize
from app.features.permissions.errors import AuthorizationError, DenyKind
from app.features.permissions.store import PermissionStore
from app.features.schools.dependencies import load_school
from app.features.users.dependencies import load_user_by_username
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class PermissionPolicy:
    feature: Feature
    scope_param: Optional[str] = None


def _scope_reference(value: Any) -> Tuple[Any, bool]:
    """
    Split a scope argument into (school_id, known_to_exist).

    Raw ids (of any type) still have to be looked up; objects carrying an
    ``id`` attribute, such as loaded School rows, do not.
    """
    school_id = getattr(value, "id", None)
    if value is None or isinstance(value, (int, str)) or school_id is None:
        return value, False
    return school_id, True


class PermissionEnforcer:
    """
    Checks permissions for decorated operations.

    Args:
        session_factory: Factory for the read-only session used by the check.
            Defaults to the application's AsyncSessionLocal.
        identity: Callable returning the caller's username or None.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        identity: Callable[[], Optional[str]] = current_identity,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.identity = identity

    def require(self, feature: Feature | str, scope_param: Optional[str] = None):
        """
        Decorator factory guarding an async operation.

        Raises:
            UnknownFeature: ``feature`` names nothing in the catalog
            TypeError: the operation is not async, or ``scope_param`` is not
                one of its parameters
        """
        policy = PermissionPolicy(Feature.coerce(feature), scope_param)

        def decorator(fn):
            if not inspect.iscoroutinefunction(fn):
                raise TypeError(f"{fn.__qualname__} must be async to be permission-checked")
            signature = inspect.signature(fn)
            if scope_param is not None and scope_param not in signature.parameters:
                raise TypeError(
                    f"{fn.__qualname__} has no parameter {scope_param!r} to read the school from"
                )

            @functools.wraps(fn)
            async def wrapper(*args, **kwargs):
                school_ref = None
                if scope_param is not None:
                    bound = signature.bind(*args, **kwargs)
                    bound.apply_defaults()
                    school_ref = bound.arguments.get(scope_param)
                await self.check(policy.feature, school_ref)
                return await fn(*args, **kwargs)

            wrapper.__permission_policy__ = policy
            return wrapper

        return decorator

    async def check(self, feature: Feature, school_ref: Any = None) -> User:
        """
        Authorize the current caller, returning their User on success.

        Raises:
            AuthorizationError: on any denial
        """
        username = self.identity()
        if username is None:
            log.info("Rejected anonymous call requiring %s", feature.name)
            raise AuthorizationError(DenyKind.UNAUTHENTICATED_CALLER)

        school_id, known_to_exist = _scope_reference(school_ref)

        async with self.session_factory() as session:
            user = await load_user_by_username(session, username)
            if user is None or not user.is_approved:
                log.warning("No usable account for %r, treating caller as unauthenticated", username)
                raise AuthorizationError(DenyKind.UNAUTHENTICATED_CALLER, username)

            async def school_exists(candidate: Any) -> bool:
                return await load_school(session, candidate) is not None

            decision = await authorize(
                PermissionStore(session),
                user,
                feature,
                school_id,
                scope_exists=None if known_to_exist else school_exists,
            )

        if not decision.allowed:
            log.warning(
                "Denied %s to %s: %s (%s)",
                feature.name, username, decision.kind.value, decision.subject,
            )
            decision.raise_for_denial()
        return user


default_enforcer = PermissionEnforcer()


def require_permission(feature: Feature | str, scope_param: Optional[str] = None):
    """
    Guard an async operation with the application's default enforcer.

    Usage:
        @require_permission(Feature.SCHOOL_MANAGEMENT, scope_param="school_id")
        async def update_school(db, school_id, data):
            ...
    """
    return default_enforcer.require(feature, scope_param)
