import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.security_context import authenticated_as
from app.features.permissions.catalog import Feature
from app.features.permissions.enforcement import PermissionEnforcer, PermissionPolicy, require_permission
from app.features.permissions.errors import AuthorizationError, DenyKind, UnknownFeature
from app.features.permissions.store import PermissionStore
from app.features.schools.models import School
from app.features.users.models import UserRole, UserStatus


@pytest.fixture
def enforcer(session_factory):
    return PermissionEnforcer(session_factory)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def list_devices(enforcer, calls):
    @enforcer.require(Feature.DEVICE_LIST, scope_param="schoolId")
    async def list_devices(schoolId: int):
        calls.append(schoolId)
        return [f"device@{schoolId}"]

    return list_devices


@pytest_asyncio.fixture
async def staff_with_device_list(db, make_user, make_school):
    """EMPLOYEE holding DEVICE_LIST and school 7, but not school 42."""
    user = await make_user("staff")
    await make_school(7)
    await make_school(42)
    store = PermissionStore(db)
    await store.grant_feature(user.id, Feature.DEVICE_LIST)
    await store.grant_scope(user.id, 7)
    await db.commit()
    return user


@pytest.mark.asyncio
async def test_scope_denied_for_ungranted_school(staff_with_device_list, list_devices, calls):
    with authenticated_as("staff"):
        with pytest.raises(AuthorizationError) as excinfo:
            await list_devices(schoolId=42)

    assert excinfo.value.kind == DenyKind.SCOPE_DENIED
    assert excinfo.value.subject == 42
    assert calls == []


@pytest.mark.asyncio
async def test_allowed_for_granted_school(staff_with_device_list, list_devices, calls):
    with authenticated_as("staff"):
        result = await list_devices(7)

    assert result == ["device@7"]
    assert calls == [7]


@pytest.mark.asyncio
async def test_feature_denied_without_grants(make_user, enforcer, calls):
    await make_user("newbie")

    @enforcer.require(Feature.DEVICE_MANAGEMENT)
    async def register_device(serial: str):
        calls.append(serial)

    with authenticated_as("newbie"):
        with pytest.raises(AuthorizationError) as excinfo:
            await register_device("SN-1")

    assert excinfo.value.kind == DenyKind.FEATURE_DENIED
    assert excinfo.value.subject is Feature.DEVICE_MANAGEMENT
    assert calls == []


@pytest.mark.asyncio
async def test_admin_always_allowed(make_user, make_school, enforcer, list_devices, calls):
    await make_user("root", role=UserRole.ADMIN)
    await make_school(42)

    @enforcer.require("DATA_DELETE")
    async def purge():
        calls.append("purged")

    with authenticated_as("root"):
        assert await list_devices(42) == ["device@42"]
        await purge()

    assert calls == [42, "purged"]


@pytest.mark.asyncio
async def test_admin_allowed_for_school_without_row(make_user, list_devices, calls):
    await make_user("root", role=UserRole.ADMIN)

    with authenticated_as("root"):
        assert await list_devices(4242) == ["device@4242"]

    assert calls == [4242]


@pytest.mark.asyncio
async def test_opaque_scope_ids_get_a_decision(staff_with_device_list, make_user, enforcer, calls):
    await make_user("root", role=UserRole.ADMIN)
    school_key = uuid.uuid4()

    @enforcer.require(Feature.DEVICE_LIST, scope_param="school_id")
    async def inventory(school_id):
        calls.append(school_id)

    with authenticated_as("root"):
        await inventory(school_key)
        await inventory(Decimal("7"))
    assert calls == [school_key, Decimal("7")]

    with authenticated_as("staff"):
        with pytest.raises(AuthorizationError) as excinfo:
            await inventory(school_key)
    assert excinfo.value.kind == DenyKind.UNKNOWN_SCOPE
    assert excinfo.value.subject == school_key


@pytest.mark.asyncio
async def test_string_school_id_matches_grant(staff_with_device_list, list_devices):
    with authenticated_as("staff"):
        assert await list_devices("7") == ["device@7"]


@pytest.mark.asyncio
async def test_no_identity_fails_closed(list_devices, calls):
    with pytest.raises(AuthorizationError) as excinfo:
        await list_devices(7)
    assert excinfo.value.kind == DenyKind.UNAUTHENTICATED_CALLER
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_user_fails_closed(db, list_devices, calls):
    with authenticated_as("ghost"):
        with pytest.raises(AuthorizationError) as excinfo:
            await list_devices(7)
    assert excinfo.value.kind == DenyKind.UNAUTHENTICATED_CALLER
    assert calls == []


@pytest.mark.asyncio
async def test_suspended_user_fails_closed(make_user, list_devices, calls):
    await make_user("benched", role=UserRole.ADMIN, status=UserStatus.SUSPENDED)
    with authenticated_as("benched"):
        with pytest.raises(AuthorizationError) as excinfo:
            await list_devices(7)
    assert excinfo.value.kind == DenyKind.UNAUTHENTICATED_CALLER
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_school_is_denied(staff_with_device_list, list_devices, calls):
    with authenticated_as("staff"):
        with pytest.raises(AuthorizationError) as excinfo:
            await list_devices(999)
    assert excinfo.value.kind == DenyKind.UNKNOWN_SCOPE
    assert calls == []


@pytest.mark.asyncio
async def test_school_object_is_accepted(db, staff_with_device_list, enforcer):
    @enforcer.require(Feature.DEVICE_LIST, scope_param="school")
    async def describe(school: School) -> str:
        return school.name

    seven = await db.get(School, 7)
    forty_two = await db.get(School, 42)
    with authenticated_as("staff"):
        assert await describe(seven) == "School 7"
        with pytest.raises(AuthorizationError) as excinfo:
            await describe(school=forty_two)
    assert excinfo.value.kind == DenyKind.SCOPE_DENIED


@pytest.mark.asyncio
async def test_missing_scope_argument_checks_feature_only(staff_with_device_list, enforcer):
    @enforcer.require(Feature.DEVICE_LIST, scope_param="school_id")
    async def search(term: str, school_id: int | None = None):
        return term

    with authenticated_as("staff"):
        assert await search("projector") == "projector"
        with pytest.raises(AuthorizationError):
            await search("projector", school_id=42)


@pytest.mark.asyncio
async def test_denied_call_writes_nothing(db, make_user, session_factory):
    await make_user("viewer")

    @require_permission(Feature.SCHOOL_MANAGEMENT)
    async def add_school(name: str) -> None:
        async with session_factory() as session:
            session.add(School(name=name))
            await session.commit()

    with authenticated_as("viewer"):
        with pytest.raises(AuthorizationError):
            await add_school("Hillside Elementary")

    assert (await db.execute(select(func.count()).select_from(School))).scalar() == 0


@pytest.mark.asyncio
async def test_store_failure_propagates():
    class BrokenSession:
        async def __aenter__(self):
            raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))

        async def __aexit__(self, *exc):
            return False

    enforcer = PermissionEnforcer(session_factory=BrokenSession)

    @enforcer.require(Feature.DEVICE_LIST)
    async def list_all():
        return []

    with authenticated_as("staff"):
        with pytest.raises(OperationalError):
            await list_all()


def test_policy_is_attached(list_devices):
    assert list_devices.__permission_policy__ == PermissionPolicy(Feature.DEVICE_LIST, "schoolId")
    assert list_devices.__name__ == "list_devices"


def test_unknown_feature_fails_at_decoration():
    with pytest.raises(UnknownFeature):
        @require_permission("TELEPORTATION")
        async def teleport():
            pass


def test_undeclared_scope_parameter_fails_at_decoration():
    with pytest.raises(TypeError):
        @require_permission(Feature.DEVICE_LIST, scope_param="school_id")
        async def list_everything(page: int):
            pass


def test_sync_function_is_rejected():
    with pytest.raises(TypeError):
        @require_permission(Feature.DEVICE_LIST)
        def not_async():
            pass
