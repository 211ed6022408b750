from unittest.mock import AsyncMock

import pytest

from app.features.permissions.catalog import Feature
from app.features.permissions.engine import Decision, authorize, may_access_scope, may_use_feature
from app.features.permissions.errors import AuthorizationError, DenyKind
from app.features.users.models import User, UserRole


def make_store(feature_granted=False, scope_granted=False):
    store = AsyncMock()
    store.has_feature_grant.return_value = feature_granted
    store.has_scope_grant.return_value = scope_granted
    return store


def employee():
    return User(id="01EMPLOYEE", username="staff", name="Staff", role=UserRole.EMPLOYEE)


def admin():
    return User(id="01ADMIN", username="admin", name="Admin", role=UserRole.ADMIN)


@pytest.mark.asyncio
@pytest.mark.parametrize("feature", list(Feature))
async def test_admin_bypasses_every_feature(feature):
    store = make_store()
    assert await may_use_feature(store, admin(), feature)
    store.has_feature_grant.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_bypasses_any_scope():
    store = make_store()
    for school_id in (1, 42, 10_000):
        assert await may_access_scope(store, admin(), school_id)
    store.has_scope_grant.assert_not_awaited()


@pytest.mark.asyncio
async def test_non_admin_consults_the_store():
    user = employee()
    store = make_store(feature_granted=True)
    assert await may_use_feature(store, user, Feature.DEVICE_LIST)
    store.has_feature_grant.assert_awaited_once_with(user.id, Feature.DEVICE_LIST)
    assert not await may_access_scope(store, user, 42)
    store.has_scope_grant.assert_awaited_once_with(user.id, 42)


@pytest.mark.asyncio
async def test_feature_denial_skips_scope_tier():
    store = make_store(feature_granted=False, scope_granted=True)
    scope_exists = AsyncMock(return_value=True)

    decision = await authorize(store, employee(), Feature.DEVICE_MANAGEMENT, 42, scope_exists=scope_exists)

    assert decision == Decision.deny(DenyKind.FEATURE_DENIED, Feature.DEVICE_MANAGEMENT)
    store.has_scope_grant.assert_not_awaited()
    scope_exists.assert_not_awaited()


@pytest.mark.asyncio
async def test_feature_only_when_no_scope_given():
    store = make_store(feature_granted=True)
    decision = await authorize(store, employee(), Feature.DEVICE_LIST)
    assert decision.allowed
    store.has_scope_grant.assert_not_awaited()


@pytest.mark.asyncio
async def test_scope_denied():
    store = make_store(feature_granted=True, scope_granted=False)
    decision = await authorize(store, employee(), Feature.DEVICE_LIST, 42)
    assert not decision
    assert decision.kind == DenyKind.SCOPE_DENIED
    assert decision.subject == 42


@pytest.mark.asyncio
async def test_unknown_scope_is_reported_before_grant_lookup():
    store = make_store(feature_granted=True, scope_granted=True)
    decision = await authorize(
        store, employee(), Feature.DEVICE_LIST, 404, scope_exists=AsyncMock(return_value=False)
    )
    assert decision == Decision.deny(DenyKind.UNKNOWN_SCOPE, 404)
    store.has_scope_grant.assert_not_awaited()


@pytest.mark.asyncio
async def test_both_tiers_granted_allows():
    store = make_store(feature_granted=True, scope_granted=True)
    decision = await authorize(store, employee(), Feature.DEVICE_LIST, 7, scope_exists=AsyncMock(return_value=True))
    assert decision == Decision.allow()


@pytest.mark.asyncio
async def test_admin_is_allowed_with_or_without_scope():
    store = make_store()
    assert (await authorize(store, admin(), Feature.DATA_DELETE)).allowed
    assert (await authorize(store, admin(), Feature.DATA_DELETE, 42)).allowed


@pytest.mark.asyncio
async def test_admin_skips_existence_check():
    store = make_store()
    scope_exists = AsyncMock(return_value=False)

    decision = await authorize(store, admin(), Feature.DEVICE_LIST, 4242, scope_exists=scope_exists)

    assert decision == Decision.allow()
    scope_exists.assert_not_awaited()


def test_raise_for_denial_carries_kind_and_subject():
    with pytest.raises(AuthorizationError) as excinfo:
        Decision.deny(DenyKind.SCOPE_DENIED, 42).raise_for_denial()
    assert excinfo.value.kind == DenyKind.SCOPE_DENIED
    assert excinfo.value.subject == 42
    Decision.allow().raise_for_denial()
