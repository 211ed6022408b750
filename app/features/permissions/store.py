"""
Persistence of feature and school grants.

The store answers "does this grant row exist?" and nothing more. The ADMIN
bypass is applied by the decision engine, not here.

Writes are idempotent: granting an existing pair returns the existing row,
revoking a missing pair does nothing. Inserts use ON CONFLICT DO NOTHING so a
concurrent duplicate grant lands as a no-op instead of an integrity error.
The store never commits; the caller owns the transaction.
"""
from typing import Iterable, List, Optional
from sqlalchemy import delete, exists, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.catalog import Feature
from app.features.permissions.models import FeatureGrant, SchoolGrant
from app.features.schools.models import School
from app.utils import get_logger


log = get_logger(__name__)


class PermissionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def has_feature_grant(self, user_id: str, feature: Feature) -> bool:
        stmt = select(
            exists().where(
                FeatureGrant.user_id == user_id,
                FeatureGrant.feature == feature,
            )
        )
        return bool((await self.db.execute(stmt)).scalar())

    async def has_scope_grant(self, user_id: str, school_id: int) -> bool:
        stmt = select(
            exists().where(
                SchoolGrant.user_id == user_id,
                SchoolGrant.school_id == school_id,
            )
        )
        return bool((await self.db.execute(stmt)).scalar())

    async def get_feature_grant(self, user_id: str, feature: Feature) -> Optional[FeatureGrant]:
        stmt = select(FeatureGrant).where(
            FeatureGrant.user_id == user_id,
            FeatureGrant.feature == feature,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_scope_grant(self, user_id: str, school_id: int) -> Optional[SchoolGrant]:
        stmt = select(SchoolGrant).where(
            SchoolGrant.user_id == user_id,
            SchoolGrant.school_id == school_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def list_feature_grants(self, user_id: str) -> List[FeatureGrant]:
        stmt = (
            select(FeatureGrant)
            .where(FeatureGrant.user_id == user_id)
            .order_by(FeatureGrant.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_scope_grants(self, user_id: str) -> List[SchoolGrant]:
        stmt = (
            select(SchoolGrant)
            .where(SchoolGrant.user_id == user_id)
            .order_by(SchoolGrant.school_id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_features(self, user_id: str) -> List[Feature]:
        return [grant.feature for grant in await self.list_feature_grants(user_id)]

    async def list_school_ids(self, user_id: str) -> List[int]:
        return [grant.school_id for grant in await self.list_scope_grants(user_id)]

    # ------------------------------------------------------------------
    # Grant / revoke
    # ------------------------------------------------------------------

    async def grant_feature(self, user_id: str, feature: Feature) -> FeatureGrant:
        existing = await self.get_feature_grant(user_id, feature)
        if existing is not None:
            return existing

        await self.db.execute(
            self._insert_ignoring_duplicates(FeatureGrant, ["user_id", "feature"])
            .values(user_id=user_id, feature=feature)
        )
        log.info("Granted feature %s to user %s", feature.name, user_id)
        return await self.get_feature_grant(user_id, feature)

    async def revoke_feature(self, user_id: str, feature: Feature) -> None:
        result = await self.db.execute(
            delete(FeatureGrant).where(
                FeatureGrant.user_id == user_id,
                FeatureGrant.feature == feature,
            )
        )
        if result.rowcount:
            log.info("Revoked feature %s from user %s", feature.name, user_id)

    async def grant_scope(self, user_id: str, school_id: int) -> SchoolGrant:
        existing = await self.get_scope_grant(user_id, school_id)
        if existing is not None:
            return existing

        await self.db.execute(
            self._insert_ignoring_duplicates(SchoolGrant, ["user_id", "school_id"])
            .values(user_id=user_id, school_id=school_id)
        )
        log.info("Granted school %s to user %s", school_id, user_id)
        return await self.get_scope_grant(user_id, school_id)

    async def grant_scopes(self, user_id: str, school_ids: Iterable[int]) -> List[SchoolGrant]:
        """
        Grant several schools at once.

        Ids that do not match an existing school are skipped.
        """
        wanted = set(school_ids)
        if not wanted:
            return []
        result = await self.db.execute(
            select(School.id).where(School.id.in_(wanted)).order_by(School.id)
        )
        known = list(result.scalars().all())
        missing = wanted.difference(known)
        if missing:
            log.warning("Skipping unknown schools %s for user %s", sorted(missing), user_id)
        return [await self.grant_scope(user_id, school_id) for school_id in known]

    async def revoke_scope(self, user_id: str, school_id: int) -> None:
        result = await self.db.execute(
            delete(SchoolGrant).where(
                SchoolGrant.user_id == user_id,
                SchoolGrant.school_id == school_id,
            )
        )
        if result.rowcount:
            log.info("Revoked school %s from user %s", school_id, user_id)

    async def revoke_all(self, user_id: str) -> None:
        """Delete every grant a user holds. Called before the user row is removed."""
        await self.db.execute(delete(FeatureGrant).where(FeatureGrant.user_id == user_id))
        await self.db.execute(delete(SchoolGrant).where(SchoolGrant.user_id == user_id))
        log.info("Revoked all grants of user %s", user_id)

    async def replace_grants(
        self,
        user_id: str,
        features: Iterable[Feature],
        school_ids: Iterable[int],
    ) -> None:
        """Make the user's grants exactly the given features and schools."""
        await self.revoke_all(user_id)
        for feature in dict.fromkeys(features):
            await self.grant_feature(user_id, feature)
        await self.grant_scopes(user_id, school_ids)

    def _insert_ignoring_duplicates(self, model, conflict_columns: List[str]):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model).on_conflict_do_nothing(index_elements=conflict_columns)
        if dialect == "sqlite":
            return sqlite_insert(model).on_conflict_do_nothing(index_elements=conflict_columns)
        return insert(model)
