"""
Grant Repository - PostgreSQL grant store.

Durable CRUD for permanent assignments and temporary grants plus the
current-access mirror. Every time comparison uses an "as of" value from
the injected Clock, passed as a query parameter; the database clock is
never consulted.

Exports:
    PostgreSQLGrantRepository: IGrantRepository over PostgreSQL
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg import sql

from config import DatabaseConfig
from core.clock import Clock, SystemClock, ensure_aware_utc
from core.models import (
    AccessLevel,
    AccessSource,
    CurrentAccessRow,
    GrantStatus,
    PermanentAssignment,
    TemporaryGrant,
)
from exceptions import NotFoundError, ValidationError
from .interface_repository import IGrantRepository
from .postgresql import PostgreSQLRepository


_GRANT_COLUMNS = sql.SQL(
    "grant_id, user_id, region_id, access_level, granted_by, granted_at, "
    "expires_at, revoked_at, revoked_by, reason"
)


class PostgreSQLGrantRepository(PostgreSQLRepository, IGrantRepository):
    """
    Grant store over {schema}.temporary_grants, permanent_assignments and
    current_region_access.
    """

    def __init__(self, clock: Optional[Clock] = None,
                 connection_string: Optional[str] = None,
                 schema_name: Optional[str] = None,
                 config: Optional[DatabaseConfig] = None):
        super().__init__(connection_string=connection_string, schema_name=schema_name, config=config)
        self.clock = clock or SystemClock()

    # ========================================================================
    # TEMPORARY GRANTS
    # ========================================================================

    def create_temporary_grant(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        expires_at: datetime,
        reason: str,
        granted_by: str,
    ) -> TemporaryGrant:
        with self._error_context("temporary grant creation", f"{user_id}/{region_id}"):
            now = self.clock.now()
            expires_at = ensure_aware_utc(expires_at, "expires_at")
            if expires_at <= now:
                raise ValidationError("expires_at must be in the future", field="expires_at")

            grant = TemporaryGrant(
                user_id=user_id,
                region_id=region_id,
                access_level=AccessLevel(access_level),
                granted_by=granted_by,
                granted_at=now,
                expires_at=expires_at,
                reason=reason or "",
            )

            with self._transaction() as cur:
                # Serialize concurrent creates for the same (user, region)
                cur.execute(
                    sql.SQL("SELECT pg_advisory_xact_lock(hashtext(%s))").format(),
                    (f"{user_id}:{region_id}",)
                )
                cur.execute(sql.SQL("""
                    SELECT grant_id FROM {grants}
                    WHERE user_id = %s AND region_id = %s
                      AND revoked_at IS NULL AND expires_at > %s
                    LIMIT 1
                """).format(grants=self._table("temporary_grants")),
                    (user_id, region_id, now)
                )
                if cur.fetchone():
                    raise ValidationError(
                        "User already has an active temporary grant for this region",
                        field="region_id"
                    )

                cur.execute(sql.SQL("""
                    INSERT INTO {grants} ({cols})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, NULL, NULL, %s)
                """).format(grants=self._table("temporary_grants"), cols=_GRANT_COLUMNS), (
                    grant.grant_id, grant.user_id, grant.region_id, grant.access_level.value,
                    grant.granted_by, grant.granted_at, grant.expires_at, grant.reason,
                ))

                cur.execute(sql.SQL("""
                    INSERT INTO {mirror} (user_id, region_id, source, grant_id, access_level, added_at)
                    VALUES (%s, %s, 'temporary', %s, %s, %s)
                """).format(mirror=self._table("current_region_access")), (
                    grant.user_id, grant.region_id, grant.grant_id,
                    grant.access_level.value, now,
                ))

            self._log_operation_result(True, "Temporary grant created", grant.grant_id, {
                "user_id": user_id, "region_id": region_id,
                "expires_at": grant.expires_at.isoformat(),
            })
            return grant

    def revoke_temporary_grant(self, grant_id: str, revoked_by: str) -> TemporaryGrant:
        with self._error_context("temporary grant revocation", grant_id):
            now = self.clock.now()
            with self._transaction() as cur:
                cur.execute(sql.SQL("""
                    SELECT {cols} FROM {grants} WHERE grant_id = %s FOR UPDATE
                """).format(cols=_GRANT_COLUMNS, grants=self._table("temporary_grants")),
                    (grant_id,)
                )
                row = cur.fetchone()
                if row is None:
                    raise NotFoundError(f"Grant {grant_id} not found", field="grant_id")

                if row['revoked_at'] is not None:
                    self.logger.info(f"Grant {grant_id} already revoked, returning unchanged")
                    return self._row_to_grant(row)

                cur.execute(sql.SQL("""
                    UPDATE {grants} SET revoked_at = %s, revoked_by = %s
                    WHERE grant_id = %s
                    RETURNING {cols}
                """).format(cols=_GRANT_COLUMNS, grants=self._table("temporary_grants")),
                    (now, revoked_by, grant_id)
                )
                updated = cur.fetchone()

                cur.execute(sql.SQL("""
                    DELETE FROM {mirror} WHERE source = 'temporary' AND grant_id = %s
                """).format(mirror=self._table("current_region_access")), (grant_id,))

            self._log_operation_result(True, "Temporary grant revoked", grant_id, {"revoked_by": revoked_by})
            return self._row_to_grant(updated)

    def get_temporary_grant(self, grant_id: str) -> Optional[TemporaryGrant]:
        query = sql.SQL("SELECT {cols} FROM {grants} WHERE grant_id = %s").format(
            cols=_GRANT_COLUMNS, grants=self._table("temporary_grants")
        )
        with self._error_context("temporary grant lookup", grant_id):
            row = self._execute_query(query, (grant_id,), fetch='one')
            return self._row_to_grant(row) if row else None

    def list_valid_grants(self, user_id: str, as_of: datetime) -> List[TemporaryGrant]:
        as_of = ensure_aware_utc(as_of, "as_of")
        query = sql.SQL("""
            SELECT {cols} FROM {grants}
            WHERE user_id = %s AND revoked_at IS NULL AND expires_at > %s
            ORDER BY expires_at, grant_id
        """).format(cols=_GRANT_COLUMNS, grants=self._table("temporary_grants"))
        with self._error_context("valid grant listing", user_id):
            rows = self._execute_query(query, (user_id, as_of), fetch='all') or []
            return [self._row_to_grant(r) for r in rows]

    def list_grants(
        self,
        as_of: datetime,
        user_id: Optional[str] = None,
        status: Optional[GrantStatus] = None,
    ) -> List[TemporaryGrant]:
        as_of = ensure_aware_utc(as_of, "as_of")
        conditions = []
        params: List[Any] = []

        if user_id:
            conditions.append(sql.SQL("user_id = %s"))
            params.append(user_id)

        if status == GrantStatus.ACTIVE:
            conditions.append(sql.SQL("revoked_at IS NULL AND expires_at > %s"))
            params.append(as_of)
        elif status == GrantStatus.REVOKED:
            conditions.append(sql.SQL("revoked_at IS NOT NULL"))
        elif status == GrantStatus.EXPIRED:
            conditions.append(sql.SQL("revoked_at IS NULL AND expires_at <= %s"))
            params.append(as_of)

        where = (
            sql.SQL("WHERE ") + sql.SQL(" AND ").join(conditions)
            if conditions else sql.SQL("")
        )
        query = sql.SQL("""
            SELECT {cols} FROM {grants} {where}
            ORDER BY granted_at DESC, grant_id
        """).format(cols=_GRANT_COLUMNS, grants=self._table("temporary_grants"), where=where)

        with self._error_context("grant listing"):
            rows = self._execute_query(query, tuple(params), fetch='all') or []
            return [self._row_to_grant(r) for r in rows]

    # ========================================================================
    # PERMANENT ASSIGNMENTS
    # ========================================================================

    def list_permanent_assignments(self, user_id: str) -> List[PermanentAssignment]:
        query = sql.SQL("""
            SELECT user_id, region_id, access_level, assigned_by, assigned_at
            FROM {table} WHERE user_id = %s ORDER BY region_id
        """).format(table=self._table("permanent_assignments"))
        with self._error_context("permanent assignment listing", user_id):
            rows = self._execute_query(query, (user_id,), fetch='all') or []
            return [self._row_to_assignment(r) for r in rows]

    def assign_region(
        self,
        user_id: str,
        region_id: str,
        access_level: AccessLevel,
        assigned_by: Optional[str],
    ) -> PermanentAssignment:
        with self._error_context("region assignment", f"{user_id}/{region_id}"):
            now = self.clock.now()
            level = AccessLevel(access_level).value
            with self._transaction() as cur:
                cur.execute(sql.SQL("""
                    INSERT INTO {table} (user_id, region_id, access_level, assigned_by, assigned_at)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (user_id, region_id) DO UPDATE SET
                        access_level = EXCLUDED.access_level,
                        assigned_by = EXCLUDED.assigned_by
                    RETURNING user_id, region_id, access_level, assigned_by, assigned_at
                """).format(table=self._table("permanent_assignments")),
                    (user_id, region_id, level, assigned_by, now)
                )
                row = cur.fetchone()

                cur.execute(sql.SQL("""
                    INSERT INTO {mirror} (user_id, region_id, source, grant_id, access_level, added_at)
                    VALUES (%s, %s, 'permanent', NULL, %s, %s)
                    ON CONFLICT (user_id, region_id) WHERE source = 'permanent'
                    DO UPDATE SET access_level = EXCLUDED.access_level
                """).format(mirror=self._table("current_region_access")),
                    (user_id, region_id, level, now)
                )

            self._log_operation_result(True, "Region assigned", f"{user_id}/{region_id}")
            return self._row_to_assignment(row)

    def unassign_region(self, user_id: str, region_id: str) -> bool:
        with self._error_context("region unassignment", f"{user_id}/{region_id}"):
            with self._transaction() as cur:
                cur.execute(sql.SQL("""
                    DELETE FROM {table} WHERE user_id = %s AND region_id = %s
                """).format(table=self._table("permanent_assignments")), (user_id, region_id))
                removed = cur.rowcount > 0

                cur.execute(sql.SQL("""
                    DELETE FROM {mirror}
                    WHERE source = 'permanent' AND user_id = %s AND region_id = %s
                """).format(mirror=self._table("current_region_access")), (user_id, region_id))

            self._log_operation_result(removed, "Region unassigned", f"{user_id}/{region_id}")
            return removed

    # ========================================================================
    # CURRENT-ACCESS MIRROR
    # ========================================================================

    def list_current_access(self, user_id: str) -> List[CurrentAccessRow]:
        query = sql.SQL("""
            SELECT user_id, region_id, source, grant_id, access_level, added_at
            FROM {mirror} WHERE user_id = %s ORDER BY region_id, source
        """).format(mirror=self._table("current_region_access"))
        with self._error_context("current access listing", user_id):
            rows = self._execute_query(query, (user_id,), fetch='all') or []
            return [
                CurrentAccessRow(
                    user_id=r['user_id'],
                    region_id=r['region_id'],
                    source=AccessSource(r['source']),
                    grant_id=r['grant_id'],
                    access_level=AccessLevel(r['access_level']),
                    added_at=r['added_at'],
                )
                for r in rows
            ]

    def list_purgeable_grant_ids(self, as_of: datetime) -> List[str]:
        as_of = ensure_aware_utc(as_of, "as_of")
        query = sql.SQL("""
            SELECT DISTINCT c.grant_id
            FROM {mirror} c
            JOIN {grants} g ON g.grant_id = c.grant_id
            WHERE c.source = 'temporary'
              AND (g.revoked_at IS NOT NULL OR g.expires_at <= %s)
            ORDER BY c.grant_id
        """).format(
            mirror=self._table("current_region_access"),
            grants=self._table("temporary_grants"),
        )
        with self._error_context("purgeable grant listing"):
            rows = self._execute_query(query, (as_of,), fetch='all') or []
            return [r['grant_id'] for r in rows]

    def purge_expired(self, as_of: datetime) -> int:
        """
        Single DELETE ... USING statement, so concurrent callers cannot
        double-count: each row is deleted by exactly one of them.
        """
        as_of = ensure_aware_utc(as_of, "as_of")
        query = sql.SQL("""
            DELETE FROM {mirror} c
            USING {grants} g
            WHERE c.grant_id = g.grant_id
              AND c.source = 'temporary'
              AND (g.revoked_at IS NOT NULL OR g.expires_at <= %s)
        """).format(
            mirror=self._table("current_region_access"),
            grants=self._table("temporary_grants"),
        )
        with self._error_context("expired grant purge"):
            count = self._execute_query(query, (as_of,))
            return int(count or 0)

    # ========================================================================
    # ROW MAPPING
    # ========================================================================

    @staticmethod
    def _row_to_grant(row: Dict[str, Any]) -> TemporaryGrant:
        return TemporaryGrant(
            grant_id=row['grant_id'],
            user_id=row['user_id'],
            region_id=row['region_id'],
            access_level=AccessLevel(row['access_level']),
            granted_by=row['granted_by'],
            granted_at=row['granted_at'],
            expires_at=row['expires_at'],
            revoked_at=row['revoked_at'],
            revoked_by=row['revoked_by'],
            reason=row['reason'] or "",
        )

    @staticmethod
    def _row_to_assignment(row: Dict[str, Any]) -> PermanentAssignment:
        return PermanentAssignment(
            user_id=row['user_id'],
            region_id=row['region_id'],
            access_level=AccessLevel(row['access_level']),
            assigned_by=row['assigned_by'],
            assigned_at=row['assigned_at'],
        )
