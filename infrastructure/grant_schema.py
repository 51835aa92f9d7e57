# ============================================================================
# GRANT SCHEMA DEPLOYER
# ============================================================================
# STATUS: Infrastructure - Access-control schema DDL
# PURPOSE: Deploy region catalogue, grant and current-access tables
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Access-Control Schema Deployment.

Tables (all in the configured app schema):
- regions: Region catalogue (geometry comes from the boundary dataset)
- permanent_assignments: Standing (user, region) authorizations
- temporary_grants: Time-bounded authorizations with optional revocation
- current_region_access: Denormalised "who can see what right now" mirror

Validity of a grant is never stored. The mirror is advisory only and is
swept by the reconciliation loop.

Usage:
    from infrastructure.grant_schema import GrantSchemaDeployer

    deployer = GrantSchemaDeployer()
    result = deployer.deploy_all()
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from psycopg import sql

from config import DatabaseConfig
from infrastructure.postgresql import PostgreSQLRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "grant_schema")


ACCESS_LEVEL_CHECK = "('read', 'write', 'admin')"


class GrantSchemaDeployer:
    """
    Deploy the access-control schema using psycopg SQL composition.

    Every statement is idempotent (IF NOT EXISTS), so deploy_all() can run
    on every startup.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.repo = PostgreSQLRepository(config=config, check_schema=False)
        self.schema_name = self.repo.schema_name
        logger.info(f"GrantSchemaDeployer initialized for schema: {self.schema_name}")

    def deploy_all(self) -> Dict[str, Any]:
        """
        Deploy the complete schema.

        Returns:
            Dict with per-step results and any errors
        """
        results = {
            "schema": self.schema_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "steps": [],
            "success": False,
            "errors": []
        }

        steps = [
            ("create_schema", self._deploy_schema),
            ("create_regions", self._deploy_regions_table),
            ("create_permanent_assignments", self._deploy_permanent_assignments_table),
            ("create_temporary_grants", self._deploy_temporary_grants_table),
            ("create_current_region_access", self._deploy_current_access_table),
        ]

        for step_name, step_func in steps:
            step = {"name": step_name, "status": "pending"}
            try:
                with self.repo._get_connection() as conn:
                    with conn.cursor() as cur:
                        step_func(cur)
                    conn.commit()
                step["status"] = "success"
                logger.info(f"✅ Step '{step_name}' committed successfully")
            except Exception as e:
                step["status"] = "failed"
                step["error"] = str(e)
                results["errors"].append(f"{step_name}: {e}")
                logger.error(f"❌ Step '{step_name}' failed: {e}")
                # Later tables depend on earlier ones
                results["steps"].append(step)
                break
            results["steps"].append(step)

        results["success"] = len(results["errors"]) == 0
        logger.info(f"Access-control schema deployment complete (errors: {len(results['errors'])})")
        return results

    # ========================================================================
    # DDL STEPS
    # ========================================================================

    def _deploy_schema(self, cur):
        cur.execute(sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(
            sql.Identifier(self.schema_name)
        ))

    def _deploy_regions_table(self, cur):
        """
        regions - catalogue. Geometry is loaded from the boundary dataset at
        process start, not stored here.
        """
        cur.execute(sql.SQL("""
            CREATE TABLE IF NOT EXISTS {schema}.regions (
                region_id VARCHAR(64) PRIMARY KEY,
                name VARCHAR(200) NOT NULL,
                code VARCHAR(16) NOT NULL DEFAULT '',
                region_type VARCHAR(32) NOT NULL DEFAULT 'state'
                    CHECK (region_type IN ('country', 'state', 'union_territory', 'district')),
                aliases TEXT[] NOT NULL DEFAULT '{{}}',
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """).format(schema=sql.Identifier(self.schema_name)))

    def _deploy_permanent_assignments_table(self, cur):
        cur.execute(sql.SQL("""
            CREATE TABLE IF NOT EXISTS {schema}.permanent_assignments (
                user_id VARCHAR(128) NOT NULL,
                region_id VARCHAR(64) NOT NULL REFERENCES {schema}.regions(region_id),
                access_level VARCHAR(16) NOT NULL DEFAULT 'read'
                    CHECK (access_level IN {levels}),
                assigned_by VARCHAR(128),
                assigned_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (user_id, region_id)
            )
        """).format(
            schema=sql.Identifier(self.schema_name),
            levels=sql.SQL(ACCESS_LEVEL_CHECK)
        ))

    def _deploy_temporary_grants_table(self, cur):
        cur.execute(sql.SQL("""
            CREATE TABLE IF NOT EXISTS {schema}.temporary_grants (
                grant_id VARCHAR(36) PRIMARY KEY,
                user_id VARCHAR(128) NOT NULL,
                region_id VARCHAR(64) NOT NULL REFERENCES {schema}.regions(region_id),
                access_level VARCHAR(16) NOT NULL DEFAULT 'read'
                    CHECK (access_level IN {levels}),
                granted_by VARCHAR(128) NOT NULL,
                granted_at TIMESTAMPTZ NOT NULL,
                expires_at TIMESTAMPTZ NOT NULL,
                revoked_at TIMESTAMPTZ,
                revoked_by VARCHAR(128),
                reason TEXT NOT NULL DEFAULT '',
                CONSTRAINT temporary_grants_window_check CHECK (expires_at > granted_at)
            )
        """).format(
            schema=sql.Identifier(self.schema_name),
            levels=sql.SQL(ACCESS_LEVEL_CHECK)
        ))

        cur.execute(sql.SQL("""
            CREATE INDEX IF NOT EXISTS idx_temporary_grants_user_unrevoked
            ON {schema}.temporary_grants (user_id, expires_at)
            WHERE revoked_at IS NULL
        """).format(schema=sql.Identifier(self.schema_name)))

    def _deploy_current_access_table(self, cur):
        """
        current_region_access - advisory mirror. One permanent row per
        (user, region), one temporary row per grant.
        """
        cur.execute(sql.SQL("""
            CREATE TABLE IF NOT EXISTS {schema}.current_region_access (
                id BIGSERIAL PRIMARY KEY,
                user_id VARCHAR(128) NOT NULL,
                region_id VARCHAR(64) NOT NULL,
                source VARCHAR(16) NOT NULL CHECK (source IN ('permanent', 'temporary')),
                grant_id VARCHAR(36) REFERENCES {schema}.temporary_grants(grant_id) ON DELETE CASCADE,
                access_level VARCHAR(16) NOT NULL DEFAULT 'read'
                    CHECK (access_level IN {levels}),
                added_at TIMESTAMPTZ NOT NULL
            )
        """).format(
            schema=sql.Identifier(self.schema_name),
            levels=sql.SQL(ACCESS_LEVEL_CHECK)
        ))

        cur.execute(sql.SQL("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_current_access_permanent
            ON {schema}.current_region_access (user_id, region_id)
            WHERE source = 'permanent'
        """).format(schema=sql.Identifier(self.schema_name)))

        cur.execute(sql.SQL("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_current_access_grant
            ON {schema}.current_region_access (grant_id)
            WHERE source = 'temporary'
        """).format(schema=sql.Identifier(self.schema_name)))


def deploy_grant_schema(config: Optional[DatabaseConfig] = None) -> Dict[str, Any]:
    """Convenience wrapper used at startup."""
    return GrantSchemaDeployer(config=config).deploy_all()
