"""
Region Repository - PostgreSQL region catalogue.

Exports:
    PostgreSQLRegionRepository: IRegionRepository over the regions table
"""

from typing import Any, Dict, List, Optional

from psycopg import sql

from core.models import Region, RegionType
from .interface_repository import IRegionRepository
from .postgresql import PostgreSQLRepository


class PostgreSQLRegionRepository(PostgreSQLRepository, IRegionRepository):
    """Region catalogue backed by {schema}.regions."""

    _COLUMNS = sql.SQL("region_id, name, code, region_type, aliases, is_active")

    def get_region(self, region_id: str) -> Optional[Region]:
        query = sql.SQL("SELECT {cols} FROM {table} WHERE region_id = %s").format(
            cols=self._COLUMNS,
            table=self._table("regions"),
        )
        with self._error_context("region lookup", region_id):
            row = self._execute_query(query, (region_id,), fetch='one')
            return self._row_to_region(row) if row else None

    def list_regions(self, active_only: bool = True) -> List[Region]:
        where = sql.SQL("WHERE is_active") if active_only else sql.SQL("")
        query = sql.SQL("SELECT {cols} FROM {table} {where} ORDER BY name, region_id").format(
            cols=self._COLUMNS,
            table=self._table("regions"),
            where=where,
        )
        with self._error_context("region listing"):
            rows = self._execute_query(query, fetch='all') or []
            return [self._row_to_region(r) for r in rows]

    def upsert_region(self, region: Region) -> Region:
        query = sql.SQL("""
            INSERT INTO {table} (region_id, name, code, region_type, aliases, is_active)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (region_id) DO UPDATE SET
                name = EXCLUDED.name,
                code = EXCLUDED.code,
                region_type = EXCLUDED.region_type,
                aliases = EXCLUDED.aliases,
                is_active = EXCLUDED.is_active,
                updated_at = NOW()
        """).format(table=self._table("regions"))
        params = (
            region.region_id,
            region.name,
            region.code,
            region.region_type.value,
            list(region.aliases),
            region.is_active,
        )
        with self._error_context("region upsert", region.region_id):
            self._execute_query(query, params)
            self._log_operation_result(True, "Region upserted", region.region_id)
            return region

    @staticmethod
    def _row_to_region(row: Dict[str, Any]) -> Region:
        return Region(
            region_id=row['region_id'],
            name=row['name'],
            code=row['code'] or "",
            region_type=RegionType(row['region_type']),
            aliases=list(row['aliases'] or []),
            is_active=row['is_active'],
        )
