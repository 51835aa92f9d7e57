# ============================================================================
# ACCESS SERVICE - FASTAPI APPLICATION
# ============================================================================
# STATUS: Entrypoint - HTTP surface for region access control
# PURPOSE: Grant management, effective-region queries and coordinate authorization
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Region Access Service.

FastAPI application exposing the grant store, the resolver and the
enforcement gate. Caller identity is forwarded by the upstream gateway in
the X-User-Id and X-User-Role headers.

Lifespan:
    1. Load configuration
    2. Deploy the grant schema (PostgreSQL backend only)
    3. Build repositories, seeding the region catalogue when configured
    4. Load the boundary index (failure logged, service stays up fail-open)
    5. Start the reconciliation worker; stop it on shutdown

Endpoints:
    GET    /regions/current              Effective regions for a user
    POST   /grants                       Issue a temporary grant
    DELETE /grants/{grant_id}            Revoke a temporary grant
    GET    /grants                       Admin listing with countdowns
    GET    /grants/mine                  Caller's active grants
    GET    /users/{user_id}/regions      Permanent assignments
    POST   /users/{user_id}/regions      Assign a region permanently
    DELETE /users/{user_id}/regions/{region_id}
    POST   /authorize                    Gate decision at a coordinate
    POST   /reconciliation/run           Trigger one purge
    GET    /boundary/status              Boundary index status
    GET    /livez, /readyz, /health      Probes

Run:
    uvicorn access_service:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config import AppConfig, debug_config, get_config
from core.clock import Clock, SystemClock
from core.models import (
    AccessLevel,
    AuthorizationDecision,
    CallerIdentity,
    EffectiveRegion,
    GrantStatus,
    PermanentAssignment,
    RegionType,
    TimeRemaining,
)
from exceptions import AuthenticationError, BoundaryLoadError, BusinessLogicError, ValidationError
from infrastructure import BoundarySource, RepositoryFactory
from infrastructure.interface_repository import IGrantRepository, IRegionRepository
from services import (
    BoundaryIndex,
    EnforcementGate,
    GrantResolver,
    GrantService,
    GrantView,
    ReconciliationService,
    ReconciliationWorker,
)
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "AccessService")


# ============================================================================
# API MODELS (camelCase on the wire)
# ============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TimeRemainingOut(CamelModel):
    expired: bool
    display: str
    days: int
    hours: int
    minutes: int
    seconds: int
    total_seconds: int

    @classmethod
    def from_model(cls, value: Optional[TimeRemaining]) -> Optional["TimeRemainingOut"]:
        return cls(**value.model_dump()) if value else None


class RegionAccessOut(CamelModel):
    id: str
    name: str
    code: str
    type: RegionType
    access_level: AccessLevel
    is_temporary: bool
    expires_at: Optional[datetime] = None
    time_remaining: Optional[TimeRemainingOut] = None
    grant_id: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: EffectiveRegion) -> "RegionAccessOut":
        return cls(
            id=entry.region.region_id,
            name=entry.region.name,
            code=entry.region.code,
            type=entry.region.region_type,
            access_level=entry.access_level,
            is_temporary=entry.is_temporary,
            expires_at=entry.expires_at,
            time_remaining=TimeRemainingOut.from_model(entry.time_remaining),
            grant_id=entry.grant_id,
        )


class CurrentRegionsOut(CamelModel):
    user_id: str
    regions: List[RegionAccessOut]
    count: int


class GrantOut(CamelModel):
    id: str
    user_id: str
    region_id: str
    region_name: Optional[str] = None
    access_level: AccessLevel
    reason: str
    granted_by: str
    granted_at: datetime
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    status: GrantStatus
    time_remaining: TimeRemainingOut

    @classmethod
    def from_view(cls, view: GrantView) -> "GrantOut":
        grant = view.grant
        return cls(
            id=grant.grant_id,
            user_id=grant.user_id,
            region_id=grant.region_id,
            region_name=view.region_name,
            access_level=grant.access_level,
            reason=grant.reason,
            granted_by=grant.granted_by,
            granted_at=grant.granted_at,
            expires_at=grant.expires_at,
            revoked_at=grant.revoked_at,
            revoked_by=grant.revoked_by,
            status=view.status,
            time_remaining=TimeRemainingOut.from_model(view.time_remaining),
        )


class GrantListOut(CamelModel):
    grants: List[GrantOut]
    count: int


class AssignmentOut(CamelModel):
    user_id: str
    region_id: str
    access_level: AccessLevel
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, assignment: PermanentAssignment) -> "AssignmentOut":
        return cls(**assignment.model_dump())


class AssignmentListOut(CamelModel):
    user_id: str
    assignments: List[AssignmentOut]
    count: int


class DecisionOut(CamelModel):
    allowed: bool
    reason: str
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    fail_open: bool = False

    @classmethod
    def from_decision(cls, decision: AuthorizationDecision) -> "DecisionOut":
        return cls(**decision.model_dump())


class GrantRequest(CamelModel):
    user_id: str
    region_id: str
    expires_at: datetime
    reason: str
    access_level: Optional[str] = None


class AssignmentRequest(CamelModel):
    region_id: str
    access_level: Optional[str] = None


class AuthorizeRequest(CamelModel):
    lat: float
    lng: float


def _camel_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(str(k)): _camel_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camel_keys(v) for v in value]
    return value


# ============================================================================
# SERVICE CONTEXT
# ============================================================================

@dataclass
class AccessServiceContext:
    """Everything the routes need, built once in the lifespan."""

    config: AppConfig
    clock: Clock
    grant_repo: IGrantRepository
    region_repo: IRegionRepository
    boundary_index: BoundaryIndex
    resolver: GrantResolver
    grant_service: GrantService
    gate: EnforcementGate
    reconciliation: ReconciliationService
    worker: Optional[ReconciliationWorker] = None
    schema_status: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None


def build_context(config: AppConfig, clock: Clock,
                  repos: Optional[Dict[str, Any]] = None,
                  boundary_source: Optional[BoundarySource] = None) -> AccessServiceContext:
    """Wire repositories and services. Does not touch the network."""
    repos = repos or RepositoryFactory.create_repositories(config, clock)
    grant_repo = repos['grant_repo']
    region_repo = repos['region_repo']

    boundary_index = BoundaryIndex(config.boundary, region_repo, source=boundary_source)
    resolver = GrantResolver(grant_repo, region_repo, clock,
                             cache_ttl_seconds=config.access.resolver_cache_ttl_seconds)
    return AccessServiceContext(
        config=config,
        clock=clock,
        grant_repo=grant_repo,
        region_repo=region_repo,
        boundary_index=boundary_index,
        resolver=resolver,
        grant_service=GrantService(grant_repo, region_repo, resolver, config.access, clock),
        gate=EnforcementGate(boundary_index, resolver, fail_open=config.boundary.fail_open),
        reconciliation=ReconciliationService(grant_repo, clock, config.reconciliation),
    )


def get_context(request: Request) -> AccessServiceContext:
    return request.app.state.context


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CallerIdentity:
    """
    Raises:
        AuthenticationError: X-User-Id missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("X-User-Id header is required")
    return CallerIdentity(user_id=x_user_id.strip(), role=x_user_role)


# ============================================================================
# ROUTES
# ============================================================================

router = APIRouter()


@router.get("/regions/current", response_model=CurrentRegionsOut)
def current_regions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    """Effective regions for userId (defaults to the caller)."""
    target = user_id or caller.user_id
    if target != caller.user_id:
        ctx.grant_service.require_grant_admin(caller)
    entries = ctx.resolver.cached_effective_regions(target)
    return CurrentRegionsOut(
        user_id=target,
        regions=[RegionAccessOut.from_entry(e) for e in entries],
        count=len(entries),
    )


@router.post("/grants", response_model=GrantOut, status_code=201)
def create_grant(
    body: GrantRequest,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    if body.expires_at.tzinfo is None:
        raise ValidationError("expiresAt must include a UTC offset", field="expires_at")
    grant = ctx.grant_service.grant_temporary_access(
        caller,
        user_id=body.user_id,
        region_id=body.region_id,
        expires_at=body.expires_at,
        reason=body.reason,
        access_level=body.access_level,
    )
    return GrantOut.from_view(ctx.grant_service.view(grant))


@router.get("/grants/mine", response_model=GrantListOut)
def my_grants(
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    views = ctx.grant_service.my_active_grants(caller)
    return GrantListOut(grants=[GrantOut.from_view(v) for v in views], count=len(views))


@router.get("/grants", response_model=GrantListOut)
def list_grants(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    status: Optional[str] = None,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    views = ctx.grant_service.list_grants(caller, user_id=user_id, status=status)
    return GrantListOut(grants=[GrantOut.from_view(v) for v in views], count=len(views))


@router.delete("/grants/{grant_id}", response_model=GrantOut)
def revoke_grant(
    grant_id: str,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    grant = ctx.grant_service.revoke_temporary_access(caller, grant_id)
    return GrantOut.from_view(ctx.grant_service.view(grant))


@router.get("/users/{user_id}/regions", response_model=AssignmentListOut)
def list_assignments(
    user_id: str,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    assignments = ctx.grant_service.list_assignments(caller, user_id)
    return AssignmentListOut(
        user_id=user_id,
        assignments=[AssignmentOut.from_model(a) for a in assignments],
        count=len(assignments),
    )


@router.post("/users/{user_id}/regions", response_model=AssignmentOut, status_code=201)
def assign_region(
    user_id: str,
    body: AssignmentRequest,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    assignment = ctx.grant_service.assign_region(caller, user_id, body.region_id,
                                                 access_level=body.access_level)
    return AssignmentOut.from_model(assignment)


@router.delete("/users/{user_id}/regions/{region_id}")
def unassign_region(
    user_id: str,
    region_id: str,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    ctx.grant_service.unassign_region(caller, user_id, region_id)
    return {"success": True, "userId": user_id, "regionId": region_id}


@router.post("/authorize", response_model=DecisionOut)
def authorize(
    body: AuthorizeRequest,
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    """Gate decision for the caller. A denial is a 200 with allowed=false."""
    return DecisionOut.from_decision(ctx.gate.authorize(caller, body.lat, body.lng))


@router.post("/reconciliation/run")
def run_reconciliation(
    caller: CallerIdentity = Depends(get_caller),
    ctx: AccessServiceContext = Depends(get_context),
):
    ctx.grant_service.require_grant_admin(caller)
    result = ctx.reconciliation.run_purge()
    return _camel_keys(result.to_dict())


@router.get("/boundary/status")
def boundary_status(ctx: AccessServiceContext = Depends(get_context)):
    return _camel_keys(ctx.boundary_index.status())


# ============================================================================
# PROBES
# ============================================================================

@router.get("/livez")
def liveness_probe():
    """Returns 200 while the process is running."""
    return {"status": "ok"}


@router.get("/readyz")
def readiness_probe(request: Request):
    """
    Ready once the lifespan has wired the services.

    Boundary data is not part of readiness: without it the
    gate runs fail-open (or fail-closed) and the grant API still works.
    """
    ctx: Optional[AccessServiceContext] = getattr(request.app.state, "context", None)
    if ctx is None:
        return JSONResponse(status_code=503, content={"status": "not_ready"})

    schema_ok = ctx.schema_status is None or ctx.schema_status.get("success", False)
    if not schema_ok:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "schema": "failed"},
        )
    return {
        "status": "ready",
        "storageBackend": ctx.config.access.storage_backend,
        "boundaryState": ctx.boundary_index.status()["state"],
    }


@router.get("/health")
def health_check(ctx: AccessServiceContext = Depends(get_context)):
    """Detailed health: config (masked), boundary index, reconciliation worker."""
    uptime = None
    if ctx.started_at:
        uptime = round((datetime.now(timezone.utc) - ctx.started_at).total_seconds(), 1)
    return {
        "status": "healthy",
        "uptimeSeconds": uptime,
        "clockNow": ctx.clock.now().isoformat(),
        "boundary": _camel_keys(ctx.boundary_index.status()),
        "reconciliation": _camel_keys(
            ctx.worker.get_status() if ctx.worker else ctx.reconciliation.get_status()
        ),
        "schema": ctx.schema_status,
        "config": debug_config() if ctx.config.debug_mode else None,
    }


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

def _deploy_schema(config: AppConfig) -> Dict[str, Any]:
    from infrastructure.grant_schema import deploy_grant_schema

    try:
        status = deploy_grant_schema(config.database)
    except Exception as e:
        logger.error(f"❌ Grant schema deployment failed: {e}", exc_info=True)
        return {"success": False, "errors": [str(e)]}
    if not status.get("success"):
        logger.error(f"❌ Grant schema deployment reported errors: {status.get('errors')}")
    return status


def create_app(
    config: Optional[AppConfig] = None,
    clock: Optional[Clock] = None,
    repos: Optional[Dict[str, Any]] = None,
    boundary_source: Optional[BoundarySource] = None,
    start_workers: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Application config (default: get_config() at startup)
        clock: Authoritative clock (default: SystemClock)
        repos: Pre-built {'grant_repo', 'region_repo'} (default: RepositoryFactory)
        boundary_source: Boundary dataset fetcher (tests inject a mock transport)
        start_workers: Start the background reconciliation worker
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_config = config or get_config()
        LoggerFactory.configure_level(app_config.log_level)
        logger.info("=" * 60)
        logger.info(f"ACCESS SERVICE - STARTING ({app_config.environment})")
        logger.info("=" * 60)

        schema_status = None
        if repos is None and app_config.access.storage_backend == "postgres":
            # Tables must exist before the repositories check the schema and seed regions
            schema_status = _deploy_schema(app_config)

        ctx = build_context(app_config, clock or SystemClock(), repos, boundary_source)
        ctx.schema_status = schema_status
        ctx.started_at = datetime.now(timezone.utc)

        try:
            ctx.boundary_index.load()
            logger.info(f"[BOUNDARY] Loaded {len(ctx.boundary_index.regions)} regions")
        except BoundaryLoadError as e:
            mode = "fail-open" if app_config.boundary.fail_open else "fail-closed"
            # Failure already logged by the index
            logger.warning(f"[BOUNDARY] Starting without boundary data, gate is {mode} ({e.__class__.__name__})")

        if start_workers and app_config.reconciliation.enabled:
            ctx.worker = ReconciliationWorker(
                ctx.reconciliation,
                interval_seconds=app_config.reconciliation.interval_seconds,
                shutdown_timeout_seconds=app_config.reconciliation.shutdown_timeout_seconds,
            )
            ctx.worker.start()

        app.state.context = ctx
        yield

        logger.info("ACCESS SERVICE - SHUTTING DOWN")
        if ctx.worker is not None:
            ctx.worker.stop()
        app.state.context = None
        logger.info("ACCESS SERVICE - SHUTDOWN COMPLETE")

    app = FastAPI(
        title="Region Access Service",
        description="Geofenced, time-bounded region access control",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = None
    app.include_router(router)

    @app.exception_handler(BusinessLogicError)
    async def business_error_handler(request: Request, exc: BusinessLogicError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = [str(p) for p in first.get("loc", ())
                    if p not in ("body", "query", "path", "header")]
        body: Dict[str, Any] = {
            "success": False,
            "error": first.get("msg", "Invalid request"),
            "error_code": ValidationError.error_code,
        }
        if location:
            body["field"] = ".".join(location)
        return JSONResponse(status_code=ValidationError.http_status, content=body)

    return app


app = create_app()


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "8000"))
    logger.info(f"Region Access Service on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
