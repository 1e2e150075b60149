"""API route handlers for index administration and indexing."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Header, HTTPException, Request, Response, status

from catalog_search.api.schemas import (
    CreateIndexRequest,
    CreateResourceIdsJobRequest,
    HealthResponse,
    UpdateIndexSettingsRequest,
    UpdateMappingsRequest,
)
from catalog_search.jobs import ResourceIdsJob, ResourceIdsJobService
from catalog_search.models import OperationResult, ReindexJob, ReindexRequest, ResourceEvent
from catalog_search.utils.logging import tenant_log_context
from catalog_search.utils.metrics import get_content_type, get_metrics

logger = logging.getLogger(__name__)

router = APIRouter()

TenantHeader = Annotated[str, Header(alias="X-Okapi-Tenant")]


def _get_state(request: Request, name: str) -> Any:
    """Get an initialized component from app state."""
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return component


def _index_tenant(request: Request, resource_name: str, tenant: str) -> str:
    """Tenant owning the index of ``resource_name`` for a request by ``tenant``."""
    description = request.app.state.catalog.find(resource_name)
    if description is None:
        return tenant
    return request.app.state.tenants.effective_tenant(description, tenant)


@router.get("/admin/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check service health and search engine connectivity."""
    engine = getattr(request.app.state, "engine", None)
    connected = False
    if engine is not None:
        connected = await engine.health_check()

    return HealthResponse(
        status="healthy" if connected else "degraded",
        version="0.1.0",
        search_engine_connected=connected,
    )


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


@router.post("/search/index/inventory/reindex", response_model=ReindexJob)
async def reindex_inventory(
    request: Request,
    tenant: TenantHeader,
    body: Annotated[ReindexRequest | None, Body()] = None,
) -> ReindexJob:
    """Reindex one primary resource, or all of them when no name is given."""
    orchestrator = _get_state(request, "orchestrator")
    with tenant_log_context(tenant):
        return await orchestrator.reindex(tenant, body)


@router.post("/search/index/indices", response_model=OperationResult)
async def create_index(
    request: Request, tenant: TenantHeader, body: CreateIndexRequest
) -> OperationResult:
    """Create the index of a resource for the requesting tenant."""
    index_manager = _get_state(request, "index_manager")
    index_tenant = _index_tenant(request, body.resource_name, tenant)
    with tenant_log_context(tenant):
        return await index_manager.create_index(
            body.resource_name, index_tenant, body.index_settings
        )


@router.put("/search/index/mappings", response_model=OperationResult)
async def update_mappings(
    request: Request, tenant: TenantHeader, body: UpdateMappingsRequest
) -> OperationResult:
    """Push the current mappings of a resource to its index."""
    index_manager = _get_state(request, "index_manager")
    index_tenant = _index_tenant(request, body.resource_name, tenant)
    with tenant_log_context(tenant):
        return await index_manager.update_mappings(body.resource_name, index_tenant)


@router.put("/search/index/settings", response_model=OperationResult)
async def update_index_settings(
    request: Request, tenant: TenantHeader, body: UpdateIndexSettingsRequest
) -> OperationResult:
    """Change replica count and refresh interval of a resource index."""
    index_manager = _get_state(request, "index_manager")
    index_tenant = _index_tenant(request, body.resource_name, tenant)
    with tenant_log_context(tenant):
        return await index_manager.update_settings(
            body.resource_name, index_tenant, body.index_settings
        )


@router.post("/search/index/records", response_model=OperationResult)
async def index_records(
    request: Request, tenant: TenantHeader, events: list[ResourceEvent]
) -> OperationResult:
    """Index a batch of resource events. Events without a tenant get the caller's."""
    resource_service = _get_state(request, "resource_service")
    events = [e if e.tenant else e.model_copy(update={"tenant": tenant}) for e in events]
    with tenant_log_context(tenant):
        return await resource_service.index_events(events)


@router.post(
    "/search/resources/jobs",
    response_model=ResourceIdsJob,
    response_model_exclude_none=True,
)
async def create_resource_ids_job(
    request: Request, tenant: TenantHeader, body: CreateResourceIdsJobRequest
) -> ResourceIdsJob:
    """Start streaming the ids of the records matching a query."""
    job_service: ResourceIdsJobService = _get_state(request, "job_service")
    if job_service.streamer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Resource id streaming not configured",
        )
    job = ResourceIdsJob(query=body.query, entity_type=body.entity_type)
    with tenant_log_context(tenant):
        return await job_service.create_stream_job(job, tenant)


@router.get(
    "/search/resources/jobs/{job_id}",
    response_model=ResourceIdsJob,
    response_model_exclude_none=True,
)
async def get_resource_ids_job(request: Request, job_id: str) -> ResourceIdsJob:
    """Get a resource-id streaming job."""
    job_service: ResourceIdsJobService = _get_state(request, "job_service")
    return await job_service.get_job_by_id(job_id)
