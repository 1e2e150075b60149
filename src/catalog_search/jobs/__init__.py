"""Tenant-scoped background jobs."""

from catalog_search.jobs.runner import JobHandle, JobStatus, TenantJobRunner, current_tenant
from catalog_search.jobs.streaming import (
    InMemoryResourceIdsJobRepository,
    ResourceIdsJob,
    ResourceIdsJobRepository,
    ResourceIdsJobService,
    ResourceIdStreamer,
    generate_table_name,
)

__all__ = [
    "InMemoryResourceIdsJobRepository",
    "JobHandle",
    "JobStatus",
    "ResourceIdStreamer",
    "ResourceIdsJob",
    "ResourceIdsJobRepository",
    "ResourceIdsJobService",
    "TenantJobRunner",
    "current_tenant",
    "generate_table_name",
]
