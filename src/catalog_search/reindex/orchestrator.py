"""Reindex orchestration across resources, their dependents and tenant roles."""

import logging

import httpx

from catalog_search.clients.sources import ReindexTrigger
from catalog_search.config import Settings
from catalog_search.consortium.aggregator import ConsortiumAggregator
from catalog_search.consortium.tenants import TenantProvider, TenantRole, index_name
from catalog_search.exceptions import RequestValidationError
from catalog_search.indexing.index_manager import IndexLifecycleManager
from catalog_search.metadata import ReindexPolicy, ResourceDescription, ResourceDescriptionCatalog
from catalog_search.models import OperationResult, ReindexJob, ReindexJobStatus, ReindexRequest
from catalog_search.reindex.locations import TreeReindexer
from catalog_search.utils.metrics import record_reindex_request

logger = logging.getLogger(__name__)


class ReindexOrchestrator:
    """Decides and performs what a reindex request does to each index.

    A request targets one primary resource, or every primary resource when
    no name is given. Depending on the resource's reindex policy the
    orchestrator:

    - ``external``: optionally recreates the indexes, then asks the storage
      module owning the records to re-publish them and returns that job;
    - ``tree``: optionally recreates the indexes, then rewrites every
      document of the resource and its dependents before returning;
    - ``structural``: optionally recreates the indexes and returns, the index
      stays empty until the next writes arrive.

    Consortium members never touch the indexes of shared resources, those
    belong to the central tenant. Each physical index is recreated at most
    once per request.
    """

    def __init__(
        self,
        catalog: ResourceDescriptionCatalog,
        index_manager: IndexLifecycleManager,
        tenants: TenantProvider,
        aggregator: ConsortiumAggregator,
        trigger: ReindexTrigger,
        tree_reindexer: TreeReindexer,
        settings: Settings,
    ) -> None:
        self.catalog = catalog
        self.index_manager = index_manager
        self.tenants = tenants
        self.aggregator = aggregator
        self.trigger = trigger
        self.tree_reindexer = tree_reindexer
        self.settings = settings

    def resolve_resources(self, request: ReindexRequest) -> list[ResourceDescription]:
        """Primary resources targeted by a request.

        Raises:
            RequestValidationError: If the name is unknown or not a primary resource.
        """
        name = request.resource_name
        if name is None:
            return [self.catalog.get(n) for n in self.catalog.primary_resource_names()]

        description = self.catalog.find(name)
        if description is None or not description.is_primary:
            raise RequestValidationError(f"Unexpected value '{name}'", "resourceName", name)
        return [description]

    def indexed_resources(self, description: ResourceDescription) -> list[str]:
        """The resource and its transitive dependents that own an index."""
        names = [description.name, *self.catalog.get_secondary_resource_names(description.name)]
        return [n for n in names if self.catalog.get(n).own_index]

    async def reindex(self, tenant: str, request: ReindexRequest | None = None) -> ReindexJob:
        """Run a reindex request for ``tenant``.

        Raises:
            RequestValidationError: Before any index is touched, if the request is invalid.
        """
        request = request or ReindexRequest()
        descriptions = self.resolve_resources(request)
        handled: set[str] = set()

        jobs = []
        for description in descriptions:
            job = await self._reindex_resource(
                tenant, description, request.recreate_index, handled
            )
            record_reindex_request(
                description.name, description.reindex_policy.value, job.job_status.value
            )
            jobs.append((description, job))

        if request.resource_name is not None:
            return jobs[0][1]

        for description, job in jobs:
            external = description.reindex_policy is ReindexPolicy.EXTERNAL
            if external and job.job_status is ReindexJobStatus.IN_PROGRESS:
                return job
        errors = [job.error_message for _, job in jobs if job.job_status is ReindexJobStatus.ERROR]
        if errors:
            return ReindexJob(
                job_status=ReindexJobStatus.ERROR,
                error_message="; ".join(e or "unknown error" for e in errors),
            )
        return ReindexJob.completed()

    async def _reindex_resource(
        self,
        tenant: str,
        description: ResourceDescription,
        recreate: bool,
        handled: set[str],
    ) -> ReindexJob:
        role = self.tenants.role(tenant)
        policy = description.reindex_policy
        logger.info(
            f"Reindexing {description.name} ({policy.value}) for {role.value} tenant {tenant}, "
            f"recreate={recreate}"
        )

        if role is TenantRole.MEMBER and description.consortium_shared:
            if policy is ReindexPolicy.EXTERNAL:
                return await self._submit_external(tenant, description)
            return ReindexJob.completed(description.name)

        index_tenant = self.tenants.effective_tenant(description, tenant)
        targets = self.indexed_resources(description)

        if recreate:
            recreated = await self._recreate(targets, index_tenant, handled)
            if not recreated.is_success:
                return _failed(description, recreated)
            if (
                policy is ReindexPolicy.EXTERNAL
                and role is TenantRole.CENTRAL
                and description.consortium_shared
            ):
                cleared = await self.aggregator.delete_all(tenant, targets)
                if not cleared.is_success:
                    return _failed(description, cleared)

        if policy is ReindexPolicy.EXTERNAL:
            return await self._submit_external(tenant, description)

        if policy is ReindexPolicy.TREE:
            results = [await self.tree_reindexer.reindex(index_tenant, t) for t in targets]
            merged = OperationResult.merge(results)
            if not merged.is_success:
                return _failed(description, merged)

        return ReindexJob.completed(description.name)

    async def _recreate(
        self, resources: list[str], tenant: str, handled: set[str]
    ) -> OperationResult:
        results = []
        for resource in resources:
            index = index_name(resource, tenant)
            if index in handled:
                continue
            handled.add(index)
            results.append(await self.index_manager.recreate_index(resource, tenant))
        return OperationResult.merge(results)

    async def _submit_external(self, tenant: str, description: ResourceDescription) -> ReindexJob:
        uri = self.settings.reindex_uri_template.format(endpoint=description.reindex_endpoint)
        try:
            job = await self.trigger.submit_reindex(uri, tenant)
        except httpx.HTTPError as e:
            logger.error(f"Failed to submit reindex of {description.name} to {uri}: {e}")
            return ReindexJob(
                job_status=ReindexJobStatus.ERROR,
                resource_name=description.name,
                error_message=str(e),
            )
        return job.model_copy(update={"resource_name": description.name})


def _failed(description: ResourceDescription, result: OperationResult) -> ReindexJob:
    logger.error(f"Reindex of {description.name} failed: {result.error_message}")
    return ReindexJob(
        job_status=ReindexJobStatus.ERROR,
        resource_name=description.name,
        error_message=result.error_message,
    )
