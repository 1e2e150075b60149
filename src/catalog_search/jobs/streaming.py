"""Streaming resource-id jobs."""

import logging
import secrets
import string
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from catalog_search.config import Settings
from catalog_search.exceptions import JobNotFoundError
from catalog_search.jobs.runner import JobHandle, JobStatus, TenantJobRunner
from catalog_search.utils.metrics import record_stream_job

logger = logging.getLogger(__name__)


class ResourceIdsJob(BaseModel):
    """A request to stream the ids of every record matching a query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: str
    entity_type: str
    status: JobStatus | None = None
    created_date: datetime | None = None
    temporary_table_name: str | None = None


class ResourceIdsJobRepository(ABC):
    """Persistence of resource-id jobs."""

    @abstractmethod
    async def save(self, job: ResourceIdsJob) -> ResourceIdsJob: ...

    @abstractmethod
    async def get(self, job_id: str) -> ResourceIdsJob | None: ...

    @abstractmethod
    async def table_name_exists(self, name: str) -> bool: ...


class InMemoryResourceIdsJobRepository(ResourceIdsJobRepository):
    def __init__(self) -> None:
        self._jobs: dict[str, ResourceIdsJob] = {}

    async def save(self, job: ResourceIdsJob) -> ResourceIdsJob:
        self._jobs[job.id] = job
        return job

    async def get(self, job_id: str) -> ResourceIdsJob | None:
        return self._jobs.get(job_id)

    async def table_name_exists(self, name: str) -> bool:
        return any(job.temporary_table_name == name for job in self._jobs.values())


class ResourceIdStreamer(ABC):
    """Stages the ids matching a job's query into its temporary table."""

    @abstractmethod
    async def stream_resource_ids(self, job: ResourceIdsJob, tenant: str) -> None: ...


def generate_table_name(length: int) -> str:
    """Random lowercase ASCII name drawn from a CSPRNG."""
    return "".join(secrets.choice(string.ascii_letters) for _ in range(length)).lower()


class ResourceIdsJobService:
    """Creates resource-id streaming jobs and runs them in the background."""

    def __init__(
        self,
        repository: ResourceIdsJobRepository,
        runner: TenantJobRunner,
        streamer: ResourceIdStreamer | None,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.runner = runner
        self.streamer = streamer
        self.settings = settings

    async def get_job_by_id(self, job_id: str) -> ResourceIdsJob:
        """Look up a job.

        Raises:
            JobNotFoundError: If no job has this id.
        """
        job = await self.repository.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def create_stream_job(self, job: ResourceIdsJob, tenant: str) -> ResourceIdsJob:
        """Persist the job as IN_PROGRESS and start streaming without waiting.

        Raises:
            RuntimeError: If no streamer is configured or no unused table name is found.
        """
        if self.streamer is None:
            raise RuntimeError("Resource id streaming is not configured")
        streamer = self.streamer

        logger.debug(f"Creating stream job {job.id} for tenant {tenant}")
        entity = job.model_copy(
            update={
                "status": JobStatus.IN_PROGRESS,
                "created_date": datetime.now(UTC),
                "temporary_table_name": await self._unused_table_name(),
            }
        )
        saved = await self.repository.save(entity)

        async def work() -> None:
            await streamer.stream_resource_ids(saved, tenant)

        self.runner.run_async(tenant, work, job_id=saved.id, on_complete=self._complete)
        return saved

    async def _unused_table_name(self) -> str:
        attempts = self.settings.stream_job_table_name_attempts
        for _ in range(attempts):
            name = generate_table_name(self.settings.stream_job_table_name_length)
            if not await self.repository.table_name_exists(name):
                return name
            logger.warning(f"Temporary table name {name} already in use, generating another")
        raise RuntimeError(f"No unused temporary table name found after {attempts} attempts")

    async def _complete(self, handle: JobHandle) -> None:
        job = await self.repository.get(handle.id)
        if job is None:
            return
        await self.repository.save(job.model_copy(update={"status": handle.status}))
        record_stream_job(handle.status.value)
