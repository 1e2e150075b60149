"""Tenant-scoped background job execution."""

import asyncio
import contextvars
import logging
import uuid
from collections.abc import Awaitable, Callable
from enum import Enum

from catalog_search.utils.logging import tenant_log_context

logger = logging.getLogger(__name__)

_current_tenant: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "current_tenant", default=None
)


def current_tenant() -> str | None:
    """Tenant bound to the running job, None outside of a job."""
    return _current_tenant.get()


class JobStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class JobHandle:
    """Observable state of a submitted job."""

    def __init__(self, job_id: str, tenant_id: str) -> None:
        self.id = job_id
        self.tenant_id = tenant_id
        self.status = JobStatus.IN_PROGRESS
        self.error: BaseException | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def done(self) -> bool:
        return self.status is not JobStatus.IN_PROGRESS

    async def wait(self) -> JobStatus:
        """Wait for the job to reach a terminal status."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.status


Work = Callable[[], Awaitable[None]]
CompletionHook = Callable[[JobHandle], Awaitable[None]]


class TenantJobRunner:
    """Runs units of work in the background under a tenant's context.

    ``run_async`` returns as soon as the work is scheduled. Inside the work,
    ``current_tenant()`` and the log context report the submitting tenant.
    Exceptions raised by the work end the job in ERROR; they are logged and
    kept on the handle, never re-raised.

    Example:
            >>> handle = runner.run_async("diku", stream_ids)
            >>> await handle.wait()
            <JobStatus.COMPLETED: 'COMPLETED'>
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def run_async(
        self,
        tenant_id: str,
        work: Work,
        job_id: str | None = None,
        on_complete: CompletionHook | None = None,
    ) -> JobHandle:
        handle = JobHandle(job_id or str(uuid.uuid4()), tenant_id)
        self._jobs[handle.id] = handle

        task = asyncio.create_task(self._run(handle, work, on_complete))
        handle._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    async def _run(
        self, handle: JobHandle, work: Work, on_complete: CompletionHook | None
    ) -> None:
        _current_tenant.set(handle.tenant_id)
        with tenant_log_context(handle.tenant_id, job_id=handle.id):
            try:
                await work()
                handle.status = JobStatus.COMPLETED
                logger.info(f"Job {handle.id} completed")
            except Exception as e:
                handle.error = e
                handle.status = JobStatus.ERROR
                logger.error(f"Job {handle.id} failed: {e}", exc_info=True)

            if on_complete is not None:
                try:
                    await on_complete(handle)
                except Exception as e:
                    logger.error(f"Completion hook of job {handle.id} failed: {e}", exc_info=True)

    def get(self, job_id: str) -> JobHandle | None:
        return self._jobs.get(job_id)

    @property
    def running(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Wait for every running job to finish."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} running jobs")
            await asyncio.gather(*self._tasks, return_exceptions=True)
