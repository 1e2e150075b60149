"""Reindex requests and jobs."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds")


class ReindexJobStatus(str, Enum):
    """Reindex job status. IN_PROGRESS is the only non-terminal state."""

    IN_PROGRESS = "In progress"
    COMPLETED = "Completed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self is not ReindexJobStatus.IN_PROGRESS


class ReindexRequest(BaseModel):
    """Administrative reindex request.

    A missing resource name means every primary resource in the catalog.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    resource_name: str | None = None
    recreate_index: bool = False


class ReindexJob(BaseModel):
    """Handle for a reindex operation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    submitted_date: str = Field(default_factory=utc_now_iso)
    job_status: ReindexJobStatus = ReindexJobStatus.IN_PROGRESS
    resource_name: str | None = None
    error_message: str | None = None

    @classmethod
    def completed(cls, resource_name: str | None = None) -> "ReindexJob":
        return cls(job_status=ReindexJobStatus.COMPLETED, resource_name=resource_name)

    def transition(self, status: ReindexJobStatus, error_message: str | None = None) -> None:
        """Move the job to a new status.

        Raises:
            ValueError: If the job already reached a terminal status.
        """
        if self.job_status.is_terminal:
            raise ValueError(
                f"Reindex job {self.id} is already {self.job_status.value}, "
                f"cannot move to {status.value}"
            )
        self.job_status = status
        self.error_message = error_message
