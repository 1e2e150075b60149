"""Exception hierarchy for the indexing service."""

from typing import Any


class SearchServiceError(Exception):
    """Base class for all service errors."""


class RequestValidationError(SearchServiceError):
    """A request was rejected before any search engine call was made.

    Attributes:
        key: Name of the offending request parameter.
        value: Value that failed validation.
    """

    def __init__(self, message: str, key: str, value: Any) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.value = value


class IndexRecreationInProgressError(SearchServiceError):
    """A write targeted an index that is being dropped and recreated."""

    def __init__(self, index: str) -> None:
        super().__init__(f"Index '{index}' is being recreated, retry the write later")
        self.index = index


class JobNotFoundError(SearchServiceError):
    """No job exists with the requested id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class SearchEngineError(SearchServiceError):
    """The search engine could not answer a read (existence, count, lookup).

    Core components convert it into an error ``OperationResult``.
    """
