"""Source-of-truth boundaries consulted while indexing and reindexing."""

from abc import ABC, abstractmethod
from typing import Any

from catalog_search.models import ReindexJob, ResourceEvent


class LocationSource(ABC):
    """Current records of the location hierarchy resources."""

    @abstractmethod
    async def fetch_all(self, resource: str, tenant: str) -> list[dict[str, Any]]: ...


class ResourceFetcher(ABC):
    """Re-reads full records for change events."""

    @abstractmethod
    async def fetch_by_ids(self, events: list[ResourceEvent]) -> list[ResourceEvent]:
        """Return the events with ``new_data`` replaced by the stored record.

        Delete events and events of resources without a record endpoint are
        returned unchanged. An event whose record no longer exists comes back
        as a delete that keeps its ``old_data``.
        """


class ReindexTrigger(ABC):
    """External bulk-reindex producer."""

    @abstractmethod
    async def submit_reindex(self, uri: str, tenant: str) -> ReindexJob: ...
