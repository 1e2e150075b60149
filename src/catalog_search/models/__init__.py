"""Domain models shared by the indexing and reindex components."""

from catalog_search.models.documents import (
    IndexAction,
    OperationResult,
    SearchDocumentWrite,
    serialize_body,
)
from catalog_search.models.events import ResourceEvent, ResourceEventType
from catalog_search.models.jobs import ReindexJob, ReindexJobStatus, ReindexRequest, utc_now_iso
from catalog_search.models.settings import IndexDynamicSettings, IndexSettings

__all__ = [
    "IndexAction",
    "IndexDynamicSettings",
    "IndexSettings",
    "OperationResult",
    "ReindexJob",
    "ReindexJobStatus",
    "ReindexRequest",
    "ResourceEvent",
    "ResourceEventType",
    "SearchDocumentWrite",
    "serialize_body",
    "utc_now_iso",
]
