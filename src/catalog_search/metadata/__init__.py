"""Static resource description registry."""

from catalog_search.metadata.catalog import (
    AUTHORITY_RESOURCE,
    CAMPUS_RESOURCE,
    INSTANCE_RESOURCE,
    INSTITUTION_RESOURCE,
    LIBRARY_RESOURCE,
    LINKED_DATA_AUTHORITY_RESOURCE,
    LINKED_DATA_WORK_RESOURCE,
    LOCATION_RESOURCE,
    ResourceDescriptionCatalog,
)
from catalog_search.metadata.descriptions import (
    Contribution,
    IndexingConfig,
    ReindexPolicy,
    ResourceDescription,
)

__all__ = [
    "AUTHORITY_RESOURCE",
    "CAMPUS_RESOURCE",
    "INSTANCE_RESOURCE",
    "INSTITUTION_RESOURCE",
    "LIBRARY_RESOURCE",
    "LINKED_DATA_AUTHORITY_RESOURCE",
    "LINKED_DATA_WORK_RESOURCE",
    "LOCATION_RESOURCE",
    "Contribution",
    "IndexingConfig",
    "ReindexPolicy",
    "ResourceDescription",
    "ResourceDescriptionCatalog",
]
