"""Read-only registry of resource descriptions."""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from catalog_search.metadata.descriptions import (
    Contribution,
    IndexingConfig,
    ReindexPolicy,
    ResourceDescription,
)

logger = logging.getLogger(__name__)

INSTANCE_RESOURCE = "instance"
AUTHORITY_RESOURCE = "authority"
LOCATION_RESOURCE = "location"
CAMPUS_RESOURCE = "campus"
LIBRARY_RESOURCE = "library"
INSTITUTION_RESOURCE = "institution"
LINKED_DATA_WORK_RESOURCE = "linked_data_work"
LINKED_DATA_AUTHORITY_RESOURCE = "linked_data_authority"


def _keyword_mappings(*fields: str) -> dict[str, Any]:
    properties = {"id": {"type": "keyword"}, "tenantId": {"type": "keyword"}}
    properties.update({name: {"type": "keyword"} for name in fields})
    return {"dynamic": True, "properties": properties}


def _location_unit(name: str) -> ResourceDescription:
    return ResourceDescription(
        name=name,
        parent_resource_name=LOCATION_RESOURCE,
        mappings=_keyword_mappings("code", "name"),
    )


DEFAULT_RESOURCES: tuple[ResourceDescription, ...] = (
    ResourceDescription(
        name=INSTANCE_RESOURCE,
        reindex_policy=ReindexPolicy.EXTERNAL,
        reindex_endpoint="instance-storage",
        consortium_shared=True,
        contributions=(
            Contribution(target="instance_subject", field="subjects", key="value"),
            Contribution(target="instance_contributor", field="contributors", key="name"),
            Contribution(
                target="instance_classification",
                field="classifications",
                key="classificationNumber",
            ),
        ),
        mappings=_keyword_mappings("hrid", "source", "statusId"),
    ),
    ResourceDescription(
        name="instance_subject",
        parent_resource_name=INSTANCE_RESOURCE,
        consortium_shared=True,
        indexing_config=IndexingConfig(repository="chunked"),
        mappings=_keyword_mappings("value", "instanceId"),
    ),
    ResourceDescription(
        name="instance_contributor",
        parent_resource_name=INSTANCE_RESOURCE,
        consortium_shared=True,
        indexing_config=IndexingConfig(repository="chunked"),
        mappings=_keyword_mappings("name", "contributorNameTypeId", "instanceId"),
    ),
    ResourceDescription(
        name="instance_classification",
        parent_resource_name=INSTANCE_RESOURCE,
        consortium_shared=True,
        indexing_config=IndexingConfig(repository="chunked"),
        mappings=_keyword_mappings("classificationNumber", "instanceId"),
    ),
    ResourceDescription(
        name="holdings",
        parent_resource_name=INSTANCE_RESOURCE,
        own_index=False,
        parent_id_field="instanceId",
    ),
    ResourceDescription(
        name="item",
        parent_resource_name=INSTANCE_RESOURCE,
        own_index=False,
        parent_id_field="instanceId",
    ),
    ResourceDescription(
        name=AUTHORITY_RESOURCE,
        reindex_policy=ReindexPolicy.EXTERNAL,
        reindex_endpoint="authority-storage",
        mappings=_keyword_mappings("naturalId", "sourceFileId"),
    ),
    ResourceDescription(
        name=LOCATION_RESOURCE,
        reindex_policy=ReindexPolicy.TREE,
        mappings=_keyword_mappings("code", "name", "campusId", "libraryId", "institutionId"),
    ),
    _location_unit(CAMPUS_RESOURCE),
    _location_unit(LIBRARY_RESOURCE),
    _location_unit(INSTITUTION_RESOURCE),
    ResourceDescription(
        name=LINKED_DATA_WORK_RESOURCE,
        reindex_policy=ReindexPolicy.STRUCTURAL,
        consortium_shared=True,
    ),
    ResourceDescription(
        name=LINKED_DATA_AUTHORITY_RESOURCE,
        reindex_policy=ReindexPolicy.STRUCTURAL,
        consortium_shared=True,
    ),
)


class ResourceDescriptionCatalog:
    """Lookup table of resource descriptions.

    Built once at startup and shared by every component; it is never mutated
    after construction, so concurrent reads need no locking.

    Example:
            >>> catalog = ResourceDescriptionCatalog.default()
            >>> catalog.get_secondary_resource_names("location")
            ['campus', 'library', 'institution']
    """

    def __init__(self, descriptions: Iterable[ResourceDescription]) -> None:
        self._descriptions: dict[str, ResourceDescription] = {}
        for description in descriptions:
            if description.name in self._descriptions:
                raise ValueError(f"Duplicate resource description '{description.name}'")
            self._descriptions[description.name] = description

        for description in self._descriptions.values():
            parent = description.parent_resource_name
            if parent is not None and parent not in self._descriptions:
                raise ValueError(
                    f"Resource '{description.name}' references unknown parent '{parent}'"
                )
            for contribution in description.contributions:
                if contribution.target not in self._descriptions:
                    raise ValueError(
                        f"Resource '{description.name}' contributes to unknown resource "
                        f"'{contribution.target}'"
                    )

    @classmethod
    def default(cls) -> "ResourceDescriptionCatalog":
        """Build the catalog of built-in resource descriptions."""
        return cls(DEFAULT_RESOURCES)

    @classmethod
    def from_file(cls, path: str | Path) -> "ResourceDescriptionCatalog":
        """Load a catalog from a JSON file of the form ``{"resources": [...]}``."""
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        descriptions = [ResourceDescription.model_validate(item) for item in payload["resources"]]
        logger.info(f"Loaded {len(descriptions)} resource descriptions from {path}")
        return cls(descriptions)

    def find(self, name: str | None) -> ResourceDescription | None:
        if name is None:
            return None
        return self._descriptions.get(name)

    def get(self, name: str) -> ResourceDescription:
        """Return the description of a resource.

        Raises:
            KeyError: If the resource is unknown.
        """
        description = self.find(name)
        if description is None:
            raise KeyError(f"Unknown resource '{name}'")
        return description

    def names(self) -> list[str]:
        return list(self._descriptions)

    def primary_resource_names(self) -> list[str]:
        return [name for name, d in self._descriptions.items() if d.is_primary]

    def get_secondary_resource_names(self, primary_name: str) -> list[str]:
        """Return every resource depending on ``primary_name``, transitively.

        Order is breadth-first in catalog order, each name listed once.
        """
        result: list[str] = []
        seen = {primary_name}
        queue = [primary_name]
        while queue:
            parent = queue.pop(0)
            for name, description in self._descriptions.items():
                if description.parent_resource_name == parent and name not in seen:
                    seen.add(name)
                    result.append(name)
                    queue.append(name)
        return result

    def primary_of(self, name: str) -> str:
        """Walk parent links up to the owning primary resource."""
        description = self.get(name)
        while description.parent_resource_name is not None:
            description = self.get(description.parent_resource_name)
        return description.name

    def index_owner(self, name: str) -> str:
        """Resource whose index holds the documents of ``name``.

        Resources without their own index fold into their primary resource.
        """
        description = self.get(name)
        if description.own_index:
            return description.name
        return self.primary_of(name)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptions

    def __len__(self) -> int:
        return len(self._descriptions)
