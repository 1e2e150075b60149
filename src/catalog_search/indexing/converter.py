"""Conversion of consolidated events into search document writes."""

import hashlib
import logging
from typing import Any

from catalog_search.consortium.tenants import index_name
from catalog_search.indexing.consolidator import EventFailure
from catalog_search.metadata import Contribution, ResourceDescription, ResourceDescriptionCatalog
from catalog_search.models import (
    IndexAction,
    ResourceEvent,
    SearchDocumentWrite,
    serialize_body,
)
from catalog_search.utils.metrics import record_event_failures

logger = logging.getLogger(__name__)


def contribution_document_id(source_id: str, item: dict[str, Any]) -> str:
    """Stable id of a contributed document.

    Derived from the source record id and the canonical item body, so the
    same item contributed twice maps to the same document.
    """
    digest = hashlib.sha256(f"{source_id}|{serialize_body(item)}".encode())
    return digest.hexdigest()


class SearchDocumentConverter:
    """Turns consolidated events into per-resource batches of writes.

    Each event is written to the index of the resource owning its document.
    CREATE and UPDATE events become INDEX writes of ``new_data`` (with ``id``
    and ``tenantId`` set), DELETE events become DELETE writes. Resources that
    declare contributions additionally fan items of a data field out into the
    contribution target's index; an UPDATE deletes items that disappeared
    between ``old_data`` and ``new_data``.

    Conversion is a pure function of the events and the catalog.
    """

    def __init__(self, catalog: ResourceDescriptionCatalog) -> None:
        self.catalog = catalog

    def convert(
        self, events: list[ResourceEvent] | None, failures: list[EventFailure] | None = None
    ) -> dict[str, list[SearchDocumentWrite]]:
        result: dict[str, list[SearchDocumentWrite]] = {}
        if not events:
            return result

        failed: list[EventFailure] = []
        for event in events:
            description = self.catalog.find(event.resource_type)
            if description is None or not event.id:
                failed.append(EventFailure(event, f"cannot convert '{event.resource_type}'"))
                continue
            if not event.tenant:
                failed.append(EventFailure(event, "missing tenant"))
                continue
            if not event.is_delete and event.new_data is None:
                failed.append(EventFailure(event, "missing data"))
                continue

            owner = self.catalog.index_owner(description.name)
            result.setdefault(owner, []).append(self._document_write(owner, event.id, event))

            for contribution in description.contributions:
                writes = self._contribution_writes(description, contribution, event.id, event)
                if writes:
                    result.setdefault(contribution.target, []).extend(writes)

        if failed:
            logger.warning(f"Skipped {len(failed)} events that cannot be converted")
            record_event_failures("convert", len(failed))
            if failures is not None:
                failures.extend(failed)

        return result

    def _document_write(
        self, owner: str, document_id: str, event: ResourceEvent
    ) -> SearchDocumentWrite:
        if event.is_delete:
            return SearchDocumentWrite(
                index=index_name(owner, event.tenant),
                resource_type=owner,
                tenant=event.tenant,
                document_id=document_id,
                action=IndexAction.DELETE,
            )

        data = event.new_data or {}
        body = {**data, "id": document_id, "tenantId": data.get("tenantId", event.tenant)}
        return SearchDocumentWrite(
            index=index_name(owner, event.tenant),
            resource_type=owner,
            tenant=event.tenant,
            document_id=document_id,
            action=IndexAction.INDEX,
            body=serialize_body(body),
        )

    def _contribution_writes(
        self,
        description: ResourceDescription,
        contribution: Contribution,
        source_id: str,
        event: ResourceEvent,
    ) -> list[SearchDocumentWrite]:
        source_field = f"{description.name}Id"
        index = index_name(contribution.target, event.tenant)

        new_items = _items(event.new_data, contribution) if not event.is_delete else []
        old_items = _items(event.old_data, contribution)

        writes: list[SearchDocumentWrite] = []
        new_ids: set[str] = set()
        for item in new_items:
            document_id = contribution_document_id(source_id, item)
            if document_id in new_ids:
                continue
            new_ids.add(document_id)
            body = {**item, "id": document_id, source_field: source_id, "tenantId": event.tenant}
            writes.append(
                SearchDocumentWrite(
                    index=index,
                    resource_type=contribution.target,
                    tenant=event.tenant,
                    document_id=document_id,
                    action=IndexAction.INDEX,
                    body=serialize_body(body),
                )
            )

        removed: set[str] = set()
        for item in old_items:
            document_id = contribution_document_id(source_id, item)
            if document_id in new_ids or document_id in removed:
                continue
            removed.add(document_id)
            writes.append(
                SearchDocumentWrite(
                    index=index,
                    resource_type=contribution.target,
                    tenant=event.tenant,
                    document_id=document_id,
                    action=IndexAction.DELETE,
                )
            )
        return writes


def _items(data: dict[str, Any] | None, contribution: Contribution) -> list[dict[str, Any]]:
    if not data:
        return []
    values = data.get(contribution.field)
    if not isinstance(values, list):
        return []
    return [
        item
        for item in values
        if isinstance(item, dict) and (contribution.key is None or item.get(contribution.key))
    ]
