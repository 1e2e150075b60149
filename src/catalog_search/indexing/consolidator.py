"""Consolidation of raw resource change events.

A batch of change events may contain duplicates for the same record, events
for resources whose documents live inside a parent's document, and records
that moved to a different parent. Consolidation rewrites such a batch into
the smallest list of events the converter needs, one per logical document.
"""

import logging
from typing import Any

from catalog_search.metadata import ResourceDescriptionCatalog
from catalog_search.models import ResourceEvent, ResourceEventType
from catalog_search.utils.metrics import record_event_failures

logger = logging.getLogger(__name__)


class EventFailure:
    """A raw event that could not be processed."""

    __slots__ = ("event", "reason")

    def __init__(self, event: ResourceEvent, reason: str) -> None:
        self.event = event
        self.reason = reason

    def __repr__(self) -> str:
        return f"EventFailure(id={self.event.id!r}, reason={self.reason!r})"


class EventConsolidator:
    """Deduplicates and rewrites a batch of resource events.

    Events for resources that own an index pass through, deduplicated by
    ``(resource_type, id)`` with the last event winning. Events for resources
    folded into a parent's document become an UPDATE of that parent. When the
    parent id of a folded record changes, both parents are rebuilt: the old
    parent through an UPDATE carrying the old data and the new parent through
    a CREATE carrying the new data.

    A parent rebuild derived from a child event never replaces a DELETE of
    that parent from the same batch. Delete events keep only their identity,
    plus ``old_data`` for resources with contributions so the contributed
    documents can be removed.

    Output order is the order in which each logical document was first seen.
    Malformed events (missing id or resource type, unknown resource type) are
    dropped and reported in ``failures``; ``consolidate`` never raises.

    Example:
            >>> consolidator = EventConsolidator(catalog)
            >>> failures = []
            >>> events = consolidator.consolidate(raw_events, failures)
    """

    def __init__(self, catalog: ResourceDescriptionCatalog) -> None:
        self.catalog = catalog

    def consolidate(
        self, events: list[ResourceEvent] | None, failures: list[EventFailure] | None = None
    ) -> list[ResourceEvent]:
        if not events:
            return []

        failed: list[EventFailure] = []
        consolidated: dict[tuple[str, str], ResourceEvent] = {}
        for event in events:
            for derived, rebuild in self._derive(event, failed):
                key = (derived.resource_type or "", derived.id or "")
                current = consolidated.get(key)
                if rebuild and current is not None and current.is_delete:
                    continue
                # dict keeps first-insertion order while the value is replaced
                consolidated[key] = derived

        if failed:
            logger.warning(f"Dropped {len(failed)} malformed events out of {len(events)}")
            record_event_failures("consolidate", len(failed))
            if failures is not None:
                failures.extend(failed)

        return list(consolidated.values())

    def _derive(
        self, event: ResourceEvent, failed: list[EventFailure]
    ) -> list[tuple[ResourceEvent, bool]]:
        """Events replacing ``event``, each flagged when it rebuilds a parent document."""
        if not event.id:
            failed.append(EventFailure(event, "missing id"))
            return []
        if not event.resource_type:
            failed.append(EventFailure(event, "missing resource type"))
            return []

        description = self.catalog.find(event.resource_type)
        if description is None:
            failed.append(EventFailure(event, f"unknown resource type '{event.resource_type}'"))
            return []

        if description.own_index:
            if event.is_delete:
                return [(_strip_delete(event, keep_old=bool(description.contributions)), False)]
            return [(event, False)]

        owner = self.catalog.index_owner(description.name)
        parent_field = description.parent_id_field
        if parent_field is None:
            failed.append(EventFailure(event, f"resource '{description.name}' has no parent field"))
            return []

        old_parent = _field(event.old_data, parent_field)
        new_parent = _field(event.new_data, parent_field)

        if old_parent is not None and new_parent is not None and old_parent != new_parent:
            return [
                (
                    ResourceEvent(
                        id=old_parent,
                        resource_type=owner,
                        tenant=event.tenant,
                        type=ResourceEventType.UPDATE,
                        new_data=event.old_data,
                        ts=event.ts,
                    ),
                    True,
                ),
                (
                    ResourceEvent(
                        id=new_parent,
                        resource_type=owner,
                        tenant=event.tenant,
                        type=ResourceEventType.CREATE,
                        new_data=event.new_data,
                        ts=event.ts,
                    ),
                    True,
                ),
            ]

        parent_id = new_parent if new_parent is not None else old_parent
        if parent_id is None:
            failed.append(EventFailure(event, f"missing parent id field '{parent_field}'"))
            return []

        # a child change, including a child delete, rebuilds the parent document
        return [
            (
                ResourceEvent(
                    id=parent_id,
                    resource_type=owner,
                    tenant=event.tenant,
                    type=ResourceEventType.UPDATE,
                    new_data=event.new_data if event.new_data is not None else event.old_data,
                    ts=event.ts,
                ),
                True,
            )
        ]


def _strip_delete(event: ResourceEvent, keep_old: bool) -> ResourceEvent:
    return ResourceEvent(
        id=event.id,
        resource_type=event.resource_type,
        tenant=event.tenant,
        type=ResourceEventType.DELETE,
        old_data=event.old_data if keep_old else None,
        ts=event.ts,
    )


def _field(data: dict[str, Any] | None, name: str) -> str | None:
    if not data:
        return None
    value = data.get(name)
    return str(value) if value is not None else None
