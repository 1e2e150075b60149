"""Aggregation of consortium member records into the central tenant's indexes."""

import asyncio
import itertools
import logging
import time
from collections.abc import Iterable

from catalog_search.consortium.claims import Claim, Claims, ClaimStore, InMemoryClaimStore
from catalog_search.consortium.tenants import TenantProvider
from catalog_search.exceptions import SearchEngineError
from catalog_search.indexing.converter import SearchDocumentConverter
from catalog_search.indexing.writer import DocumentWriter
from catalog_search.models import (
    OperationResult,
    ResourceEvent,
    ResourceEventType,
)

logger = logging.getLogger(__name__)


class ConsortiumAggregator:
    """Merges shared records of consortium members into one central document.

    Every member tenant holding a record with a given id places a claim on
    that id. The central document reflects the most recent claim and carries
    the claimant in ``tenantId``. A delete from one member only withdraws
    that member's claim, the central document is deleted once no member
    claims the id anymore. Events older than a member's current claim are
    ignored.

    Claims are kept in a ``ClaimStore`` and saved before the central
    documents are written. ``delete_all`` clears them before a full reindex
    of the central tenant repopulates them.
    """

    def __init__(
        self,
        tenants: TenantProvider,
        converter: SearchDocumentConverter,
        writer: DocumentWriter,
        store: ClaimStore | None = None,
    ) -> None:
        self.tenants = tenants
        self.converter = converter
        self.writer = writer
        self.store = store or InMemoryClaimStore()
        # sequence numbers keep increasing across restarts
        self._sequence = itertools.count(time.time_ns())
        self._lock = asyncio.Lock()

    def _claim(self, member: str, event: ResourceEvent) -> Claim:
        ts = event.ts if event.ts is not None else time.time_ns() // 1_000_000
        return Claim(tenant=member, ts=ts, seq=next(self._sequence), data=event.new_data or {})

    async def merge_and_write(
        self, events: list[ResourceEvent], member_tenant_id: str
    ) -> OperationResult:
        """Apply member events to the central tenant's documents and write them."""
        if not events:
            return OperationResult.success()

        central = self.tenants.get_central_tenant(member_tenant_id)
        if central is None:
            return OperationResult.error(f"Tenant '{member_tenant_id}' is not in a consortium")

        async with self._lock:
            try:
                central_events, changed = await self._merge(central, events, member_tenant_id)
            except SearchEngineError as e:
                logger.error(f"Failed to load claims of {central}: {e}")
                return OperationResult.error(str(e))
            saved = OperationResult.merge(
                [
                    await self.store.save(central, resource_type, claims)
                    for resource_type, claims in changed.items()
                ]
            )
        if not saved.is_success:
            return saved

        if not central_events:
            return OperationResult.success()
        logger.debug(
            f"Aggregating {len(events)} events of {member_tenant_id} "
            f"into {len(central_events)} central documents of {central}"
        )
        return await self.writer.write(self.converter.convert(central_events))

    async def _merge(
        self, central: str, events: Iterable[ResourceEvent], member: str
    ) -> tuple[list[ResourceEvent], dict[str, dict[str, Claims]]]:
        events = [e for e in events if e.id and e.resource_type]
        ids_by_type: dict[str, list[str]] = {}
        for event in events:
            ids_by_type.setdefault(event.resource_type or "", []).append(event.id or "")
        stored = {
            resource_type: await self.store.load(central, resource_type, ids)
            for resource_type, ids in ids_by_type.items()
        }

        changed: dict[str, dict[str, Claims]] = {}
        merged: dict[tuple[str, str], ResourceEvent] = {}
        for event in events:
            resource_type, record_id = event.resource_type or "", event.id or ""
            key = (resource_type, record_id)
            claims = stored[resource_type].setdefault(record_id, {})
            previous_winner = _winner(claims)
            claim = self._claim(member, event)

            current = claims.get(member)
            if current is not None and current.recency > claim.recency:
                logger.debug(f"Ignoring stale event for {key} from {member}")
                continue

            if event.is_delete:
                claims.pop(member, None)
            else:
                claims[member] = claim
            changed.setdefault(resource_type, {})[record_id] = claims

            old_data = previous_winner.data if previous_winner else None
            winner = _winner(claims)
            if winner is None:
                merged[key] = ResourceEvent(
                    id=record_id,
                    resource_type=resource_type,
                    tenant=central,
                    type=ResourceEventType.DELETE,
                    old_data=old_data,
                )
                continue

            merged[key] = ResourceEvent(
                id=record_id,
                resource_type=resource_type,
                tenant=central,
                type=ResourceEventType.UPDATE,
                new_data={**winner.data, "tenantId": winner.tenant},
                old_data=old_data,
                ts=winner.ts,
            )

        return list(merged.values()), changed

    async def claimants(self, central: str, resource_type: str, resource_id: str) -> list[str]:
        """Member tenants currently claiming a record, most recent first."""
        stored = await self.store.load(central, resource_type, [resource_id])
        claims = stored.get(resource_id, {})
        return [c.tenant for c in sorted(claims.values(), key=lambda c: c.recency, reverse=True)]

    async def delete_all(
        self, central_tenant_id: str, resource_types: Iterable[str] | None = None
    ) -> OperationResult:
        """Forget every aggregated claim of a central tenant.

        Args:
            central_tenant_id: Central tenant whose shadow state is cleared.
            resource_types: Limit clearing to these resource types.
        """
        async with self._lock:
            result = await self.store.clear(central_tenant_id, resource_types)
        if result.is_success:
            logger.info(f"Cleared aggregated claims of central tenant {central_tenant_id}")
        else:
            logger.error(
                f"Failed to clear claims of central tenant {central_tenant_id}: "
                f"{result.error_message}"
            )
        return result


def _winner(claims: Claims) -> Claim | None:
    if not claims:
        return None
    return max(claims.values(), key=lambda c: c.recency)
