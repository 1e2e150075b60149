"""HTTP clients for storage modules reached through the Okapi gateway."""

import logging
from typing import Any

import httpx

from catalog_search.clients.sources import LocationSource, ReindexTrigger, ResourceFetcher
from catalog_search.config import Settings
from catalog_search.models import ReindexJob, ResourceEvent, ResourceEventType

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Okapi-Tenant"

# resource -> (path, collection key)
LOCATION_ENDPOINTS: dict[str, tuple[str, str]] = {
    "location": ("/locations", "locations"),
    "campus": ("/location-units/campuses", "loccamps"),
    "library": ("/location-units/libraries", "loclibs"),
    "institution": ("/location-units/institutions", "locinsts"),
}

RECORD_ENDPOINTS: dict[str, tuple[str, str]] = {
    "instance": ("/instance-storage/instances", "instances"),
    "authority": ("/authority-storage/authorities", "authorities"),
}


class OkapiClient:
    """Shared httpx client configured for the Okapi gateway."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._http = http or httpx.AsyncClient(
            base_url=settings.okapi_url, timeout=settings.okapi_timeout
        )

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    async def close(self) -> None:
        await self._http.aclose()


class ResourceReindexClient(ReindexTrigger):
    """Submits bulk reindex requests to storage modules.

    The call returns once the storage module accepted the job; its progress is
    not tracked here.
    """

    def __init__(self, okapi: OkapiClient) -> None:
        self.okapi = okapi

    async def submit_reindex(self, uri: str, tenant: str) -> ReindexJob:
        """POST to a storage module's reindex endpoint.

        Raises:
            httpx.HTTPError: If the request fails or is rejected.
        """
        logger.info(f"Submitting reindex to {uri} for tenant {tenant}")
        response = await self.okapi.http.post(uri, headers={TENANT_HEADER: tenant})
        response.raise_for_status()
        return ReindexJob.model_validate(response.json())


class InventoryClient(LocationSource, ResourceFetcher):
    """Reads inventory records (locations, instances, authorities)."""

    def __init__(self, okapi: OkapiClient) -> None:
        self.okapi = okapi

    async def fetch_all(self, resource: str, tenant: str) -> list[dict[str, Any]]:
        """Page through every record of a location hierarchy resource.

        Raises:
            ValueError: If the resource is not part of the location hierarchy.
            httpx.HTTPError: If a page request fails.
        """
        if resource not in LOCATION_ENDPOINTS:
            raise ValueError(f"No location endpoint for resource '{resource}'")

        path, key = LOCATION_ENDPOINTS[resource]
        page_size = self.okapi.settings.location_page_size
        records: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = await self.okapi.http.get(
                path,
                params={"offset": offset, "limit": page_size},
                headers={TENANT_HEADER: tenant},
            )
            response.raise_for_status()
            payload = response.json()
            page = payload.get(key, [])
            records.extend(page)
            offset += len(page)
            total = payload.get("totalRecords", offset)
            if not page or offset >= total:
                break

        logger.debug(f"Fetched {len(records)} {resource} records for tenant {tenant}")
        return records

    async def fetch_by_ids(self, events: list[ResourceEvent]) -> list[ResourceEvent]:
        groups: dict[tuple[str, str], list[str]] = {}
        for event in events:
            if event.is_delete or event.id is None or event.resource_type not in RECORD_ENDPOINTS:
                continue
            groups.setdefault((event.resource_type, event.tenant), []).append(event.id)

        fetched: dict[tuple[str, str, str], dict[str, Any]] = {}
        for (resource, tenant), ids in groups.items():
            for record in await self._fetch_records(resource, tenant, ids):
                fetched[(resource, tenant, record["id"])] = record

        result = []
        for event in events:
            if event.is_delete or event.resource_type not in RECORD_ENDPOINTS:
                result.append(event)
                continue
            record = fetched.get((event.resource_type, event.tenant, event.id or ""))
            if record is None:
                logger.debug(f"Record {event.resource_type}/{event.id} no longer exists, deleting")
                result.append(
                    event.model_copy(update={"type": ResourceEventType.DELETE, "new_data": None})
                )
                continue
            result.append(event.model_copy(update={"new_data": record}))
        return result

    async def _fetch_records(
        self, resource: str, tenant: str, ids: list[str]
    ) -> list[dict[str, Any]]:
        path, key = RECORD_ENDPOINTS[resource]
        query = "id==(" + " or ".join(ids) + ")"
        response = await self.okapi.http.get(
            path,
            params={"query": query, "limit": len(ids)},
            headers={TENANT_HEADER: tenant},
        )
        response.raise_for_status()
        return response.json().get(key, [])
