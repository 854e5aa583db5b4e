"""Registry storage contract and an in-memory implementation."""

from typing import Protocol

import structlog

from ..errors import NotFound
from .models import ServerRecord
from .versions import compare_versions

logger = structlog.get_logger()


class RegistryStore(Protocol):
    """Protocol for the persistent store behind the registry."""

    async def get(self, record_id: str) -> ServerRecord:
        """Return the record with this id or raise NotFound."""
        ...

    async def list_servers(
        self, cursor: str | None = None, limit: int = 30
    ) -> tuple[list[ServerRecord], str | None]:
        """Return a page of records and the cursor of the next page."""
        ...

    async def find_latest_by_name(self, name: str) -> ServerRecord | None:
        """Return the highest-versioned record with this name, if any."""
        ...

    async def put(self, record: ServerRecord) -> None:
        """Insert or replace a record by id."""
        ...

    async def delete(self, record_id: str) -> None:
        """Delete a record or raise NotFound."""
        ...


class InMemoryRegistryStore:
    """Dictionary-backed RegistryStore for development and tests."""

    def __init__(self) -> None:
        self._records: dict[str, ServerRecord] = {}

    async def get(self, record_id: str) -> ServerRecord:
        record = self._records.get(record_id)
        if record is None:
            raise NotFound(f"Server '{record_id}' not found")
        return record

    async def list_servers(
        self, cursor: str | None = None, limit: int = 30
    ) -> tuple[list[ServerRecord], str | None]:
        ids = sorted(self._records)
        start = 0
        if cursor:
            # Cursor is the last id of the previous page
            start = next((i for i, rid in enumerate(ids) if rid > cursor), len(ids))
        page_ids = ids[start : start + limit]
        next_cursor = page_ids[-1] if start + limit < len(ids) and page_ids else None
        return [self._records[rid] for rid in page_ids], next_cursor

    async def find_latest_by_name(self, name: str) -> ServerRecord | None:
        latest: ServerRecord | None = None
        for record in self._records.values():
            if record.name != name:
                continue
            if latest is None or compare_versions(record.version, latest.version) > 0:
                latest = record
        return latest

    async def put(self, record: ServerRecord) -> None:
        self._records[record.id] = record
        logger.debug(
            "Record stored", id=record.id, name=record.name, version=record.version
        )

    async def delete(self, record_id: str) -> None:
        if self._records.pop(record_id, None) is None:
            raise NotFound(f"Server '{record_id}' not found")

    def size(self) -> int:
        """Return the number of stored records."""
        return len(self._records)
