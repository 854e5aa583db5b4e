"""Version-ordered publish/update controller."""

import asyncio
import uuid
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace

import structlog

from ..errors import DuplicateVersion, InvalidInput, VersionRegression
from .models import PublishMode, ServerRecord
from .store import RegistryStore
from .versions import parse_version

logger = structlog.get_logger()


class PublishController:
    """Admits writes to the registry in version order.

    For a given name, a write may only introduce a version newer than the
    stored latest, except for an update that re-publishes the latest version
    under the same id. The read-then-write sequence runs under a per-name
    lock so concurrent writers to one name cannot both pass the check.
    """

    def __init__(self, store: RegistryStore):
        self.store = store
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @asynccontextmanager
    async def _name_lock(self, name: str) -> AsyncIterator[None]:
        # Entries live only while some task holds or waits for the lock
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._locks[name]

    async def submit(
        self,
        record: ServerRecord,
        mode: PublishMode,
        existing_id: str | None = None,
    ) -> ServerRecord:
        """Validate a write against the stored versions and persist it.

        Args:
            record: Record to publish; its id is ignored
            mode: CREATE for a new entry, UPDATE to replace existing_id
            existing_id: Id of the record being updated (UPDATE only)

        Returns:
            The stored record with its assigned id

        Raises:
            InvalidInput: Missing name/version, unparseable version, or an
                update without a matching existing record name
            NotFound: UPDATE of an id that does not exist
            DuplicateVersion: The version is already the stored latest
            VersionRegression: A newer version is already stored
        """
        if not record.name:
            raise InvalidInput("Name is required")
        if not record.version:
            raise InvalidInput("Version is required")
        version = parse_version(record.version)

        if mode is PublishMode.UPDATE:
            if not existing_id:
                raise InvalidInput("An existing server id is required for updates")
            record_id = existing_id
        else:
            record_id = str(uuid.uuid4())

        async with self._name_lock(record.name):
            if mode is PublishMode.UPDATE:
                existing = await self.store.get(record_id)
                if existing.name != record.name:
                    raise InvalidInput(
                        f"Server '{record_id}' is named '{existing.name}', "
                        f"not '{record.name}'"
                    )

            latest = await self.store.find_latest_by_name(record.name)
            if latest is not None:
                order = version.compare(parse_version(latest.version))
                if order < 0:
                    logger.warning(
                        "Rejected version regression",
                        name=record.name,
                        version=record.version,
                        latest=latest.version,
                    )
                    raise VersionRegression(
                        f"Version {record.version} is older than the latest "
                        f"published version {latest.version} of {record.name}"
                    )
                if order == 0 and not (
                    mode is PublishMode.UPDATE and record_id == latest.id
                ):
                    logger.warning(
                        "Rejected duplicate version",
                        name=record.name,
                        version=record.version,
                    )
                    raise DuplicateVersion(
                        f"Version {record.version} of {record.name} is already published"
                    )

            stored = replace(record, id=record_id)
            await self.store.put(stored)

        logger.info(
            "Server published",
            id=stored.id,
            name=stored.name,
            version=stored.version,
            mode=mode.value,
            previous=latest.version if latest else None,
        )
        return stored

