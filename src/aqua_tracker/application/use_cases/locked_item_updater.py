from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from aqua_tracker.application.ports.tracker_port import TrackerPort
from aqua_tracker.domain.errors import (
    ApiFailureError,
    LockConflict,
    UnlockFailure,
    VersionUnavailable,
)
from aqua_tracker.domain.identifiers import ItemIdentifier, parse, require_item_id
from aqua_tracker.domain.model import LockedItemHandle, Session
from aqua_tracker.domain.payloads import UpdatePayload, normalize_update_payload
from aqua_tracker.metrics import LOCKED_UPDATES

logger = logging.getLogger(__name__)


class UpdateState(str, Enum):
    START = "START"
    VERSION_FETCHED = "VERSION_FETCHED"
    LOCKED = "LOCKED"
    MUTATED = "MUTATED"
    UNLOCKED = "UNLOCKED"
    FAILED = "FAILED"


def read_version(details: Mapping[str, Any] | None) -> int | None:
    version = (details or {}).get("Version")
    if not isinstance(version, Mapping):
        return None
    return version.get("Version")


class LockedItemUpdater:
    """fetch version -> lock -> mutate -> unlock for a single item.

    One instance per update. The lock is released on every exit path once it
    has been acquired; an unlock failure is logged and kept in
    ``unlock_failure`` but never replaces the mutation result or error.
    """

    def __init__(self, tracker: TrackerPort, session: Session, item: ItemIdentifier) -> None:
        self.tracker = tracker
        self.session = session
        self.item = item
        self.state = UpdateState.START
        self.handle: LockedItemHandle | None = None
        self.unlock_failure: UnlockFailure | None = None

    async def _fetch_version(self) -> int:
        details = await self.tracker.get_item_details(self.session, self.item)
        version = read_version(details)
        if version is None:
            raise VersionUnavailable(self.item.item_type, self.item.numeric_id)
        self.state = UpdateState.VERSION_FETCHED
        logger.info("...found version %s of %s", version, self.item)
        return version

    async def _release(self, handle: LockedItemHandle) -> None:
        try:
            await self.tracker.unlock_item(self.session, self.item)
        except Exception as e:
            self.unlock_failure = UnlockFailure(handle.item_type, handle.item_id, e)
            logger.error("%s", self.unlock_failure)
        else:
            logger.info("...unlocked %s", self.item)

    @asynccontextmanager
    async def _locked(self, version: int) -> AsyncIterator[LockedItemHandle]:
        try:
            await self.tracker.lock_item(self.session, self.item, version)
        except ApiFailureError as e:
            raise LockConflict(
                self.item.item_type, self.item.numeric_id, version, status=e.status, payload=e.payload
            ) from e
        handle = LockedItemHandle(self.item.numeric_id, self.item.item_type, version)
        self.handle = handle
        self.state = UpdateState.LOCKED
        logger.info("...locked %s", self.item)
        try:
            yield handle
        finally:
            # shielded: an abandoned caller still releases the remote lock
            await asyncio.shield(self._release(handle))

    async def run(self, payload: UpdatePayload | Mapping[str, Any]) -> Any:
        logger.info("Starting locked update of %s", self.item)
        body = normalize_update_payload(self.item.item_type, payload)
        try:
            version = await self._fetch_version()
            async with self._locked(version):
                result = await self.tracker.update_locked_item(self.session, self.item, body)
                self.state = UpdateState.MUTATED
        except BaseException:
            self.state = UpdateState.FAILED
            LOCKED_UPDATES.labels(result="failed").inc()
            raise
        self.state = UpdateState.UNLOCKED
        LOCKED_UPDATES.labels(result="unlock_failed" if self.unlock_failure else "success").inc()
        return result


class RunLockedUpdateUseCase:
    def __init__(self, tracker: TrackerPort) -> None:
        self.tracker = tracker

    async def execute(
        self,
        session: Session,
        item_id: str | None,
        item_type: str | None,
        payload: UpdatePayload | Mapping[str, Any],
    ) -> Any:
        item = parse(require_item_id(item_id, session), item_type)
        return await LockedItemUpdater(self.tracker, session, item).run(payload)
