"""
Sync Service
Offline mutation queue: every local write is applied to the device store and
recorded in a durable queue, which drains to the remote store whenever the
network is available.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from config import Collections, get_settings
from errors import ConnectivityError, SyncApplyError
from models import RecordType, SyncAction
from tools.record_store import RecordStore, where
from tools.records import as_datetime


logger = logging.getLogger(__name__)
settings = get_settings()


RECORD_COLLECTIONS: Dict[RecordType, str] = {
    RecordType.PATIENT: Collections.PATIENTS,
    RecordType.MEDICINE: Collections.MEDICINES,
    RecordType.ADHERENCE: Collections.ADHERENCE_LOGS,
}


@dataclass(frozen=True)
class SyncQueueItem:
    """One queued mutation with a full payload snapshot"""
    id: str
    sequence: int
    record_type: RecordType
    record_id: str
    action: SyncAction
    payload: Optional[Dict[str, Any]] = None
    enqueued_at: Optional[datetime] = None
    synced: bool = False
    synced_at: Optional[datetime] = None
    retry_count: int = 0
    last_error: Optional[str] = None
    flagged: bool = False

    @property
    def collection(self) -> str:
        return RECORD_COLLECTIONS[self.record_type]

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "SyncQueueItem":
        return cls(
            id=str(data["id"]),
            sequence=int(data["sequence"]),
            record_type=RecordType(data["record_type"]),
            record_id=str(data["record_id"]),
            action=SyncAction(data["action"]),
            payload=data.get("payload"),
            enqueued_at=as_datetime(data.get("enqueued_at")),
            synced=bool(data.get("synced")),
            synced_at=as_datetime(data.get("synced_at")),
            retry_count=data.get("retry_count") or 0,
            last_error=data.get("last_error"),
            flagged=bool(data.get("flagged")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "record_type": self.record_type.value,
            "record_id": self.record_id,
            "action": self.action.value,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at,
            "synced": self.synced,
            "synced_at": self.synced_at,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
            "flagged": self.flagged,
        }


@dataclass(frozen=True)
class DrainResult:
    """Outcome of one drain cycle"""
    applied: int = 0
    failed: int = 0
    held_back: int = 0
    newly_flagged: int = 0
    skipped: bool = False
    errors: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SyncStatus:
    online: bool
    syncing: bool
    last_sync_at: Optional[datetime]
    pending: int
    flagged: int


class SyncService:
    """
    Offline mutation queue

    Local apply happens first and is never undone by a remote failure. The
    drain applies items in enqueue order as upserts keyed by record id, so a
    redelivered item leaves the remote unchanged. Only one drain runs at a
    time.
    """

    def __init__(
        self,
        local: RecordStore,
        remote: Optional[RecordStore] = None,
        online: bool = True,
        retry_threshold: Optional[int] = None,
        retention_days: Optional[int] = None,
        auto_drain: bool = False
    ):
        self.local = local
        self.remote = remote
        self.online = online
        self.retry_threshold = (
            retry_threshold if retry_threshold is not None
            else settings.SYNC_RETRY_THRESHOLD
        )
        self.retention_days = (
            retention_days if retention_days is not None
            else settings.SYNC_RETENTION_DAYS
        )
        self.auto_drain = auto_drain
        self.last_sync_at: Optional[datetime] = None
        self._sequence: Optional[int] = None
        self._drain_lock = asyncio.Lock()

    # ==================== ENQUEUE ====================

    async def _next_sequence(self) -> int:
        if self._sequence is None:
            latest = await self.local.query(
                Collections.SYNC_QUEUE, order_by="sequence", descending=True, limit=1
            )
            self._sequence = int(latest[0]["sequence"]) if latest else 0
        self._sequence += 1
        return self._sequence

    async def record_mutation(
        self,
        record_type: RecordType,
        action: SyncAction,
        record_id: str,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> SyncQueueItem:
        """
        Apply a mutation locally and queue it for the remote store

        Args:
            record_type: patient, medicine or adherence
            action: create, update or delete
            record_id: Id of the record being written
            payload: Full record snapshot (ignored for deletes)
            now: Enqueue timestamp

        Returns:
            The queued item
        """
        now = now or datetime.now()
        collection = RECORD_COLLECTIONS[record_type]

        if action == SyncAction.DELETE:
            await self.local.delete(collection, record_id)
            payload = None
        else:
            if payload is None:
                raise ValueError(f"{action.value} of {record_type.value} {record_id} needs a payload")
            await self.local.upsert(collection, record_id, payload)

        item = SyncQueueItem(
            id=f"sync_{uuid.uuid4().hex[:16]}",
            sequence=await self._next_sequence(),
            record_type=record_type,
            record_id=record_id,
            action=action,
            payload=dict(payload) if payload is not None else None,
            enqueued_at=now
        )
        await self.local.upsert(Collections.SYNC_QUEUE, item.id, item.to_payload())
        logger.info(f"Queued {action.value} {record_type.value}/{record_id} as #{item.sequence}")

        if self.auto_drain and self.online and self.remote is not None:
            await self.drain(now=now)

        return item

    # ==================== DRAIN ====================

    async def pending_items(self) -> List[SyncQueueItem]:
        documents = await self.local.query(
            Collections.SYNC_QUEUE,
            [where("synced", "==", False)],
            order_by="sequence"
        )
        return [SyncQueueItem.from_payload(d) for d in documents]

    async def _save(self, item: SyncQueueItem):
        await self.local.upsert(Collections.SYNC_QUEUE, item.id, item.to_payload())

    async def _apply(self, remote: RecordStore, item: SyncQueueItem):
        if item.action == SyncAction.DELETE:
            await remote.delete(item.collection, item.record_id)
        else:
            await remote.upsert(item.collection, item.record_id, item.payload or {})

    async def drain(
        self,
        remote: Optional[RecordStore] = None,
        now: Optional[datetime] = None
    ) -> DrainResult:
        """
        Push every unsynced item to the remote store

        A failed item keeps its place with an incremented retry count, and
        later items for the same record wait for the next cycle. Items that
        reach the retry threshold are flagged for an operator and still
        retried.
        """
        remote = remote or self.remote
        if remote is None or not self.online:
            return DrainResult(skipped=True)
        if self._drain_lock.locked():
            logger.debug("Drain already in progress")
            return DrainResult(skipped=True)

        async with self._drain_lock:
            now = now or datetime.now()
            applied = failed = held_back = newly_flagged = 0
            errors: List[str] = []
            blocked: Set[Tuple[RecordType, str]] = set()

            for item in await self.pending_items():
                key = (item.record_type, item.record_id)
                if key in blocked:
                    held_back += 1
                    continue

                try:
                    await self._apply(remote, item)
                except (SyncApplyError, ConnectivityError) as e:
                    reason = str(e)
                except Exception as e:
                    logger.exception(f"Unexpected error applying sync item {item.id}")
                    reason = f"{type(e).__name__}: {e}"
                else:
                    await self._save(replace(item, synced=True, synced_at=now, last_error=None))
                    applied += 1
                    continue

                blocked.add(key)
                failed += 1
                errors.append(f"{item.id}: {reason}")
                retry_count = item.retry_count + 1
                flagged = retry_count >= self.retry_threshold
                if flagged and not item.flagged:
                    newly_flagged += 1
                    logger.warning(
                        f"Sync item {item.id} ({item.action.value} {item.record_type.value}/"
                        f"{item.record_id}) failed {retry_count} times, flagged for review"
                    )
                else:
                    logger.error(f"Failed to sync item {item.id} (attempt {retry_count}): {reason}")
                await self._save(replace(item, retry_count=retry_count, last_error=reason, flagged=flagged))

            self.last_sync_at = now
            if applied or failed:
                logger.info(f"Drain finished: {applied} applied, {failed} failed, {held_back} held back")

            return DrainResult(
                applied=applied,
                failed=failed,
                held_back=held_back,
                newly_flagged=newly_flagged,
                errors=tuple(errors)
            )

    # ==================== STATUS ====================

    @property
    def syncing(self) -> bool:
        return self._drain_lock.locked()

    async def set_online(self, online: bool) -> Optional[DrainResult]:
        """Record a connectivity change; going online starts a drain"""
        was_online = self.online
        self.online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        if online and not was_online and self.remote is not None:
            return await self.drain()
        return None

    async def flagged_items(self) -> List[SyncQueueItem]:
        documents = await self.local.query(
            Collections.SYNC_QUEUE,
            [where("flagged", "==", True), where("synced", "==", False)],
            order_by="sequence"
        )
        return [SyncQueueItem.from_payload(d) for d in documents]

    async def status(self) -> SyncStatus:
        pending = await self.pending_items()
        return SyncStatus(
            online=self.online,
            syncing=self.syncing,
            last_sync_at=self.last_sync_at,
            pending=len(pending),
            flagged=sum(1 for item in pending if item.flagged)
        )

    async def prune_synced(self, now: Optional[datetime] = None) -> int:
        """Delete synced items older than the retention period"""
        now = now or datetime.now()
        cutoff = now - timedelta(days=self.retention_days)
        documents = await self.local.query(
            Collections.SYNC_QUEUE,
            [where("synced", "==", True), where("synced_at", "<", cutoff)]
        )
        for document in documents:
            await self.local.delete(Collections.SYNC_QUEUE, document["id"])
        if documents:
            logger.info(f"Pruned {len(documents)} synced queue items older than {cutoff.isoformat()}")
        return len(documents)
