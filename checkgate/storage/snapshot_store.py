"""Snapshot normalizer — transactional store and reconstruction of snapshots."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..models import ClusterPodRecord, ClusterSnapshotRecord, HostSnapshotRecord
from ..schemas import ClusterSnapshot, HostSnapshot, Page, PodPhase, PodSample, Snapshot, SnapshotKind
from ..schemas.common import ensure_utc
from ..utils.logging import get_logger
from .mappers import (
    cluster_to_record,
    host_to_record,
    record_to_cluster,
    record_to_host,
    record_to_pod,
)
from .retry import StorageRetry

logger = get_logger("storage.snapshot_store")

_RECORDS = {
    SnapshotKind.HOST: HostSnapshotRecord,
    SnapshotKind.CLUSTER: ClusterSnapshotRecord,
}

_LOAD_OPTIONS = {
    SnapshotKind.HOST: (
        selectinload(HostSnapshotRecord.disks),
        selectinload(HostSnapshotRecord.interfaces),
        selectinload(HostSnapshotRecord.processes),
    ),
    SnapshotKind.CLUSTER: (
        selectinload(ClusterSnapshotRecord.nodes),
        selectinload(ClusterSnapshotRecord.pods),
        selectinload(ClusterSnapshotRecord.namespaces),
        selectinload(ClusterSnapshotRecord.events),
    ),
}


def _instance_column(kind: SnapshotKind):
    if kind == SnapshotKind.HOST:
        return HostSnapshotRecord.hostname
    return ClusterSnapshotRecord.cluster_name


def _to_schema(kind: SnapshotKind, record) -> Snapshot:
    if kind == SnapshotKind.HOST:
        return record_to_host(record)
    return record_to_cluster(record)


def _check_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")


class SnapshotStore:
    """The only writer of snapshot tables.

    Every public operation runs in its own session; ``store`` commits the
    parent row and all of its children in one transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
    ):
        self._session_factory = session_factory
        self._retry = StorageRetry(retry_attempts, retry_backoff_seconds)

    async def store(self, snapshot: Snapshot) -> int:
        """Persist a snapshot atomically and return its surrogate id.

        Raises StorageError when the write fails or transient retries run out.
        """
        if isinstance(snapshot, HostSnapshot):
            make_record = host_to_record
        elif isinstance(snapshot, ClusterSnapshot):
            make_record = cluster_to_record
        else:
            raise TypeError(f"Unsupported snapshot type: {type(snapshot).__name__}")

        async def _write() -> int:
            async with self._session_factory() as session:
                async with session.begin():
                    record = make_record(snapshot)
                    session.add(record)
                    await session.flush()
                    return record.id

        snapshot_id = await self._retry.run(f"store_{snapshot.kind.value}", _write)
        logger.debug(
            "snapshot_stored",
            kind=snapshot.kind.value,
            instance=snapshot.instance,
            snapshot_id=snapshot_id,
        )
        return snapshot_id

    async def load_latest(self, kind: SnapshotKind, instance: Optional[str] = None) -> Optional[Snapshot]:
        record_cls = _RECORDS[kind]

        async def _read():
            async with self._session_factory() as session:
                query = select(record_cls).options(*_LOAD_OPTIONS[kind])
                if instance is not None:
                    query = query.where(_instance_column(kind) == instance)
                query = query.order_by(record_cls.timestamp.desc(), record_cls.id.desc()).limit(1)
                record = (await session.execute(query)).scalar_one_or_none()
                return _to_schema(kind, record) if record is not None else None

        return await self._retry.run(f"load_latest_{kind.value}", _read)

    def _range_filter(self, kind: SnapshotKind, query, start: datetime, end: datetime, instance: Optional[str]):
        record_cls = _RECORDS[kind]
        start, end = ensure_utc(start), ensure_utc(end)
        query = query.where(record_cls.timestamp >= start, record_cls.timestamp <= end)
        if instance is not None:
            query = query.where(_instance_column(kind) == instance)
        return query

    async def load_range(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        page: int = 1,
        page_size: int = 50,
        instance: Optional[str] = None,
    ) -> Page:
        """One page of snapshots in [start, end], oldest first."""
        _check_paging(page, page_size)
        record_cls = _RECORDS[kind]

        async def _read() -> Page:
            async with self._session_factory() as session:
                count_query = self._range_filter(
                    kind, select(func.count()).select_from(record_cls), start, end, instance
                )
                total = (await session.execute(count_query)).scalar_one()

                query = self._range_filter(
                    kind, select(record_cls).options(*_LOAD_OPTIONS[kind]), start, end, instance
                )
                query = (
                    query.order_by(record_cls.timestamp.asc(), record_cls.id.asc())
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
                records = (await session.execute(query)).scalars().all()
                return Page(
                    items=[_to_schema(kind, r) for r in records],
                    page=page,
                    page_size=page_size,
                    total_items=total,
                )

        return await self._retry.run(f"load_range_{kind.value}", _read)

    async def load_window(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        instance: Optional[str] = None,
    ) -> list[Snapshot]:
        """All snapshots in [start, end], oldest first."""
        record_cls = _RECORDS[kind]

        async def _read() -> list[Snapshot]:
            async with self._session_factory() as session:
                query = self._range_filter(
                    kind, select(record_cls).options(*_LOAD_OPTIONS[kind]), start, end, instance
                )
                query = query.order_by(record_cls.timestamp.asc(), record_cls.id.asc())
                records = (await session.execute(query)).scalars().all()
                return [_to_schema(kind, r) for r in records]

        return await self._retry.run(f"load_window_{kind.value}", _read)

    async def timestamps(
        self,
        kind: SnapshotKind,
        start: datetime,
        end: datetime,
        instance: Optional[str] = None,
    ) -> list[datetime]:
        """Collection timestamps in [start, end] without loading children."""
        record_cls = _RECORDS[kind]

        async def _read() -> list[datetime]:
            async with self._session_factory() as session:
                query = self._range_filter(kind, select(record_cls.timestamp), start, end, instance)
                return list((await session.execute(query.order_by(record_cls.timestamp))).scalars().all())

        return await self._retry.run(f"timestamps_{kind.value}", _read)

    async def list_pods(
        self,
        namespace: Optional[str] = None,
        phase: Optional[PodPhase] = None,
        page: int = 1,
        page_size: int = 20,
        cluster_name: Optional[str] = None,
    ) -> Page:
        """Pods of the latest cluster snapshot, ordered by namespace then name."""
        _check_paging(page, page_size)

        async def _read() -> Page:
            async with self._session_factory() as session:
                latest = select(ClusterSnapshotRecord.id)
                if cluster_name is not None:
                    latest = latest.where(ClusterSnapshotRecord.cluster_name == cluster_name)
                latest = latest.order_by(
                    ClusterSnapshotRecord.timestamp.desc(), ClusterSnapshotRecord.id.desc()
                ).limit(1)
                snapshot_id = (await session.execute(latest)).scalar_one_or_none()
                if snapshot_id is None:
                    return Page[PodSample](items=[], page=page, page_size=page_size, total_items=0)

                conditions = [ClusterPodRecord.snapshot_id == snapshot_id]
                if namespace:
                    conditions.append(ClusterPodRecord.namespace == namespace)
                if phase is not None:
                    conditions.append(ClusterPodRecord.phase == PodPhase(phase).value)

                total = (
                    await session.execute(
                        select(func.count()).select_from(ClusterPodRecord).where(*conditions)
                    )
                ).scalar_one()
                rows = (
                    await session.execute(
                        select(ClusterPodRecord)
                        .where(*conditions)
                        .order_by(ClusterPodRecord.namespace, ClusterPodRecord.name, ClusterPodRecord.id)
                        .offset((page - 1) * page_size)
                        .limit(page_size)
                    )
                ).scalars().all()
                return Page[PodSample](
                    items=[record_to_pod(r) for r in rows],
                    page=page,
                    page_size=page_size,
                    total_items=total,
                )

        return await self._retry.run("list_pods", _read)

    async def purge_before(self, kind: SnapshotKind, cutoff: datetime) -> int:
        """Delete snapshots older than ``cutoff``; children follow by cascade."""
        record_cls = _RECORDS[kind]

        async def _delete() -> int:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(delete(record_cls).where(record_cls.timestamp < cutoff))
                    return result.rowcount or 0

        deleted = await self._retry.run(f"purge_{kind.value}", _delete)
        logger.info("snapshots_purged", kind=kind.value, deleted=deleted, cutoff=cutoff.isoformat())
        return deleted
