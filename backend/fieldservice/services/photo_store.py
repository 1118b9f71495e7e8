"""Persistence for visit photo records.

Every function commits its own writes. ``confirm_upload`` is the only
operation with concurrency control: it serializes on the parent visit so the
per-visit ready quota holds under parallel confirms.
"""
import asyncio
import weakref
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.visit import Visit
from ..models.visit_photo import VisitPhoto, PHOTO_PENDING, PHOTO_READY

# Per-visit mutex held for the whole confirm transaction. Backends without
# SELECT ... FOR UPDATE (SQLite) rely on it entirely; on PostgreSQL it only
# spares the row lock some in-process contention.
_visit_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _visit_lock(visit_id: str) -> asyncio.Lock:
    lock = _visit_locks.get(visit_id)
    if lock is None:
        lock = asyncio.Lock()
        _visit_locks[visit_id] = lock
    return lock


def lock_visit_statement(tenant_id: str, visit_id: str):
    """Row lock on the parent visit; serializes confirms across processes."""
    return (
        select(Visit.id)
        .where(Visit.tenant_id == tenant_id, Visit.id == visit_id)
        .with_for_update()
    )


async def create_photo(
    db: AsyncSession,
    *,
    photo_id: str,
    tenant_id: str,
    visit_id: str,
    storage_key: str,
    file_name: str,
    content_type: str,
) -> VisitPhoto:
    photo = VisitPhoto(
        id=photo_id,
        tenant_id=tenant_id,
        visit_id=visit_id,
        storage_key=storage_key,
        file_name=file_name,
        content_type=content_type,
        size_bytes=None,
        status=PHOTO_PENDING,
    )
    db.add(photo)
    await db.commit()
    await db.refresh(photo)
    return photo


async def get_photo(db: AsyncSession, tenant_id: str, photo_id: str) -> VisitPhoto | None:
    result = await db.execute(
        select(VisitPhoto)
        .where(VisitPhoto.tenant_id == tenant_id, VisitPhoto.id == photo_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def confirm_upload(db: AsyncSession, tenant_id: str, photo_id: str, max_ready: int) -> VisitPhoto | None:
    """Promote a pending photo to ready if the visit has ready-quota left.

    Runs as one transaction: re-read the photo, lock the visit row, recount
    ready photos, then update with a ``status = 'pending'`` predicate. Returns
    the promoted photo, or ``None`` when nothing changed (photo missing, not
    pending, quota full, or promoted concurrently). The caller re-reads the
    photo to tell those cases apart.
    """
    visit_id = await db.scalar(
        select(VisitPhoto.visit_id).where(VisitPhoto.tenant_id == tenant_id, VisitPhoto.id == photo_id)
    )
    if visit_id is None:
        return None

    async with _visit_lock(visit_id):
        try:
            photo = await get_photo(db, tenant_id, photo_id)
            if photo is None or photo.status != PHOTO_PENDING:
                # Nothing written. Commit ends the read transaction without
                # expiring what the caller already loaded.
                await db.commit()
                return None

            await db.execute(lock_visit_statement(tenant_id, photo.visit_id))

            ready_count = await db.scalar(
                select(func.count(VisitPhoto.id)).where(
                    VisitPhoto.tenant_id == tenant_id,
                    VisitPhoto.visit_id == photo.visit_id,
                    VisitPhoto.status == PHOTO_READY,
                )
            )
            if ready_count >= max_ready:
                await db.commit()
                return None

            result = await db.execute(
                update(VisitPhoto)
                .where(
                    VisitPhoto.tenant_id == tenant_id,
                    VisitPhoto.id == photo_id,
                    VisitPhoto.status == PHOTO_PENDING,
                )
                .values(status=PHOTO_READY)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.commit()
                return None

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    await db.refresh(photo)
    return photo


async def list_ready_photos(db: AsyncSession, tenant_id: str, visit_id: str) -> list[VisitPhoto]:
    result = await db.execute(
        select(VisitPhoto)
        .where(
            VisitPhoto.tenant_id == tenant_id,
            VisitPhoto.visit_id == visit_id,
            VisitPhoto.status == PHOTO_READY,
        )
        .order_by(VisitPhoto.created_at)
    )
    return list(result.scalars())


async def delete_photo(db: AsyncSession, tenant_id: str, photo_id: str) -> bool:
    result = await db.execute(
        delete(VisitPhoto)
        .where(VisitPhoto.tenant_id == tenant_id, VisitPhoto.id == photo_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def count_ready_photos(db: AsyncSession, tenant_id: str, visit_id: str) -> int:
    return await _count_by_status(db, tenant_id, visit_id, PHOTO_READY)


async def count_pending_photos(db: AsyncSession, tenant_id: str, visit_id: str) -> int:
    return await _count_by_status(db, tenant_id, visit_id, PHOTO_PENDING)


async def _count_by_status(db: AsyncSession, tenant_id: str, visit_id: str, status: str) -> int:
    count = await db.scalar(
        select(func.count(VisitPhoto.id)).where(
            VisitPhoto.tenant_id == tenant_id,
            VisitPhoto.visit_id == visit_id,
            VisitPhoto.status == status,
        )
    )
    return count or 0


async def delete_stale_pending(
    db: AsyncSession,
    tenant_id: str | None,
    visit_id: str | None,
    older_than_minutes: int,
) -> list[VisitPhoto]:
    """Delete pending photos older than the window and return the deleted rows.

    ``tenant_id``/``visit_id`` of ``None`` widen the sweep to every tenant or
    every visit. The ``status = 'pending'`` predicate is part of the DELETE so
    a photo confirmed in the meantime is never reaped.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
    stmt = delete(VisitPhoto).where(
        VisitPhoto.status == PHOTO_PENDING,
        VisitPhoto.created_at < cutoff,
    )
    if tenant_id is not None:
        stmt = stmt.where(VisitPhoto.tenant_id == tenant_id)
    if visit_id is not None:
        stmt = stmt.where(VisitPhoto.visit_id == visit_id)

    result = await db.execute(
        stmt.returning(VisitPhoto).execution_options(synchronize_session=False)
    )
    deleted = list(result.scalars())
    await db.commit()
    return deleted
