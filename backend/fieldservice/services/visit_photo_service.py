"""Visit photo evidence workflows: create, confirm, list, delete.

A photo's bytes live in object storage and its record in the database, with
no transaction spanning both. The database is authoritative, and every
ordering below keeps it that way: an object with no row is an invisible,
harmless leak, but a row pointing at a missing object must never exist.
So create presigns before inserting, and delete removes the row before the
object. Orphaned objects are accepted.
"""
import asyncio
import uuid
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..exceptions import NotFoundError, ValidationError
from ..models.visit_photo import VisitPhoto, PHOTO_READY
from . import photo_store
from .audit_service import log_action
from .best_effort import best_effort
from .storage_service import PhotoStorage, PresignedUpload
from .visit_guard import AuthContext, require_visit_access, require_visit_read_access

MAX_READY_PHOTOS = 20
MAX_PENDING_PHOTOS = 5
STALE_PENDING_MINUTES = 15

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/heic": "heic",
    "image/webp": "webp",
}
ALLOWED_CONTENT_TYPES = tuple(CONTENT_TYPE_EXTENSIONS)


@dataclass
class CreatedPhoto:
    photo: VisitPhoto
    upload: PresignedUpload


@dataclass
class PhotoWithUrl:
    photo: VisitPhoto
    download_url: str


def build_storage_key(tenant_id: str, visit_id: str, photo_id: str, content_type: str) -> str:
    ext = CONTENT_TYPE_EXTENSIONS[content_type]
    return f"tenants/{tenant_id}/visits/{visit_id}/photos/{photo_id}.{ext}"


async def reap_stale_pending(
    db: AsyncSession,
    storage: PhotoStorage,
    tenant_id: str | None,
    visit_id: str | None,
    older_than_minutes: int = STALE_PENDING_MINUTES,
) -> list[VisitPhoto]:
    """Delete abandoned pending records, then best-effort delete their objects."""
    stale = await photo_store.delete_stale_pending(db, tenant_id, visit_id, older_than_minutes)
    for photo in stale:
        await best_effort(f"delete stale object {photo.storage_key}", storage.delete_object, photo.storage_key)
    if stale:
        logger.info("Reaped {} stale pending photo(s) visit_id={}", len(stale), visit_id or "*")
    return stale


async def _write_audit(db: AsyncSession, **kwargs) -> bool:
    try:
        await log_action(db, **kwargs)
    except Exception:
        # Leave the request session usable for whatever follows.
        await db.rollback()
        raise
    return True


async def _audit(
    db: AsyncSession,
    auth: AuthContext,
    action: str,
    visit_id: str,
    photo: VisitPhoto,
    correlation_id: str | None,
    photo_exists: bool = True,
):
    written = await best_effort(
        action,
        _write_audit,
        db,
        tenant_id=auth.tenant_id,
        user_id=auth.user_id,
        action=action,
        resource="visit",
        resource_id=visit_id,
        details={"photo_id": photo.id, "file_name": photo.file_name},
        correlation_id=correlation_id,
    )
    if not written and photo_exists:
        # The rollback expired the photo; reload it for the caller.
        await db.refresh(photo)


async def _get_photo_on_visit(db: AsyncSession, auth: AuthContext, visit_id: str, photo_id: str) -> VisitPhoto:
    photo = await photo_store.get_photo(db, auth.tenant_id, photo_id)
    # A photo filed under another visit is indistinguishable from a missing one.
    if photo is None or photo.visit_id != visit_id:
        raise NotFoundError("Photo not found")
    return photo


async def create_visit_photo(
    db: AsyncSession,
    storage: PhotoStorage,
    auth: AuthContext,
    visit_id: str,
    file_name: str,
    content_type: str,
    correlation_id: str | None = None,
) -> CreatedPhoto:
    if not file_name or not file_name.strip():
        raise ValidationError("File name is required")
    if content_type not in CONTENT_TYPE_EXTENSIONS:
        raise ValidationError(
            f'Invalid content type "{content_type}". Allowed: {", ".join(ALLOWED_CONTENT_TYPES)}'
        )

    await require_visit_access(db, auth, visit_id, "add photos to", "add photos to")

    await reap_stale_pending(db, storage, auth.tenant_id, visit_id)

    ready_count = await photo_store.count_ready_photos(db, auth.tenant_id, visit_id)
    if ready_count >= MAX_READY_PHOTOS:
        raise ValidationError(f"Maximum of {MAX_READY_PHOTOS} photos per visit")

    pending_count = await photo_store.count_pending_photos(db, auth.tenant_id, visit_id)
    if pending_count >= MAX_PENDING_PHOTOS:
        raise ValidationError("Too many pending uploads. Please wait for current uploads to complete.")

    photo_id = str(uuid.uuid4())
    storage_key = build_storage_key(auth.tenant_id, visit_id, photo_id, content_type)

    # Presign first: if this raises, no row exists for the attempt.
    upload = await storage.issue_upload_authorization(storage_key, content_type, settings.MAX_PHOTO_SIZE)

    photo = await photo_store.create_photo(
        db,
        photo_id=photo_id,
        tenant_id=auth.tenant_id,
        visit_id=visit_id,
        storage_key=storage_key,
        file_name=file_name,
        content_type=content_type,
    )
    logger.info("Photo upload authorized photo_id={} visit_id={}", photo.id, visit_id)

    await _audit(db, auth, "visit.photo_upload_started", visit_id, photo, correlation_id)
    return CreatedPhoto(photo=photo, upload=upload)


async def confirm_visit_photo(
    db: AsyncSession,
    auth: AuthContext,
    visit_id: str,
    photo_id: str,
    correlation_id: str | None = None,
) -> VisitPhoto:
    await require_visit_access(db, auth, visit_id, "confirm photos on")
    await _get_photo_on_visit(db, auth, visit_id, photo_id)

    confirmed = await photo_store.confirm_upload(db, auth.tenant_id, photo_id, MAX_READY_PHOTOS)
    if confirmed is None:
        current = await photo_store.get_photo(db, auth.tenant_id, photo_id)
        if current is None:
            raise NotFoundError("Photo not found")
        if current.status == PHOTO_READY:
            # Replayed or concurrent confirm: already promoted.
            return current
        logger.info("Photo quota exceeded photo_id={} visit_id={}", photo_id, visit_id)
        raise ValidationError("Photo quota exceeded")

    logger.info("Photo confirmed photo_id={} visit_id={}", photo_id, visit_id)
    await _audit(db, auth, "visit.photo_added", visit_id, confirmed, correlation_id)
    return confirmed


async def delete_visit_photo(
    db: AsyncSession,
    storage: PhotoStorage,
    auth: AuthContext,
    visit_id: str,
    photo_id: str,
    correlation_id: str | None = None,
) -> None:
    await require_visit_access(db, auth, visit_id, "delete photos from", "delete photos on")
    photo = await _get_photo_on_visit(db, auth, visit_id, photo_id)

    # Row first, object second.
    if not await photo_store.delete_photo(db, auth.tenant_id, photo_id):
        raise NotFoundError("Photo not found")
    await best_effort(f"delete object {photo.storage_key}", storage.delete_object, photo.storage_key)
    logger.info("Photo deleted photo_id={} visit_id={}", photo_id, visit_id)

    await _audit(db, auth, "visit.photo_removed", visit_id, photo, correlation_id, photo_exists=False)


async def list_visit_photos(
    db: AsyncSession,
    storage: PhotoStorage,
    auth: AuthContext,
    visit_id: str,
) -> list[PhotoWithUrl]:
    await require_visit_read_access(db, auth, visit_id)
    photos = await photo_store.list_ready_photos(db, auth.tenant_id, visit_id)
    # Fresh per request; download URLs are never stored.
    urls = await asyncio.gather(*(storage.issue_download_url(p.storage_key) for p in photos))
    return [PhotoWithUrl(photo=p, download_url=url) for p, url in zip(photos, urls)]
