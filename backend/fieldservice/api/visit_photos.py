import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.visit_photo import (
    VisitPhotoCreate,
    VisitPhotoOut,
    VisitPhotoWithUrlOut,
    UploadAuthorizationOut,
    VisitPhotoCreateResponse,
    VisitPhotoResponse,
    VisitPhotoListResponse,
)
from ..services import visit_photo_service
from ..services.storage_service import PhotoStorage, get_storage
from ..services.visit_guard import AuthContext
from .deps import get_auth_context, get_correlation_id

router = APIRouter(prefix="/v1/visits/{visit_id}/photos", tags=["visit-photos"])


@router.post("", response_model=VisitPhotoCreateResponse, status_code=201)
async def create_photo(
    visit_id: uuid.UUID,
    body: VisitPhotoCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[PhotoStorage, Depends(get_storage)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    correlation_id: Annotated[str | None, Depends(get_correlation_id)],
):
    created = await visit_photo_service.create_visit_photo(
        db, storage, auth, str(visit_id), body.file_name, body.content_type, correlation_id
    )
    return VisitPhotoCreateResponse(
        photo=VisitPhotoOut.model_validate(created.photo),
        upload=UploadAuthorizationOut(url=created.upload.url, fields=created.upload.fields),
    )


@router.post("/{photo_id}/confirm", response_model=VisitPhotoResponse)
async def confirm_photo(
    visit_id: uuid.UUID,
    photo_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    correlation_id: Annotated[str | None, Depends(get_correlation_id)],
):
    photo = await visit_photo_service.confirm_visit_photo(
        db, auth, str(visit_id), str(photo_id), correlation_id
    )
    return VisitPhotoResponse(photo=VisitPhotoOut.model_validate(photo))


@router.get("", response_model=VisitPhotoListResponse)
async def list_photos(
    visit_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[PhotoStorage, Depends(get_storage)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
):
    items = await visit_photo_service.list_visit_photos(db, storage, auth, str(visit_id))
    return VisitPhotoListResponse(
        data=[
            VisitPhotoWithUrlOut(
                **VisitPhotoOut.model_validate(item.photo).model_dump(),
                download_url=item.download_url,
            )
            for item in items
        ]
    )


@router.delete("/{photo_id}", status_code=204)
async def delete_photo(
    visit_id: uuid.UUID,
    photo_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[PhotoStorage, Depends(get_storage)],
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    correlation_id: Annotated[str | None, Depends(get_correlation_id)],
):
    await visit_photo_service.delete_visit_photo(
        db, storage, auth, str(visit_id), str(photo_id), correlation_id
    )
    return Response(status_code=204)
