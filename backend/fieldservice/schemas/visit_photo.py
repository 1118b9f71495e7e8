from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VisitPhotoCreate(BaseModel):
    file_name: str = Field(min_length=1, max_length=500)
    content_type: str = Field(min_length=1, max_length=100)


class VisitPhotoOut(BaseModel):
    id: str
    tenant_id: str
    visit_id: str
    storage_key: str
    file_name: str
    content_type: str
    size_bytes: Optional[int] = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class VisitPhotoWithUrlOut(VisitPhotoOut):
    download_url: str


class UploadAuthorizationOut(BaseModel):
    url: str
    fields: dict[str, str]


class VisitPhotoCreateResponse(BaseModel):
    photo: VisitPhotoOut
    upload: UploadAuthorizationOut


class VisitPhotoResponse(BaseModel):
    photo: VisitPhotoOut


class VisitPhotoListResponse(BaseModel):
    data: list[VisitPhotoWithUrlOut]
