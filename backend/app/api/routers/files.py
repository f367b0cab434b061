from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.api.deps import get_upload_service
from app.core.errors import MissingField
from app.schemas import (
    Envelope,
    PreviewResponse,
    RenameRequest,
    UpdateRequest,
    UploadRequest,
)
from app.services.uploads import UploadService

router = APIRouter(tags=["files"])


async def _read_upload(file: UploadFile | None) -> tuple[bytes, str, int]:
    if file is None:
        raise MissingField("file")
    data = await file.read()
    return data, file.filename or "", file.size or len(data)


@router.post("/upload", response_model=Envelope)
async def upload_file(
    file: UploadFile | None = File(default=None),
    title: str | None = Form(default=None),
    uploads: UploadService = Depends(get_upload_service),
) -> Envelope:
    data, filename, size = await _read_upload(file)
    if not title:
        raise MissingField("title")

    objects = await uploads.create(
        UploadRequest(title=title, file_bytes=data, filename=filename, declared_size=size)
    )
    return Envelope(
        message="success upload file",
        data=[obj.model_dump() for obj in objects],
    )


@router.get("/preview/{key:path}", response_model=Envelope)
async def preview_file(
    key: str,
    uploads: UploadService = Depends(get_upload_service),
) -> Envelope:
    url = await uploads.preview(key)
    return Envelope(
        message="success get preview url",
        data=PreviewResponse(url=url).model_dump(),
    )


@router.put("/update", response_model=Envelope)
async def update_file(
    file: UploadFile | None = File(default=None),
    title: str | None = Form(default=None),
    key: str | None = Form(default=None),
    uploads: UploadService = Depends(get_upload_service),
) -> Envelope:
    data, filename, size = await _read_upload(file)
    if not key:
        raise MissingField("key")
    if not title:
        raise MissingField("title")

    await uploads.update(
        UpdateRequest(
            title=title,
            file_bytes=data,
            filename=filename,
            declared_size=size,
            key=key,
        )
    )
    return Envelope(message="success update file")


@router.get("/list", response_model=Envelope)
async def list_files(uploads: UploadService = Depends(get_upload_service)) -> Envelope:
    objects = await uploads.list_objects()
    return Envelope(
        message="success get list files",
        data=[obj.model_dump() for obj in objects],
    )


@router.delete("/delete/{key:path}", response_model=Envelope)
async def delete_file(
    key: str,
    uploads: UploadService = Depends(get_upload_service),
) -> Envelope:
    await uploads.delete(key)
    return Envelope(message="success delete file")


@router.put("/update-object", response_model=Envelope)
async def update_object(
    old_key: str | None = Form(default=None, alias="oldKey"),
    new_key: str | None = Form(default=None, alias="newKey"),
    uploads: UploadService = Depends(get_upload_service),
) -> Envelope:
    await uploads.rename(RenameRequest(old_key=old_key or "", new_key=new_key or ""))
    return Envelope(message="success update object")
