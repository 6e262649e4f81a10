import logging
import uuid

from fastapi import APIRouter, Depends, File, UploadFile

from marketplace.core.config import settings
from marketplace.core.errors import Forbidden, NotFound, ValidationFailed, field_error
from marketplace.schemas.common import MessageResponse
from marketplace.schemas.upload import UploadDelete, UploadOut
from marketplace.services.auth import Actor, get_actor
from marketplace.services.storage import LocalObjectStore

log = logging.getLogger(__name__)

router = APIRouter()

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

_store: LocalObjectStore | None = None


def get_store() -> LocalObjectStore:
    global _store
    if _store is None:
        _store = LocalObjectStore(settings.upload_dir, settings.upload_base_url)
    return _store


@router.post("/uploads", response_model=UploadOut, status_code=201)
async def upload_images(
    images: list[UploadFile] = File(...),
    actor: Actor = Depends(get_actor),
    store: LocalObjectStore = Depends(get_store),
) -> UploadOut:
    if len(images) > settings.upload_max_files:
        raise ValidationFailed(
            "Too many files", errors=[field_error("images", f"at most {settings.upload_max_files} files")]
        )

    # validate everything before writing anything
    payloads: list[tuple[UploadFile, bytes]] = []
    for upload in images:
        if upload.content_type not in _EXTENSIONS:
            raise ValidationFailed(
                "Only JPEG, PNG and WebP images are allowed",
                errors=[field_error("images", f"{upload.filename} is not a supported image")],
            )
        data = await upload.read()
        if not data:
            raise ValidationFailed("Empty file", errors=[field_error("images", f"{upload.filename} is empty")])
        if len(data) > settings.upload_max_bytes:
            raise ValidationFailed(
                "File too large", errors=[field_error("images", f"{upload.filename} exceeds {settings.upload_max_bytes} bytes")]
            )
        payloads.append((upload, data))

    urls = []
    for upload, data in payloads:
        key = f"uploads/{actor.user_id}/{uuid.uuid4().hex}.{_EXTENSIONS[upload.content_type]}"
        urls.append(store.put_bytes(key=key, data=data))
    log.info("stored %s uploads for %s", len(urls), actor.user_id)
    return UploadOut(count=len(urls), urls=urls)


@router.delete("/uploads", response_model=MessageResponse)
async def delete_upload(
    payload: UploadDelete,
    actor: Actor = Depends(get_actor),
    store: LocalObjectStore = Depends(get_store),
) -> MessageResponse:
    key = store.key_from_url(payload.url)
    if not key:
        raise NotFound("File not found")
    if not key.startswith(f"uploads/{actor.user_id}/") and not actor.is_admin:
        raise Forbidden("Not authorized to delete this file")
    try:
        removed = store.delete(key)
    except ValueError:
        raise NotFound("File not found")
    if not removed:
        raise NotFound("File not found")
    return MessageResponse(message="File removed")
