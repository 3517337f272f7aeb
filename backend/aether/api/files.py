"""Router serving attachments stored by the local storage backend."""

import mimetypes
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from aether.core.auth import CurrentUser, get_optional_user
from aether.core.errors import StorageError
from aether.core.logging import get_logger
from aether.services.file_storage import DEFAULT_CONTENT_TYPE, FileStorageService, get_file_storage

logger = get_logger(__name__)

router = APIRouter(prefix="/files")


@router.get("/download/{storage_path:path}")
async def download_file(
    storage_path: str,
    expires: Optional[int] = None,
    signature: Optional[str] = None,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    storage: FileStorageService = Depends(get_file_storage),
):
    """Download a locally stored attachment.

    Allowed for the owning user or for any holder of a valid signed URL.
    """
    if storage.backend != "local":
        raise HTTPException(status_code=404, detail="File not found")

    is_owner = current_user is not None and storage_path.startswith(f"{current_user.id}/")
    has_signature = (
        expires is not None
        and signature is not None
        and storage.verify_signature(storage_path, expires, signature)
    )
    if not (is_owner or has_signature):
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        data = await storage.read_local(storage_path)
    except (FileNotFoundError, StorageError):
        raise HTTPException(status_code=404, detail="File not found")

    media_type = mimetypes.guess_type(storage_path)[0] or DEFAULT_CONTENT_TYPE
    logger.info("file_downloaded", storage_path=storage_path, signed=has_signature)
    return Response(content=data, media_type=media_type)
