"""
File uploads for the rich-text editor, resources and newsletters, and the
route that serves them back.
"""
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import Response

from infohub.core.logging_config import logger
from infohub.core.rate_limiter import standard_rate_limit
from infohub.models.user import User
from infohub.modules.auth.dependencies import get_content_manager
from infohub.services.file_storage import file_storage

router = APIRouter(tags=["Files"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
@standard_rate_limit()
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    current_user: User = Depends(get_content_manager)
):
    """Store one image, document or video and return where it can be fetched"""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    content = await file.read()
    stored = await file_storage.save(file.filename, content)
    logger.info(f"[Upload] {current_user.email} uploaded {file.filename} ({stored.size} bytes)")
    return {"success": True, "data": stored.to_dict()}


@router.get("/files/{file_path:path}")
async def serve_file(file_path: str):
    content = await file_storage.read(file_path)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return Response(
        content=content,
        media_type=file_storage.content_type_for(file_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
