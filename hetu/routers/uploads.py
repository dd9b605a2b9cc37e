import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from starlette.concurrency import run_in_threadpool

from ..auth import require_user_csrf
from ..observability.metrics import record_upload
from ..schemas import FileCheckOut, UploadOut
from ..uploads import UploadConfig, check_file_exists, config_for, upload_file, validate_file, validate_file_content


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["uploads"])


async def _handle_upload(file: UploadFile, song_id: str, config: UploadConfig, message: str) -> UploadOut:
    if not song_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing file or songId")
    validation = validate_file(file, config)
    if not validation.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation.error)

    buffer = await file.read()
    if len(buffer) > config.max_file_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is too large")
    content_check = validate_file_content(buffer, config.content_type)
    if not content_check.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=content_check.error)
    result = await run_in_threadpool(upload_file, buffer, song_id, config)
    record_upload(config.kind, result.success)
    if not result.success:
        logger.warning("Upload of %s %s failed: %s", config.kind, song_id, result.error)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.error or "Upload failed",
        )
    return UploadOut(message=message, file_name=result.object_name, url=result.url)


@router.post("/upload-cover", response_model=UploadOut, summary="Upload a cover image")
async def upload_cover(
    file: UploadFile = File(...),
    song_id: str = Form(..., alias="songId"),
    current_user=Depends(require_user_csrf),
):
    return await _handle_upload(file, song_id, config_for("cover"), "Cover uploaded")


@router.post("/upload-score", response_model=UploadOut, summary="Upload a score image")
async def upload_score(
    file: UploadFile = File(...),
    song_id: str = Form(..., alias="songId"),
    current_user=Depends(require_user_csrf),
):
    return await _handle_upload(file, song_id, config_for("score"), "Score uploaded")


@router.get("/check-file", response_model=FileCheckOut, summary="Check whether a cover or score exists")
def check_file(
    song_id: str = Query(..., alias="songId", min_length=1),
    file_type: str = Query(..., alias="type"),
    current_user=Depends(require_user_csrf),
):
    if file_type not in ("cover", "score"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Must be 'cover' or 'score'",
        )
    exists, url = check_file_exists(song_id, config_for(file_type))
    return FileCheckOut(exists=exists, song_id=song_id, file_type=file_type, url=url)
