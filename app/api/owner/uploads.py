from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import CurrentUser, get_current_user
from app.schemas.accounts import UploadInit, UploadInitResponse
from app.services.s3_storage import UploadRejectedError, build_object_key, get_s3_storage, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/init", response_model=UploadInitResponse)
def init_upload(payload: UploadInit, current: CurrentUser = Depends(get_current_user)):
    try:
        validate_upload(payload.file_name, payload.mime_type, payload.size_bytes)
    except UploadRejectedError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    key = build_object_key(f"uploads/{current.id}", payload.file_name)
    storage = get_s3_storage()
    try:
        url = storage.create_presigned_put_url(key, payload.mime_type)
    except (BotoCoreError, ClientError):
        logger.exception("presign failed user_id=%s", current.id)
        raise HTTPException(status_code=502, detail="Failed to prepare upload")
    return UploadInitResponse(key=key, presigned_url=url, public_url=storage.public_url(key))
