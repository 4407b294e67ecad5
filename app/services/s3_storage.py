from __future__ import annotations

import re
import time
import uuid
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

from app.core.config import settings

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".pdf"}


class UploadRejectedError(ValueError):
    pass


def _safe_file_name(file_name: str) -> str:
    raw = str(file_name or "").strip() or "file.bin"
    return re.sub(r"[^A-Za-z0-9.-]+", "_", raw)[:50]


def _extension(file_name: str) -> str:
    match = re.search(r"\.[^.]+$", str(file_name or "").lower())
    return match.group(0) if match else ""


def build_object_key(prefix: str, file_name: str) -> str:
    return f"{prefix.strip('/')}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}-{_safe_file_name(file_name)}"


def validate_upload(file_name: str, mime_type: str, size_bytes: int) -> None:
    max_bytes = int(settings.MAX_UPLOAD_MB) * 1024 * 1024
    if int(size_bytes) > max_bytes:
        raise UploadRejectedError(f"File size must be less than {settings.MAX_UPLOAD_MB}MB")
    if str(mime_type or "").strip().lower() not in settings.upload_allowed_mime_types_set:
        raise UploadRejectedError("File type not allowed")
    if _extension(file_name) not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError("Invalid file extension")


class S3Storage:
    def __init__(self):
        self.bucket = settings.S3_BUCKET
        self.client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
            use_ssl=settings.S3_USE_SSL,
        )
        self._bucket_checked = False

    def ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in {"404", "NoSuchBucket", "NotFound"}:
                raise
            try:
                self.client.create_bucket(Bucket=self.bucket)
            except ClientError as create_exc:
                create_code = str(create_exc.response.get("Error", {}).get("Code", ""))
                if create_code not in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                    raise
        self._bucket_checked = True

    def create_presigned_put_url(self, key: str, mime_type: str, expires_sec: int = 900) -> str:
        self.ensure_bucket()
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": mime_type},
            ExpiresIn=expires_sec,
            HttpMethod="PUT",
        )

    def public_url(self, key: str) -> str:
        base = str(settings.S3_PUBLIC_URL or "").rstrip("/")
        if base:
            return f"{base}/{key}"
        return f"https://{self.bucket}.r2.dev/{key}"

    def delete_object(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)


@lru_cache(maxsize=1)
def get_s3_storage() -> S3Storage:
    return S3Storage()
