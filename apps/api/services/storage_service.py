"""
Chat image storage on an S3-compatible bucket.

Keys follow `{patientProfileId}/{sessionId}/{filename}`; the first segment
is the owner and is checked against the caller on every access.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}
PRESIGNED_URL_TTL = 3600


@dataclass
class StoredImage:
    key: str
    url: str
    content_type: str
    size: int


def build_image_key(profile_id: int, session_id: Optional[int], extension: str) -> str:
    folder = str(session_id) if session_id is not None else "general"
    return f"{profile_id}/{folder}/{int(time.time() * 1000)}.{extension}"


def key_owner(key: str) -> str:
    return key.split("/", 1)[0]


class StorageService:
    def __init__(self, bucket_name: Optional[str], s3_client: Any = None, region_name: Optional[str] = None,
                 aws_access_key_id: Optional[str] = None, aws_secret_access_key: Optional[str] = None,
                 endpoint_url: Optional[str] = None):
        self.bucket_name = bucket_name
        if s3_client is not None:
            self.s3 = s3_client
        elif bucket_name:
            self.s3 = boto3.client(
                "s3",
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                region_name=region_name,
                endpoint_url=endpoint_url,
            )
        else:
            self.s3 = None

    def is_configured(self) -> bool:
        return self.s3 is not None and bool(self.bucket_name)

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Image storage is not configured"
            )

    def _require_owner(self, profile_id: int, key: str) -> None:
        if key_owner(key) != str(profile_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied to this file"
            )

    def presigned_url(self, key: str) -> str:
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=PRESIGNED_URL_TTL,
        )

    def upload_image(self, profile_id: int, session_id: Optional[int], data: bytes,
                     content_type: Optional[str]) -> StoredImage:
        self._require_configured()

        content_type = (content_type or "").lower()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"Unsupported image type: {content_type or 'unknown'}"
            )
        if len(data) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image exceeds the 10MB limit"
            )

        key = build_image_key(profile_id, session_id, ALLOWED_IMAGE_TYPES[content_type])
        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="max-age=3600",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Storage upload error for {key}: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to upload image"
            )

        logger.info(f"Image uploaded to storage: {key}")
        return StoredImage(key=key, url=self.presigned_url(key), content_type=content_type, size=len(data))

    def get_image_url(self, profile_id: int, key: str) -> str:
        self._require_configured()
        self._require_owner(profile_id, key)
        return self.presigned_url(key)

    def read_image(self, profile_id: int, key: str) -> Tuple[bytes, Optional[str]]:
        """Image bytes plus the content type recorded at upload"""
        self._require_configured()
        self._require_owner(profile_id, key)
        try:
            obj = self.s3.get_object(Bucket=self.bucket_name, Key=key)
            return obj["Body"].read(), obj.get("ContentType")
        except ClientError as e:
            logger.error(f"Storage read error for {key}: {e}")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
        except BotoCoreError as e:
            logger.error(f"Storage unreachable reading {key}: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image storage unavailable")

    def delete_image(self, profile_id: int, key: str) -> None:
        """Remove an image; storage failures are logged, not raised"""
        self._require_configured()
        self._require_owner(profile_id, key)
        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting image {key}: {e}")
