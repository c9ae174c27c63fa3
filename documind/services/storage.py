"""
Storage service supporting both local file storage and S3.
For local development, files are stored on disk.
For production, files are stored in S3.
"""

import logging
import time
import uuid
from pathlib import Path

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from documind.core.config import settings
from documind.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def document_key(user_id: uuid.UUID) -> str:
    """Storage key for a new upload: ``{user_id}/{millis}.pdf``."""
    return f"{user_id}/{int(time.time() * 1000)}.pdf"


class StorageService:
    """Storage service that supports local files or S3."""

    def __init__(self, use_local: bool | None = None, local_path: str | None = None):
        self.use_local = settings.USE_LOCAL_STORAGE if use_local is None else use_local
        self.local_path = Path(local_path or settings.LOCAL_STORAGE_PATH)
        self.bucket_name = settings.S3_DOCUMENTS_BUCKET

        if self.use_local:
            self.local_path.mkdir(parents=True, exist_ok=True)
        else:
            self.s3_client = self._s3_client()

    @staticmethod
    def _s3_client():
        s3_config = BotoConfig(signature_version="s3v4", region_name=settings.AWS_REGION)
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            return boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                config=s3_config,
            )
        return boto3.client("s3", config=s3_config)

    def upload(self, content: bytes, key: str, content_type: str = "application/pdf") -> str:
        """Store bytes under ``key`` and return the file URL."""
        if self.use_local:
            file_path = self.local_path / key
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
            logger.debug("Saved %d bytes to %s", len(content), file_path)
            return file_path.resolve().as_uri()

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise StorageError(f"Failed to store file: {e}") from e
        return f"https://{self.bucket_name}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"

    def delete(self, key: str) -> bool:
        """Remove a stored file. Returns False when it was already gone."""
        if self.use_local:
            file_path = self.local_path / key
            if file_path.exists():
                file_path.unlink()
                return True
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 delete failed for %s: %s", key, e)
            raise StorageError(f"Failed to delete file: {e}") from e
        return True
