"""Blob delegate over a Supabase Storage bucket."""

import re
import time
from typing import Optional

from supabase import Client

from src.services.supabase_client import get_supabase_client
from src.utils.config import WorkflowConfig, get_config
from src.utils.errors import StorageError, ValidationFailedError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def safe_file_name(name: str) -> str:
    """Keep letters, digits, dots, dashes and underscores."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", (name or "").strip()).strip("-.")
    return cleaned or "file"


class BlobStorage:
    """
    Upload, delete and existence checks for public objects.

    Objects are addressed by their public URL; the bucket key is recovered
    from the URL path.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        bucket: Optional[str] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.config = config or get_config()
        self._client = client
        self.bucket = bucket or self.config.storage_bucket

    def _bucket(self):
        client = self._client or get_supabase_client()
        return client.storage.from_(self.bucket)

    def validate_file(self, content_type: str, size: int) -> None:
        """
        Raises:
            ValidationFailedError: If the type is not allowed or the file is too large
        """
        if content_type not in self.config.allowed_image_types:
            raise ValidationFailedError(
                f"File type {content_type} is not allowed",
                details=[{
                    "field": "content_type",
                    "message": "allowed types: " + ", ".join(self.config.allowed_image_types),
                }],
            )
        if size <= 0:
            raise ValidationFailedError("File is empty")
        if size > self.config.max_file_size:
            raise ValidationFailedError(
                f"File exceeds the maximum size of {self.config.max_file_size} bytes",
                size=size,
            )

    async def upload(
        self,
        data: bytes,
        name: str,
        folder: str = "properties",
        content_type: str = "application/octet-stream",
    ) -> str:
        """Store bytes under ``folder`` and return the public URL."""
        key = f"{folder.strip('/')}/{int(time.time() * 1000)}-{safe_file_name(name)}"
        try:
            bucket = self._bucket()
            bucket.upload(
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
            url = bucket.get_public_url(key)
        except Exception as e:
            raise StorageError(f"Failed to upload file: {e}", key=key)

        logger.info("File uploaded", bucket=self.bucket, key=key, size=len(data))
        return url.rstrip("?")

    def key_from_url(self, url: str) -> Optional[str]:
        marker = f"/object/public/{self.bucket}/"
        if not url or marker not in url:
            return None
        key = url.split(marker, 1)[1].split("?", 1)[0]
        return key or None

    async def delete(self, url: str) -> None:
        key = self.key_from_url(url)
        if key is None:
            raise StorageError("URL does not belong to this bucket", url=url)
        try:
            self._bucket().remove([key])
        except Exception as e:
            raise StorageError(f"Failed to delete file: {e}", key=key)
        logger.info("File deleted", bucket=self.bucket, key=key)

    async def exists(self, url: str) -> bool:
        key = self.key_from_url(url)
        if key is None:
            return False
        folder, _, name = key.rpartition("/")
        try:
            entries = self._bucket().list(folder, {"search": name})
        except Exception as e:
            raise StorageError(f"Failed to check file: {e}", key=key)
        return any(entry.get("name") == name for entry in entries or [])
