"""Blob storage for recorded audio: local filesystem (development) and S3."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from voicejournal.errors import StorageError

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/m4a": ".m4a",
    "audio/aac": ".aac",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}


@dataclass(frozen=True)
class StoredBlob:
    key: str
    size: int


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob: ...

    async def delete(self, key: str) -> None: ...

    async def url_for(self, key: str) -> str: ...


def recording_key(owner_id, journal_id, assignment_id, recording_id, content_type: str) -> str:
    """Object key namespaced by owner/journal/assignment."""
    ext = AUDIO_EXTENSIONS.get(content_type, "")
    return f"recordings/{owner_id}/{journal_id}/{assignment_id}/{recording_id}{ext}"


class LocalBlobStore:
    """Writes blobs under a directory served at {public_base_url}/uploads."""

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def _write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        try:
            await run_in_threadpool(self._write, key, data)
        except OSError as e:
            logger.error("Local write failed for %s: %s", key, e, exc_info=True)
            raise StorageError("Failed to store audio.") from e
        logger.info("Stored %d bytes at %s", len(data), key)
        return StoredBlob(key=key, size=len(data))

    async def delete(self, key: str) -> None:
        await run_in_threadpool(self._path(key).unlink, missing_ok=True)

    async def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/uploads/{key}"


class S3BlobStore:
    """Service for storing recordings in S3 (or an S3-compatible store such as R2)."""

    def __init__(
        self,
        bucket: str,
        *,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        url_expiration: int = 3600,
    ):
        """Initialize S3 client with credentials from settings."""
        client_kwargs = {
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
            "region_name": region,
        }
        # Support MinIO / R2 / LocalStack by pointing to a custom endpoint
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        self.s3_client = boto3.client("s3", **client_kwargs)
        self.bucket = bucket
        self.url_expiration = url_expiration

    async def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        """
        Upload audio directly to S3 (server-side upload).

        Args:
            key: S3 object key (path) for the file
            data: Raw audio bytes
            content_type: MIME type stored on the object

        Returns:
            StoredBlob with the key and stored size

        Raises:
            StorageError: If the S3 operation fails (retryable)
        """
        try:
            await run_in_threadpool(
                self.s3_client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed for %s: %s", key, e, exc_info=True)
            raise StorageError("Failed to store audio.") from e
        return StoredBlob(key=key, size=len(data))

    async def delete(self, key: str) -> None:
        """
        Delete an object from S3.

        Raises:
            StorageError: If the S3 operation fails
        """
        try:
            await run_in_threadpool(self.s3_client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("Failed to delete audio.") from e

    async def url_for(self, key: str) -> str:
        """Presigned GET URL for playback."""
        try:
            return await run_in_threadpool(
                self.s3_client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.url_expiration,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError("Failed to sign audio URL.") from e
