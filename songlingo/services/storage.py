"""S3 storage helpers for pronunciation reference audio."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from songlingo.config.settings import Settings
from songlingo.services.aws import create_boto3_client
from songlingo.services.errors import StorageError


@dataclass(frozen=True)
class StoredAudio:
    object_key: str
    url: str


def _object_url(bucket: str, key: str, region: str) -> str:
    if region == "us-east-1":
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def reference_audio_key(song_id: str, index: int, extension: str = "mp3") -> str:
    """Collision-resistant key: song, 1-based exercise index and a random token."""

    return f"pronunciation/{song_id}/exercise-{index}-{uuid4().hex}.{extension.lstrip('.')}"


class ReferenceAudioStorage:
    """Write-once uploads of synthesized audio to a public S3 bucket."""

    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        client: Any | None = None,
        public_base_url: str | None = None,
        cache_control: str | None = "max-age=3600",
        access_key: str | None = None,
        secret_key: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._cache_control = cache_control
        self._client = client
        self._access_key = access_key
        self._secret_key = secret_key

    def _s3(self) -> Any:
        if self._client is None:
            self._client = create_boto3_client(
                "s3",
                region_name=self._region,
                aws_access_key_id=self._access_key,
                aws_secret_access_key=self._secret_key,
            )
        return self._client

    def public_url(self, object_key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{object_key}"
        return _object_url(self._bucket, object_key, self._region)

    async def upload_reference_audio(
        self,
        song_id: str,
        index: int,
        audio_bytes: bytes,
        *,
        content_type: str = "audio/mpeg",
        extension: str = "mp3",
    ) -> StoredAudio:
        """Upload one exercise's audio and return its key and public URL."""

        if not audio_bytes:
            raise StorageError("Audio payload for upload was empty.")
        if not self._bucket:
            raise StorageError("S3 bucket name is not configured.")

        object_key = reference_audio_key(song_id, index, extension)
        put_kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": object_key,
            "Body": audio_bytes,
            "ContentType": content_type,
            # Never overwrite an existing object.
            "IfNoneMatch": "*",
        }
        if self._cache_control:
            put_kwargs["CacheControl"] = self._cache_control

        try:
            await run_in_threadpool(self._s3().put_object, **put_kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload reference audio: {exc}") from exc

        return StoredAudio(object_key=object_key, url=self.public_url(object_key))


def build_reference_audio_storage(settings: Settings) -> ReferenceAudioStorage:
    return ReferenceAudioStorage(
        bucket=settings.s3.bucket_name,
        region=settings.s3.region,
        public_base_url=settings.s3.public_base_url,
        cache_control=settings.s3.cache_control,
        access_key=settings.s3.access_key,
        secret_key=settings.s3.secret_key,
    )


__all__ = [
    "ReferenceAudioStorage",
    "StoredAudio",
    "build_reference_audio_storage",
    "reference_audio_key",
]
