"""
Object storage abstraction for project images.

Supabase storage is reached through its S3-compatible endpoint; an in-memory
implementation backs development and tests.
"""

from __future__ import annotations

import mimetypes
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class ObjectStoreError(Exception):
    """Raised when the object store rejects or fails an operation."""


class ObjectStore(Protocol):
    """Defines the operations the editor needs from object storage."""

    def upload(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> None:
        ...

    def public_url(self, name: str) -> str:
        ...

    def remove(self, names: Iterable[str]) -> None:
        ...

    def references_store(self, url: str | None) -> bool:
        ...


_SAFE_EXTENSION = re.compile(r"[a-z0-9]{1,10}")


def generate_object_name(
    filename: str,
    content_type: str | None = None,
    *,
    now: datetime | None = None,
    suffix: str | None = None,
) -> str:
    """
    Build a collision-resistant object name: ``<epoch-ms>-<random>.<ext>``.

    The extension is taken from the original filename when it is a short
    alphanumeric token; otherwise it is guessed from the media type.
    """
    now = now or datetime.now(timezone.utc)
    suffix = suffix or uuid.uuid4().hex[:12]
    ext = ""
    if "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
    if not _SAFE_EXTENSION.fullmatch(ext):
        ext = ""
    if not ext and content_type:
        guessed = (mimetypes.guess_extension(content_type) or "").lstrip(".")
        ext = guessed if _SAFE_EXTENSION.fullmatch(guessed) else ""
    ext = ext or "bin"
    return f"{int(now.timestamp() * 1000)}-{suffix}.{ext}"


def object_name_from_url(url: str) -> str | None:
    """Return the final path segment of a public object URL."""
    path = urlparse(url).path if url else ""
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name or None


@dataclass
class InMemoryObjectStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.supabase.co/storage/v1/object/public/project-images"
    url_marker: str = "supabase"
    stored_objects: dict = field(default_factory=dict)
    removed: list = field(default_factory=list)

    def upload(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> None:
        if name in self.stored_objects and not upsert:
            raise ObjectStoreError(f"Object already exists: {name}")
        self.stored_objects[name] = {
            "data": data,
            "content_type": content_type,
            "cache_control": cache_control,
        }

    def public_url(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def remove(self, names: Iterable[str]) -> None:
        for name in names:
            self.removed.append(name)
            self.stored_objects.pop(name, None)

    def references_store(self, url: str | None) -> bool:
        return bool(url) and self.url_marker in url

    def reset(self) -> None:
        """Clear all stored objects (useful in tests)."""
        self.stored_objects.clear()
        self.removed.clear()


@dataclass
class S3ObjectStore:
    """
    S3-compatible storage client for the Supabase storage bucket.
    """

    bucket: str
    endpoint: str
    public_base_url: str
    access_key_id: str
    secret_access_key: str
    region: str = ""
    url_marker: str = "supabase"

    def __post_init__(self):
        # Supabase's S3 gateway expects path-style addressing.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": name,
            "Body": data,
            "ContentType": content_type,
            "CacheControl": f"max-age={cache_control}",
        }
        if not upsert:
            params["IfNoneMatch"] = "*"
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"Upload of {name} failed: {exc}") from exc

    def public_url(self, name: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{name}"

    def remove(self, names: Iterable[str]) -> None:
        objects = [{"Key": name} for name in names]
        if not objects:
            return
        try:
            response = self._client.delete_objects(
                Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True}
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"Removal failed: {exc}") from exc
        errors = response.get("Errors") or []
        if errors:
            keys = ", ".join(err.get("Key", "?") for err in errors)
            raise ObjectStoreError(f"Removal failed for: {keys}")

    def references_store(self, url: str | None) -> bool:
        return bool(url) and self.url_marker in url
