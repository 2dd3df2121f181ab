"""
Typed project form, image uploads and their validation.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from fastapi import UploadFile

from portfolio.db import ProjectFields, ProjectRecord

MAX_IMAGE_BYTES = 5 * 1024 * 1024


def parse_technologies(raw: str | None) -> list[str]:
    """Split comma-separated tags, trimming whitespace and dropping blanks."""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


@dataclass
class ProjectForm:
    title: str = ""
    description: str = ""
    technologies: str = ""
    demo_url: str = ""
    github_url: str = ""
    featured: bool = False

    @classmethod
    def from_project(cls, project: ProjectRecord) -> "ProjectForm":
        return cls(
            title=project.title,
            description=project.description,
            technologies=", ".join(project.technologies),
            demo_url=project.demo_url,
            github_url=project.github_url,
            featured=project.featured,
        )

    def to_fields(self, image_url: str) -> ProjectFields:
        return ProjectFields(
            title=self.title.strip(),
            description=self.description,
            technologies=parse_technologies(self.technologies),
            image_url=image_url,
            demo_url=self.demo_url.strip(),
            github_url=self.github_url.strip(),
            featured=self.featured,
        )


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ValidationResult:
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class FormValidationError(Exception):
    """Raised when a submission fails validation; nothing was written."""

    def __init__(self, result: ValidationResult):
        super().__init__("; ".join(f"{k}: {v}" for k, v in result.errors.items()))
        self.result = result


def _valid_link(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_image(
    image: ImageUpload, max_image_bytes: int = MAX_IMAGE_BYTES
) -> Optional[str]:
    """Return an error message for an unacceptable image, else None."""
    if not (image.content_type or "").startswith("image/"):
        return "File must be an image"
    if image.size > max_image_bytes:
        limit_mb = max_image_bytes / (1024 * 1024)
        return f"Image must be at most {limit_mb:g} MB"
    return None


def validate_project_form(
    form: ProjectForm,
    image: Optional[ImageUpload] = None,
    max_image_bytes: int = MAX_IMAGE_BYTES,
) -> ValidationResult:
    """Validate a submission without touching any backend."""
    result = ValidationResult()
    if not form.title.strip():
        result.errors["title"] = "Title is required"
    for name in ("demo_url", "github_url"):
        value = getattr(form, name).strip()
        if value and not _valid_link(value):
            result.errors[name] = "Must be an http(s) URL"
    if image is not None:
        message = validate_image(image, max_image_bytes)
        if message:
            result.errors["image"] = message
    return result


async def read_upload(upload: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read a multipart file field; an empty file input yields None."""
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )


@dataclass
class PreviewResult:
    data_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data_url is not None


def image_preview(image: ImageUpload, max_image_bytes: int = MAX_IMAGE_BYTES) -> PreviewResult:
    message = validate_image(image, max_image_bytes)
    if message:
        return PreviewResult(error=message)
    encoded = base64.b64encode(image.data).decode("ascii")
    return PreviewResult(data_url=f"data:{image.content_type};base64,{encoded}")


async def read_image_preview(
    upload: Optional[UploadFile], max_image_bytes: int = MAX_IMAGE_BYTES
) -> PreviewResult:
    """Read an uploaded file into a ``data:`` URL suitable for an <img> tag."""
    try:
        image = await read_upload(upload)
    except OSError as exc:
        return PreviewResult(error=f"Could not read file: {exc}")
    if image is None:
        return PreviewResult(error="No file selected")
    return image_preview(image, max_image_bytes)
