"""
Project editor: coordinates image upload, stale-image cleanup and record
writes into single create / update / delete operations.

The steps are not atomic. A failure part-way leaves both stores exactly as
far as the sequence progressed (e.g. an old image already deleted while the
record still points at it); nothing is rolled back or retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Callable, Optional

from portfolio.db import (
    ProjectRecord,
    ProjectStore,
    RecordNotFoundError,
    utcnow,
)
from portfolio.forms import (
    MAX_IMAGE_BYTES,
    FormValidationError,
    ImageUpload,
    ProjectForm,
    validate_project_form,
)
from portfolio.storage import (
    ObjectStore,
    ObjectStoreError,
    generate_object_name,
    object_name_from_url,
)

logger = logging.getLogger(__name__)


class SaveProgress(IntEnum):
    DELETE_OLD = 25
    UPLOAD_START = 50
    UPLOAD_DONE = 75
    RECORD_WRITE = 90
    COMPLETE = 100


@dataclass
class SaveResult:
    project: ProjectRecord
    created: bool
    progress: list[int] = field(default_factory=list)


class ProjectEditor:
    def __init__(
        self,
        store: ProjectStore,
        objects: ObjectStore,
        *,
        cache_control: str = "3600",
        max_image_bytes: int = MAX_IMAGE_BYTES,
        clock: Callable[[], datetime] = utcnow,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self.store = store
        self.objects = objects
        self.cache_control = cache_control
        self.max_image_bytes = max_image_bytes
        self.clock = clock
        self.on_progress = on_progress

    def _report(self, result_progress: list[int], step: SaveProgress) -> None:
        result_progress.append(int(step))
        if self.on_progress:
            self.on_progress(int(step))

    def _validate(self, form: ProjectForm, image: Optional[ImageUpload]) -> None:
        result = validate_project_form(form, image, self.max_image_bytes)
        if not result.ok:
            raise FormValidationError(result)

    def _upload(self, image: ImageUpload) -> str:
        name = generate_object_name(image.filename, image.content_type, now=self.clock())
        self.objects.upload(
            name,
            image.data,
            content_type=image.content_type,
            cache_control=self.cache_control,
            upsert=False,
        )
        logger.info("Uploaded project image %s (%d bytes)", name, image.size)
        return self.objects.public_url(name)

    def _remove_image(self, image_url: str) -> None:
        """Best-effort removal of a stored image; failures are only logged."""
        if not self.objects.references_store(image_url):
            return
        name = object_name_from_url(image_url)
        if not name:
            return
        try:
            self.objects.remove([name])
        except ObjectStoreError:
            logger.warning("Could not remove stored image %s", name, exc_info=True)

    def create(
        self, form: ProjectForm, image: Optional[ImageUpload] = None
    ) -> SaveResult:
        self._validate(form, image)
        progress: list[int] = []

        image_url = ""
        if image is not None:
            self._report(progress, SaveProgress.UPLOAD_START)
            image_url = self._upload(image)
            self._report(progress, SaveProgress.UPLOAD_DONE)

        self._report(progress, SaveProgress.RECORD_WRITE)
        project = self.store.insert_project(form.to_fields(image_url))
        self._report(progress, SaveProgress.COMPLETE)
        logger.info("Created project %s", project.id)
        return SaveResult(project=project, created=True, progress=progress)

    def update(
        self,
        project_id: str,
        form: ProjectForm,
        image: Optional[ImageUpload] = None,
    ) -> SaveResult:
        self._validate(form, image)
        existing = self.store.get_project(project_id)
        if existing is None:
            raise RecordNotFoundError(project_id)
        progress: list[int] = []

        image_url = existing.image_url
        if image is not None:
            self._report(progress, SaveProgress.DELETE_OLD)
            if existing.image_url:
                self._remove_image(existing.image_url)
            self._report(progress, SaveProgress.UPLOAD_START)
            image_url = self._upload(image)
            self._report(progress, SaveProgress.UPLOAD_DONE)

        updated_at = self.clock()
        if updated_at <= existing.updated_at:
            updated_at = existing.updated_at + timedelta(microseconds=1)

        self._report(progress, SaveProgress.RECORD_WRITE)
        project = self.store.update_project(
            project_id, form.to_fields(image_url), updated_at=updated_at
        )
        self._report(progress, SaveProgress.COMPLETE)
        logger.info("Updated project %s", project_id)
        return SaveResult(project=project, created=False, progress=progress)

    def save(
        self,
        project_id: Optional[str],
        form: ProjectForm,
        image: Optional[ImageUpload] = None,
    ) -> SaveResult:
        """Create when no id is given, otherwise update."""
        if project_id:
            return self.update(project_id, form, image)
        return self.create(form, image)

    def delete(self, project_id: str, *, confirmed: bool) -> bool:
        """
        Delete a project and, best-effort, its stored image.

        Returns False without side effects when the deletion was not
        confirmed.
        """
        if not confirmed:
            return False
        existing = self.store.get_project(project_id)
        if existing is None:
            raise RecordNotFoundError(project_id)
        if existing.image_url:
            self._remove_image(existing.image_url)
        self.store.delete_project(project_id)
        logger.info("Deleted project %s", project_id)
        return True
