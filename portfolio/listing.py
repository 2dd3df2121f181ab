"""
Project list loading for the public page and the admin dashboard.
"""

from __future__ import annotations

import logging
from typing import Iterable

from portfolio.db import ProjectRecord, ProjectStore, RecordStoreError

logger = logging.getLogger(__name__)

FILTER_MODES = ("all", "featured")


def load_projects(store: ProjectStore) -> list[ProjectRecord]:
    """
    Fetch every project, newest first.

    A failing record store degrades to an empty list rather than an error.
    """
    try:
        return store.list_projects()
    except RecordStoreError:
        logger.exception("Error fetching projects")
        return []


def filter_projects(
    projects: Iterable[ProjectRecord], mode: str = "all"
) -> list[ProjectRecord]:
    if mode == "all":
        return list(projects)
    if mode == "featured":
        return [project for project in projects if project.featured]
    raise ValueError(f"Unknown filter mode: {mode}")
