"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from portfolio.auth import IdentityProvider, InMemoryIdentityProvider, SupabaseAuthClient
from portfolio.config import get_settings
from portfolio.db import InMemoryProjectStore, PostgresProjectStore, ProjectStore
from portfolio.editor import ProjectEditor
from portfolio.storage import InMemoryObjectStore, ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)

_project_store: ProjectStore | None = None
_object_store: ObjectStore | None = None
_identity_provider: IdentityProvider | None = None


def get_project_store() -> ProjectStore:
    """
    Return a singleton record store so state persists across requests.
    """
    global _project_store
    if _project_store:
        return _project_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _project_store = InMemoryProjectStore()
    else:
        _project_store = PostgresProjectStore(settings.database_url)
    return _project_store


def get_object_store() -> ObjectStore:
    global _object_store
    if _object_store:
        return _object_store

    settings = get_settings()
    endpoint = settings.resolved_storage_endpoint
    public_base_url = settings.resolved_public_base_url
    if (
        settings.use_in_memory_backends
        or not endpoint
        or not public_base_url
        or not settings.aws_access_key_id
    ):
        _object_store = InMemoryObjectStore(url_marker=settings.storage_url_marker)
    else:
        _object_store = S3ObjectStore(
            bucket=settings.storage_bucket,
            endpoint=endpoint,
            public_base_url=public_base_url,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            region=settings.storage_region or "",
            url_marker=settings.storage_url_marker,
        )
    return _object_store


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider:
        return _identity_provider

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
    ):
        _identity_provider = InMemoryIdentityProvider()
    else:
        _identity_provider = SupabaseAuthClient(
            base_url=settings.supabase_url,
            api_key=settings.supabase_anon_key,
            service_role_key=settings.supabase_service_role_key,
        )
    return _identity_provider


def _log_progress(percent: int) -> None:
    logger.debug("Save progress %d%%", percent)


def get_project_editor() -> ProjectEditor:
    settings = get_settings()
    return ProjectEditor(
        get_project_store(),
        get_object_store(),
        cache_control=settings.storage_cache_control,
        max_image_bytes=settings.max_image_bytes,
        on_progress=_log_progress,
    )
