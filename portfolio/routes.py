"""
JSON API routes: public project listing, admin session, project editing.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse

from portfolio.auth import AdminUser, AuthError, IdentityProvider, InvalidCredentialsError
from portfolio.config import get_settings
from portfolio.db import ProjectStore, RecordNotFoundError, RecordStoreError
from portfolio.dependencies import (
    get_identity_provider,
    get_project_editor,
    get_project_store,
)
from portfolio.editor import ProjectEditor
from portfolio.forms import FormValidationError, ProjectForm, read_image_preview, read_upload
from portfolio.guard import (
    SESSION_KEY,
    bearer_token,
    clear_session,
    resolve_session_user,
    store_session,
)
from portfolio.listing import filter_projects, load_projects
from portfolio.schemas import (
    LoginRequest,
    PreviewResponse,
    ProjectListResponse,
    ProjectResponse,
    SaveProjectResponse,
    SessionResponse,
    ValidationErrorResponse,
)
from portfolio.storage import ObjectStoreError

logger = logging.getLogger(__name__)

router = APIRouter()

SAVE_FAILED_MESSAGE = "Failed to save project"
DELETE_FAILED_MESSAGE = "Failed to delete project"


def require_admin(
    request: Request, identity: IdentityProvider = Depends(get_identity_provider)
) -> AdminUser:
    """Resolve the caller from a bearer token or the session cookie."""
    token = bearer_token(request)
    user: Optional[AdminUser]
    if token:
        try:
            user = identity.get_user(token)
        except AuthError:
            logger.warning("Bearer token lookup failed", exc_info=True)
            user = None
    else:
        user = resolve_session_user(request, identity)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return user


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    filter: str = Query("all", pattern="^(all|featured)$"),
    store: ProjectStore = Depends(get_project_store),
):
    projects = filter_projects(load_projects(store), filter)
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in projects],
        filter=filter,
    )


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(project_id: str, store: ProjectStore = Depends(get_project_store)):
    try:
        project = store.get_project(project_id)
    except RecordStoreError:
        logger.exception("Error fetching project %s", project_id)
        raise HTTPException(status_code=502, detail="Failed to load project")
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectResponse.model_validate(project)


@router.post("/auth/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        session = identity.sign_in(payload.email, payload.password)
    except InvalidCredentialsError:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    except AuthError:
        logger.exception("Sign-in failed for %s", payload.email)
        raise HTTPException(status_code=502, detail="Sign-in is unavailable")
    store_session(request, session)
    return SessionResponse(
        authenticated=True, email=session.user.email, is_admin=session.user.is_admin
    )


@router.post("/auth/logout", response_model=SessionResponse)
def logout(request: Request, identity: IdentityProvider = Depends(get_identity_provider)):
    tokens = request.session.get(SESSION_KEY) or {}
    access_token = tokens.get("access_token")
    clear_session(request)
    if access_token:
        try:
            identity.sign_out(access_token)
        except AuthError:
            logger.warning("Remote sign-out failed", exc_info=True)
    return SessionResponse(authenticated=False)


@router.get("/auth/session", response_model=SessionResponse)
def current_session(
    request: Request, identity: IdentityProvider = Depends(get_identity_provider)
):
    user = resolve_session_user(request, identity)
    if user is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, email=user.email, is_admin=user.is_admin)


def _validation_response(exc: FormValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": "Invalid project", "errors": exc.result.errors},
    )


async def _save_project(
    editor: ProjectEditor,
    project_id: Optional[str],
    form: ProjectForm,
    image: Optional[UploadFile],
):
    upload = await read_upload(image)
    try:
        result = editor.save(project_id, form, upload)
    except FormValidationError as exc:
        return _validation_response(exc)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except (RecordStoreError, ObjectStoreError):
        logger.exception("Error saving project %s", project_id or "<new>")
        raise HTTPException(status_code=502, detail=SAVE_FAILED_MESSAGE)
    return SaveProjectResponse(
        project=ProjectResponse.model_validate(result.project),
        progress=result.progress,
    )


@router.post(
    "/admin/projects",
    response_model=SaveProjectResponse,
    status_code=201,
    responses={422: {"model": ValidationErrorResponse}},
)
async def create_project(
    title: str = Form(""),
    description: str = Form(""),
    technologies: str = Form(""),
    demo_url: str = Form(""),
    github_url: str = Form(""),
    featured: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    editor: ProjectEditor = Depends(get_project_editor),
    user: AdminUser = Depends(require_admin),
):
    form = ProjectForm(
        title=title,
        description=description,
        technologies=technologies,
        demo_url=demo_url,
        github_url=github_url,
        featured=featured,
    )
    return await _save_project(editor, None, form, image)


@router.put(
    "/admin/projects/{project_id}",
    response_model=SaveProjectResponse,
    responses={422: {"model": ValidationErrorResponse}},
)
async def update_project(
    project_id: str,
    title: str = Form(""),
    description: str = Form(""),
    technologies: str = Form(""),
    demo_url: str = Form(""),
    github_url: str = Form(""),
    featured: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    editor: ProjectEditor = Depends(get_project_editor),
    user: AdminUser = Depends(require_admin),
):
    form = ProjectForm(
        title=title,
        description=description,
        technologies=technologies,
        demo_url=demo_url,
        github_url=github_url,
        featured=featured,
    )
    return await _save_project(editor, project_id, form, image)


@router.delete("/admin/projects/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    confirm: bool = Query(False),
    editor: ProjectEditor = Depends(get_project_editor),
    user: AdminUser = Depends(require_admin),
):
    try:
        deleted = editor.delete(project_id, confirmed=confirm)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except RecordStoreError:
        logger.exception("Error deleting project %s", project_id)
        raise HTTPException(status_code=502, detail=DELETE_FAILED_MESSAGE)
    if not deleted:
        raise HTTPException(status_code=400, detail="Deletion must be confirmed")
    return Response(status_code=204)


@router.post("/admin/uploads/preview", response_model=PreviewResponse)
async def preview_upload(
    image: Optional[UploadFile] = File(None),
    user: AdminUser = Depends(require_admin),
):
    result = await read_image_preview(image, get_settings().max_image_bytes)
    if not result.ok:
        raise HTTPException(status_code=422, detail=result.error)
    return PreviewResponse(data_url=result.data_url)
