"""
Server-rendered pages: public project listing, admin login and dashboard.

The dashboard is rebuilt on every request by feeding the loaded projects and
the request's intent (open a modal, confirm a deletion, submit the form)
through the dashboard reducer, then rendering the resulting state.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import RedirectResponse

from portfolio.auth import AdminUser, AuthError, IdentityProvider, InvalidCredentialsError
from portfolio.config import get_settings
from portfolio.db import ProjectStore, RecordNotFoundError, RecordStoreError
from portfolio.dependencies import get_identity_provider, get_project_editor, get_project_store
from portfolio.editor import ProjectEditor
from portfolio.forms import FormValidationError, ProjectForm, image_preview, read_upload
from portfolio.guard import (
    DASHBOARD_PATH,
    LOGIN_PATH,
    SESSION_KEY,
    clear_session,
    store_session,
)
from portfolio.listing import FILTER_MODES, filter_projects, load_projects
from portfolio.state import (
    DashboardState,
    DeleteFailed,
    DeleteRequested,
    EditorMode,
    EditorState,
    FormChanged,
    OpenCreate,
    OpenEdit,
    PreviewFailed,
    PreviewLoaded,
    ProjectsLoaded,
    SaveFailed,
    Submit,
    ValidationFailed,
    reduce_dashboard,
)
from portfolio.storage import ObjectStoreError

logger = logging.getLogger(__name__)

router = APIRouter()

SAVE_FAILED_MESSAGE = "Failed to save project"
DELETE_FAILED_MESSAGE = "Failed to delete project"


def add_flash(request: Request, message: str, level: str = "info") -> None:
    flashes = request.session.get("_flashes", [])
    flashes.append({"message": message, "level": level})
    request.session["_flashes"] = flashes


def pop_flashes(request: Request) -> list[dict[str, Any]]:
    flashes = request.session.get("_flashes", [])
    request.session["_flashes"] = []
    return flashes


def _render(request: Request, template_name: str, context: dict, status_code: int = 200):
    context.setdefault("flashes", pop_flashes(request))
    context.setdefault("settings", get_settings())
    return request.app.state.templates.TemplateResponse(
        request, template_name, context, status_code=status_code
    )


def _dashboard_redirect() -> RedirectResponse:
    return RedirectResponse(DASHBOARD_PATH, status_code=303)


def _current_admin(request: Request) -> Optional[AdminUser]:
    user = getattr(request.state, "admin_user", None)
    if user is None or not user.is_admin:
        return None
    return user


def _forbidden(request: Request):
    return _render(
        request,
        "login.html",
        {"error": "This account is not an administrator.", "email": ""},
        status_code=403,
    )


@router.get("/")
def index(
    request: Request,
    filter: str = Query("all"),
    store: ProjectStore = Depends(get_project_store),
):
    mode = filter if filter in FILTER_MODES else "all"
    projects = filter_projects(load_projects(store), mode)
    return _render(request, "index.html", {"projects": projects, "filter": mode})


@router.get("/admin")
def login_page(request: Request):
    return _render(request, "login.html", {"error": None, "email": ""})


@router.post("/admin/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        session = identity.sign_in(email, password)
    except InvalidCredentialsError:
        return _render(
            request,
            "login.html",
            {"error": "Invalid email or password.", "email": email},
            status_code=401,
        )
    except AuthError:
        logger.exception("Sign-in failed for %s", email)
        return _render(
            request,
            "login.html",
            {"error": "Sign-in is unavailable, try again later.", "email": email},
            status_code=502,
        )
    store_session(request, session)
    return _dashboard_redirect()


@router.post("/admin/logout")
def logout(request: Request, identity: IdentityProvider = Depends(get_identity_provider)):
    tokens = request.session.get(SESSION_KEY) or {}
    clear_session(request)
    if tokens.get("access_token"):
        try:
            identity.sign_out(tokens["access_token"])
        except AuthError:
            logger.warning("Remote sign-out failed", exc_info=True)
    return RedirectResponse(LOGIN_PATH, status_code=303)


def _loaded_dashboard(store: ProjectStore) -> DashboardState:
    return reduce_dashboard(DashboardState(), ProjectsLoaded(tuple(load_projects(store))))


def _find(state: DashboardState, project_id: str):
    return next((p for p in state.projects if p.id == project_id), None)


@router.get("/admin/dashboard")
def dashboard(
    request: Request,
    modal: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    confirm_delete: Optional[str] = Query(None),
    store: ProjectStore = Depends(get_project_store),
):
    user = _current_admin(request)
    if user is None:
        return _forbidden(request)

    state = _loaded_dashboard(store)
    if modal == "create":
        state = reduce_dashboard(state, OpenCreate())
    elif modal == "edit" and project_id:
        project = _find(state, project_id)
        if project is not None:
            state = reduce_dashboard(state, OpenEdit(project))
    if confirm_delete:
        state = reduce_dashboard(state, DeleteRequested(confirm_delete))
    return _render(request, "dashboard.html", {"state": state, "user": user})


async def _submit(
    request: Request,
    project_id: Optional[str],
    form: ProjectForm,
    image: Optional[UploadFile],
    editor: ProjectEditor,
    store: ProjectStore,
):
    user = _current_admin(request)
    if user is None:
        return _forbidden(request)

    state = _loaded_dashboard(store)
    if project_id:
        try:
            project = store.get_project(project_id)
        except RecordStoreError:
            logger.exception("Error loading project %s", project_id)
            editor_state = EditorState(
                mode=EditorMode.EDIT,
                project_id=project_id,
                form=form,
                notice=SAVE_FAILED_MESSAGE,
            )
            return _render(
                request,
                "dashboard.html",
                {"state": replace(state, editor=editor_state), "user": user},
                status_code=502,
            )
        if project is None:
            add_flash(request, "Project not found.", "error")
            return _dashboard_redirect()
        state = reduce_dashboard(state, OpenEdit(project))
    else:
        state = reduce_dashboard(state, OpenCreate())
    state = reduce_dashboard(state, FormChanged(form))
    state = reduce_dashboard(state, Submit())

    upload = await read_upload(image)
    if upload is not None:
        preview = image_preview(upload, editor.max_image_bytes)
        if preview.ok:
            state = reduce_dashboard(state, PreviewLoaded(preview.data_url))
        else:
            state = reduce_dashboard(state, PreviewFailed(preview.error))

    try:
        result = editor.save(project_id, form, upload)
    except FormValidationError as exc:
        state = reduce_dashboard(state, ValidationFailed(exc.result.errors))
        return _render(
            request, "dashboard.html", {"state": state, "user": user}, status_code=422
        )
    except RecordNotFoundError:
        add_flash(request, "Project not found.", "error")
        return _dashboard_redirect()
    except (RecordStoreError, ObjectStoreError):
        logger.exception("Error saving project %s", project_id or "<new>")
        state = reduce_dashboard(state, SaveFailed(SAVE_FAILED_MESSAGE))
        return _render(
            request, "dashboard.html", {"state": state, "user": user}, status_code=502
        )

    verb = "created" if result.created else "updated"
    add_flash(request, f"Project \"{result.project.title}\" {verb}.")
    return _dashboard_redirect()


@router.post("/admin/dashboard/projects")
async def create_project(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    technologies: str = Form(""),
    demo_url: str = Form(""),
    github_url: str = Form(""),
    featured: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    editor: ProjectEditor = Depends(get_project_editor),
    store: ProjectStore = Depends(get_project_store),
):
    form = ProjectForm(
        title=title,
        description=description,
        technologies=technologies,
        demo_url=demo_url,
        github_url=github_url,
        featured=featured,
    )
    return await _submit(request, None, form, image, editor, store)


@router.post("/admin/dashboard/projects/{project_id}")
async def update_project(
    request: Request,
    project_id: str,
    title: str = Form(""),
    description: str = Form(""),
    technologies: str = Form(""),
    demo_url: str = Form(""),
    github_url: str = Form(""),
    featured: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    editor: ProjectEditor = Depends(get_project_editor),
    store: ProjectStore = Depends(get_project_store),
):
    form = ProjectForm(
        title=title,
        description=description,
        technologies=technologies,
        demo_url=demo_url,
        github_url=github_url,
        featured=featured,
    )
    return await _submit(request, project_id, form, image, editor, store)


@router.post("/admin/dashboard/projects/{project_id}/delete")
def delete_project(
    request: Request,
    project_id: str,
    confirm: str = Form(""),
    editor: ProjectEditor = Depends(get_project_editor),
    store: ProjectStore = Depends(get_project_store),
):
    """
    Confirm-then-delete. A successful delete redirects to the dashboard, whose
    GET rebuilds the list from the store; the page never holds a list across
    requests to drop the record from, so ``ProjectRemoved`` is not applied here.
    """
    if _current_admin(request) is None:
        return _forbidden(request)

    try:
        deleted = editor.delete(project_id, confirmed=confirm == "yes")
    except RecordNotFoundError:
        add_flash(request, "Project not found.", "error")
        return _dashboard_redirect()
    except RecordStoreError:
        logger.exception("Error deleting project %s", project_id)
        state = reduce_dashboard(_loaded_dashboard(store), DeleteFailed(DELETE_FAILED_MESSAGE))
        return _render(
            request,
            "dashboard.html",
            {"state": state, "user": _current_admin(request)},
            status_code=502,
        )
    if not deleted:
        return RedirectResponse(
            f"{DASHBOARD_PATH}?confirm_delete={project_id}",
            status_code=303,
        )
    add_flash(request, "Project deleted.")
    return _dashboard_redirect()
