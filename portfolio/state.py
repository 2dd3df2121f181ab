"""
View state for the admin dashboard and its project editor modal.

Both views are plain frozen dataclasses advanced by pure reducer functions,
so the editor lifecycle (closed, open for create or edit, saving) can be
exercised without a browser.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from portfolio.db import ProjectRecord
from portfolio.forms import ProjectForm


class EditorMode(str, Enum):
    CLOSED = "closed"
    CREATE = "create"
    EDIT = "edit"


@dataclass(frozen=True)
class EditorState:
    mode: EditorMode = EditorMode.CLOSED
    saving: bool = False
    project_id: Optional[str] = None
    form: ProjectForm = field(default_factory=ProjectForm)
    preview: str = ""
    errors: dict = field(default_factory=dict)
    notice: Optional[str] = None
    progress: int = 0

    @property
    def is_open(self) -> bool:
        return self.mode is not EditorMode.CLOSED


# Editor events


@dataclass(frozen=True)
class OpenCreate:
    pass


@dataclass(frozen=True)
class OpenEdit:
    project: ProjectRecord


@dataclass(frozen=True)
class FormChanged:
    form: ProjectForm


@dataclass(frozen=True)
class PreviewLoaded:
    data_url: str


@dataclass(frozen=True)
class PreviewFailed:
    message: str


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class ProgressChanged:
    percent: int


@dataclass(frozen=True)
class ValidationFailed:
    errors: dict


@dataclass(frozen=True)
class SaveSucceeded:
    project: ProjectRecord


@dataclass(frozen=True)
class SaveFailed:
    message: str


@dataclass(frozen=True)
class Cancel:
    pass


EditorEvent = Union[
    OpenCreate,
    OpenEdit,
    FormChanged,
    PreviewLoaded,
    PreviewFailed,
    Submit,
    ProgressChanged,
    ValidationFailed,
    SaveSucceeded,
    SaveFailed,
    Cancel,
]


def reduce_editor(state: EditorState, event: EditorEvent) -> EditorState:
    if isinstance(event, OpenCreate):
        if state.is_open:
            return state
        return EditorState(mode=EditorMode.CREATE)

    if isinstance(event, OpenEdit):
        if state.is_open:
            return state
        return EditorState(
            mode=EditorMode.EDIT,
            project_id=event.project.id,
            form=ProjectForm.from_project(event.project),
            preview=event.project.image_url,
        )

    if not state.is_open:
        return state

    if isinstance(event, Cancel):
        # No mid-operation cancellation.
        if state.saving:
            return state
        return EditorState()

    if isinstance(event, FormChanged):
        if state.saving:
            return state
        return replace(state, form=event.form)

    if isinstance(event, PreviewLoaded):
        errors = {k: v for k, v in state.errors.items() if k != "image"}
        return replace(state, preview=event.data_url, errors=errors)

    if isinstance(event, PreviewFailed):
        return replace(state, errors={**state.errors, "image": event.message})

    if isinstance(event, Submit):
        if state.saving:
            return state
        return replace(state, saving=True, errors={}, notice=None, progress=0)

    if isinstance(event, ProgressChanged):
        if not state.saving:
            return state
        return replace(state, progress=event.percent)

    if isinstance(event, ValidationFailed):
        return replace(state, saving=False, errors=dict(event.errors), progress=0)

    if isinstance(event, SaveSucceeded):
        if not state.saving:
            return state
        return EditorState()

    if isinstance(event, SaveFailed):
        if not state.saving:
            return state
        return replace(state, saving=False, notice=event.message, progress=0)

    raise TypeError(f"Unhandled editor event: {event!r}")


@dataclass(frozen=True)
class DashboardState:
    projects: tuple = ()
    loading: bool = True
    editor: EditorState = field(default_factory=EditorState)
    pending_delete: Optional[str] = None
    notice: Optional[str] = None


# Dashboard events


@dataclass(frozen=True)
class ProjectsLoaded:
    projects: tuple


@dataclass(frozen=True)
class ProjectRemoved:
    project_id: str


@dataclass(frozen=True)
class DeleteRequested:
    project_id: str


@dataclass(frozen=True)
class DeleteCancelled:
    pass


@dataclass(frozen=True)
class DeleteFailed:
    message: str


DashboardEvent = Union[
    ProjectsLoaded, ProjectRemoved, DeleteRequested, DeleteCancelled, DeleteFailed
]


def reduce_dashboard(
    state: DashboardState, event: Union[DashboardEvent, EditorEvent]
) -> DashboardState:
    if isinstance(event, ProjectsLoaded):
        return replace(state, projects=tuple(event.projects), loading=False)

    if isinstance(event, ProjectRemoved):
        remaining = tuple(p for p in state.projects if p.id != event.project_id)
        pending = None if state.pending_delete == event.project_id else state.pending_delete
        return replace(state, projects=remaining, pending_delete=pending)

    if isinstance(event, DeleteRequested):
        if not any(p.id == event.project_id for p in state.projects):
            return state
        return replace(state, pending_delete=event.project_id, notice=None)

    if isinstance(event, DeleteCancelled):
        return replace(state, pending_delete=None)

    if isinstance(event, DeleteFailed):
        return replace(state, pending_delete=None, notice=event.message)

    editor = reduce_editor(state.editor, event)
    if isinstance(event, SaveSucceeded) and state.editor.saving:
        # The list is stale after a save; the caller reloads it.
        return replace(state, editor=editor, loading=True)
    return replace(state, editor=editor)
