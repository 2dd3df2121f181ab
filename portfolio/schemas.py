"""
Pydantic schemas for the portfolio API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    technologies: list[str]
    image_url: str
    demo_url: str
    github_url: str
    featured: bool
    created_at: datetime
    updated_at: datetime


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]
    filter: Literal["all", "featured"]


class SaveProjectResponse(BaseModel):
    project: ProjectResponse
    progress: list[int]


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    authenticated: bool
    email: Optional[str] = None
    is_admin: bool = False


class ValidationErrorResponse(BaseModel):
    detail: str
    errors: dict[str, str]


class PreviewResponse(BaseModel):
    data_url: str
