"""
Record store abstraction for the ``projects`` table and an in-memory test
implementation.
"""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStoreError(Exception):
    """Raised when the record store fails a read or write."""


class RecordNotFoundError(RecordStoreError):
    """Raised when a project id does not exist."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


@dataclass
class ProjectFields:
    """Writable columns of a project row."""

    title: str
    description: str = ""
    technologies: list[str] = field(default_factory=list)
    image_url: str = ""
    demo_url: str = ""
    github_url: str = ""
    featured: bool = False


@dataclass
class ProjectRecord:
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

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "technologies": list(self.technologies),
            "image_url": self.image_url,
            "demo_url": self.demo_url,
            "github_url": self.github_url,
            "featured": self.featured,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ProjectStore(Protocol):
    """Interface for project table access."""

    def list_projects(self) -> list[ProjectRecord]:
        ...

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        ...

    def insert_project(self, fields: ProjectFields) -> ProjectRecord:
        ...

    def update_project(
        self, project_id: str, fields: ProjectFields, *, updated_at: datetime
    ) -> ProjectRecord:
        ...

    def delete_project(self, project_id: str) -> None:
        ...


class InMemoryProjectStore:
    """Simple in-memory project table for development and tests."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.projects: Dict[str, ProjectRecord] = {}
        self._order: Dict[str, int] = {}
        self._seq = itertools.count()

    def list_projects(self) -> list[ProjectRecord]:
        return sorted(
            self.projects.values(),
            key=lambda p: (p.created_at, self._order[p.id]),
            reverse=True,
        )

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        return self.projects.get(project_id)

    def insert_project(self, fields: ProjectFields) -> ProjectRecord:
        now = self.clock()
        record = ProjectRecord(
            id=uuid.uuid4().hex,
            title=fields.title,
            description=fields.description,
            technologies=list(fields.technologies),
            image_url=fields.image_url,
            demo_url=fields.demo_url,
            github_url=fields.github_url,
            featured=fields.featured,
            created_at=now,
            updated_at=now,
        )
        self.projects[record.id] = record
        self._order[record.id] = next(self._seq)
        return record

    def update_project(
        self, project_id: str, fields: ProjectFields, *, updated_at: datetime
    ) -> ProjectRecord:
        existing = self.projects.get(project_id)
        if not existing:
            raise RecordNotFoundError(project_id)
        updated = replace(
            existing,
            title=fields.title,
            description=fields.description,
            technologies=list(fields.technologies),
            image_url=fields.image_url,
            demo_url=fields.demo_url,
            github_url=fields.github_url,
            featured=fields.featured,
            updated_at=updated_at,
        )
        self.projects[project_id] = updated
        return updated

    def delete_project(self, project_id: str) -> None:
        self.projects.pop(project_id, None)
        self._order.pop(project_id, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.projects.clear()
        self._order.clear()


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PostgresProjectStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., the
    Supabase Postgres connection string, or SQLite for tests).
    """

    def __init__(self, database_url: str, clock: Callable[[], datetime] = utcnow):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresProjectStore")
        self.clock = clock
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "ProjectRow") -> ProjectRecord:
        return ProjectRecord(
            id=row.id,
            title=row.title,
            description=row.description or "",
            technologies=list(row.technologies or []),
            image_url=row.image_url or "",
            demo_url=row.demo_url or "",
            github_url=row.github_url or "",
            featured=bool(row.featured),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def list_projects(self) -> list[ProjectRecord]:
        try:
            with self.Session() as session:
                stmt = select(ProjectRow).order_by(ProjectRow.created_at.desc())
                rows = session.execute(stmt).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Listing projects failed: {exc}") from exc

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        try:
            with self.Session() as session:
                row = session.get(ProjectRow, project_id)
                return self._to_record(row) if row else None
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Loading project failed: {exc}") from exc

    def insert_project(self, fields: ProjectFields) -> ProjectRecord:
        now = self.clock()
        try:
            with self.Session() as session:
                row = ProjectRow(
                    id=uuid.uuid4().hex,
                    title=fields.title,
                    description=fields.description,
                    technologies=list(fields.technologies),
                    image_url=fields.image_url,
                    demo_url=fields.demo_url,
                    github_url=fields.github_url,
                    featured=fields.featured,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Inserting project failed: {exc}") from exc

    def update_project(
        self, project_id: str, fields: ProjectFields, *, updated_at: datetime
    ) -> ProjectRecord:
        try:
            with self.Session() as session:
                row = session.get(ProjectRow, project_id)
                if not row:
                    raise RecordNotFoundError(project_id)
                row.title = fields.title
                row.description = fields.description
                row.technologies = list(fields.technologies)
                row.image_url = fields.image_url
                row.demo_url = fields.demo_url
                row.github_url = fields.github_url
                row.featured = fields.featured
                row.updated_at = updated_at
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Updating project failed: {exc}") from exc

    def delete_project(self, project_id: str) -> None:
        try:
            with self.Session() as session:
                session.execute(delete(ProjectRow).where(ProjectRow.id == project_id))
                session.commit()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Deleting project failed: {exc}") from exc


Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    technologies = Column(JSON, nullable=False, default=list)
    image_url = Column(Text, nullable=True)
    demo_url = Column(Text, nullable=True)
    github_url = Column(Text, nullable=True)
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
