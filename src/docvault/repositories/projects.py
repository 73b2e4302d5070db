"""Project repository.

Projects hang off a server profile and own a message thread. Deleting a
project drops its thread in the same write.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from docvault.core.errors import ConstraintViolationError
from docvault.core.logging import get_logger
from docvault.core.timestamps import now_ms
from docvault.models.document import MAX_PROJECTS, Document
from docvault.models.entities import Project, ProjectStatus
from docvault.repositories.base import DocumentRepository
from docvault.validation.business import validate_project_transition

logger = get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "Unknown error"


class ProjectRepository(DocumentRepository):
    """CRUD and status management for :class:`Project`."""

    entity_type = "Project"

    async def list(self) -> list[Project]:
        """Most recently active first."""
        doc = await self.snapshot()
        return sorted(doc.projects, key=lambda p: p.activity_at, reverse=True)

    async def get(self, project_id: str) -> Project | None:
        return (await self.snapshot()).find_project(project_id)

    async def require(self, project_id: str) -> Project:
        project = await self.get(project_id)
        if project is None:
            raise self.not_found(project_id)
        return project

    async def for_server(self, profile_id: str) -> list[Project]:
        return (await self.snapshot()).projects_for_server(profile_id)

    async def recent(self, limit: int = 10) -> list[Project]:
        return (await self.list())[:limit]

    async def add(self, project: Project) -> Project:
        self._check(project, "add")

        def change(doc: Document) -> Document:
            self.require_new_id(project.id, (p.id for p in doc.projects))
            self.require_unique_name(project.name, ((p.id, p.name) for p in doc.projects))
            self._require_server(doc, project)
            self.require_capacity(len(doc.projects), MAX_PROJECTS, "projects")
            return doc.model_copy(update={"projects": [*doc.projects, project]})

        await self.mutate(change)
        logger.info("project_added", project_id=project.id, name=project.name)
        return project

    async def update(self, project: Project) -> Project:
        self._check(project, "update")

        def change(doc: Document) -> Document:
            before = doc.find_project(project.id)
            if before is None:
                raise self.not_found(project.id)
            self.require_valid(self.validator.business.validate_project_update(before, project), "update")
            self.require_unique_name(
                project.name, ((p.id, p.name) for p in doc.projects), exclude_id=project.id
            )
            self._require_server(doc, project)
            return self._replace(doc, project)

        await self.mutate(change)
        logger.info("project_updated", project_id=project.id)
        return project

    async def set_status(
        self,
        project_id: str,
        status: ProjectStatus,
        *,
        error: str | None = None,
        session_id: str | None = None,
        at: int | None = None,
    ) -> Project:
        """
        Move along the project transition table.

        ERROR records ``error`` (a generic message if none is given), every
        other status clears it. ACTIVE stamps ``last_active_at``; INACTIVE
        drops the session id.
        """
        updated: list[Project] = []

        def change(doc: Document) -> Document:
            current = doc.find_project(project_id)
            if current is None:
                raise self.not_found(project_id)
            self.require_valid(validate_project_transition(current.status, status), "update")

            fields: dict = {
                "status": status,
                "last_error": (error or DEFAULT_ERROR_MESSAGE) if status is ProjectStatus.ERROR else None,
            }
            if session_id is not None:
                fields["session_id"] = session_id
            if status is ProjectStatus.ACTIVE:
                fields["last_active_at"] = at if at is not None else now_ms()
            elif status is ProjectStatus.INACTIVE:
                fields["session_id"] = None
            updated.append(current.model_copy(update=fields))
            return self._replace(doc, updated[0])

        await self.mutate(change)
        logger.info("project_status_changed", project_id=project_id, status=status.value)
        return updated[0]

    async def delete(self, project_id: str) -> None:
        def change(doc: Document) -> Document:
            if doc.find_project(project_id) is None:
                raise self.not_found(project_id)
            projects = [p for p in doc.projects if p.id != project_id]
            messages = {k: v for k, v in doc.messages.items() if k != project_id}
            return doc.model_copy(update={"projects": projects, "messages": messages})

        await self.mutate(change)
        logger.info("project_deleted", project_id=project_id)

    async def search(self, query: str) -> list[Project]:
        if not query.strip():
            return []
        return [p for p in await self.list() if p.matches(query)]

    def observe(self) -> AsyncIterator[list[Project]]:
        return self.observe_selection(lambda doc: list(doc.projects))

    def observe_project(self, project_id: str) -> AsyncIterator[Project | None]:
        return self.observe_selection(lambda doc: doc.find_project(project_id))

    # ── Internals ─────────────────────────────────────────────────────────

    def _check(self, project: Project, action: str) -> None:
        self.require_valid(
            self.validator.projects.validate(project)
            & self.validator.business.validate_project(project),
            action,
        )

    def _require_server(self, doc: Document, project: Project) -> None:
        if doc.find_server_profile(project.server_profile_id) is None:
            raise ConstraintViolationError(
                f"Server profile '{project.server_profile_id}' not found"
            ).with_context(entity_type=self.entity_type, entity_id=project.id)

    @staticmethod
    def _replace(doc: Document, project: Project) -> Document:
        projects = [project if p.id == project.id else p for p in doc.projects]
        return doc.model_copy(update={"projects": projects})


__all__ = ["ProjectRepository"]
