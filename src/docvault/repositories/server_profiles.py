"""Server profile repository."""

from __future__ import annotations

from collections.abc import AsyncIterator

from docvault.core.errors import ConstraintViolationError
from docvault.core.logging import get_logger
from docvault.core.timestamps import now_ms
from docvault.models.document import MAX_SERVER_PROFILES, Document
from docvault.models.entities import ConnectionStatus, ServerProfile
from docvault.repositories.base import DocumentRepository
from docvault.validation.business import validate_connection_transition

logger = get_logger(__name__)


class ServerProfileRepository(DocumentRepository):
    """CRUD for :class:`ServerProfile`.

    A profile must reference an existing SSH identity, and cannot be deleted
    while projects still point at it.
    """

    entity_type = "Server profile"

    async def list(self) -> list[ServerProfile]:
        doc = await self.snapshot()
        return sorted(doc.server_profiles, key=lambda p: p.name.lower())

    async def get(self, profile_id: str) -> ServerProfile | None:
        return (await self.snapshot()).find_server_profile(profile_id)

    async def require(self, profile_id: str) -> ServerProfile:
        profile = await self.get(profile_id)
        if profile is None:
            raise self.not_found(profile_id)
        return profile

    async def for_identity(self, identity_id: str) -> list[ServerProfile]:
        return (await self.snapshot()).profiles_for_identity(identity_id)

    async def add(self, profile: ServerProfile) -> ServerProfile:
        self._check(profile, "add")

        def change(doc: Document) -> Document:
            self.require_new_id(profile.id, (p.id for p in doc.server_profiles))
            self.require_unique_name(profile.name, ((p.id, p.name) for p in doc.server_profiles))
            self._require_identity(doc, profile)
            self.require_capacity(len(doc.server_profiles), MAX_SERVER_PROFILES, "server profiles")
            return doc.model_copy(update={"server_profiles": [*doc.server_profiles, profile]})

        await self.mutate(change)
        logger.info("server_profile_added", profile_id=profile.id, host=profile.host_key)
        return profile

    async def update(self, profile: ServerProfile) -> ServerProfile:
        self._check(profile, "update")

        def change(doc: Document) -> Document:
            before = doc.find_server_profile(profile.id)
            if before is None:
                raise self.not_found(profile.id)
            self.require_valid(
                self.validator.business.validate_server_profile_update(before, profile), "update"
            )
            self.require_unique_name(
                profile.name, ((p.id, p.name) for p in doc.server_profiles), exclude_id=profile.id
            )
            self._require_identity(doc, profile)
            return self._replace(doc, profile)

        await self.mutate(change)
        logger.info("server_profile_updated", profile_id=profile.id)
        return profile

    async def set_status(
        self, profile_id: str, status: ConnectionStatus, at: int | None = None
    ) -> ServerProfile:
        """Move along the connection transition table.

        Reaching CONNECTED stamps ``last_connected_at``.
        """
        updated: list[ServerProfile] = []

        def change(doc: Document) -> Document:
            current = doc.find_server_profile(profile_id)
            if current is None:
                raise self.not_found(profile_id)
            self.require_valid(validate_connection_transition(current.status, status), "update")
            fields: dict = {"status": status}
            if status is ConnectionStatus.CONNECTED:
                fields["last_connected_at"] = at if at is not None else now_ms()
            updated.append(current.model_copy(update=fields))
            return self._replace(doc, updated[0])

        await self.mutate(change)
        logger.info("server_profile_status_changed", profile_id=profile_id, status=status.value)
        return updated[0]

    async def delete(self, profile_id: str) -> None:
        def change(doc: Document) -> Document:
            if doc.find_server_profile(profile_id) is None:
                raise self.not_found(profile_id)
            projects = doc.projects_for_server(profile_id)
            if projects:
                raise ConstraintViolationError(
                    f"Cannot delete server profile: it is used by {len(projects)} project(s): "
                    + ", ".join(p.name for p in projects)
                ).with_context(entity_type=self.entity_type, entity_id=profile_id)
            profiles = [p for p in doc.server_profiles if p.id != profile_id]
            return doc.model_copy(update={"server_profiles": profiles})

        await self.mutate(change)
        logger.info("server_profile_deleted", profile_id=profile_id)

    async def search(self, query: str) -> list[ServerProfile]:
        if not query.strip():
            return []
        return [p for p in await self.list() if p.matches(query)]

    def observe(self) -> AsyncIterator[list[ServerProfile]]:
        return self.observe_selection(lambda doc: list(doc.server_profiles))

    # ── Internals ─────────────────────────────────────────────────────────

    def _check(self, profile: ServerProfile, action: str) -> None:
        self.require_valid(
            self.validator.server_profiles.validate(profile)
            & self.validator.business.validate_server_profile(profile),
            action,
        )

    def _require_identity(self, doc: Document, profile: ServerProfile) -> None:
        if doc.find_identity(profile.ssh_identity_id) is None:
            raise ConstraintViolationError(
                f"SSH identity '{profile.ssh_identity_id}' not found"
            ).with_context(entity_type=self.entity_type, entity_id=profile.id)

    @staticmethod
    def _replace(doc: Document, profile: ServerProfile) -> Document:
        profiles = [profile if p.id == profile.id else p for p in doc.server_profiles]
        return doc.model_copy(update={"server_profiles": profiles})


__all__ = ["ServerProfileRepository"]
