"""SSH identity repository."""

from __future__ import annotations

from collections.abc import AsyncIterator

from docvault.core.errors import ConstraintViolationError
from docvault.core.logging import get_logger
from docvault.core.timestamps import now_ms
from docvault.models.document import MAX_IDENTITIES, Document
from docvault.models.entities import Identity
from docvault.repositories.base import DocumentRepository

logger = get_logger(__name__)


class IdentityRepository(DocumentRepository):
    """CRUD for :class:`Identity`. Deleting an identity in use is refused."""

    entity_type = "SSH identity"

    async def list(self) -> list[Identity]:
        doc = await self.snapshot()
        return sorted(doc.identities, key=lambda i: i.name.lower())

    async def get(self, identity_id: str) -> Identity | None:
        return (await self.snapshot()).find_identity(identity_id)

    async def require(self, identity_id: str) -> Identity:
        identity = await self.get(identity_id)
        if identity is None:
            raise self.not_found(identity_id)
        return identity

    async def add(self, identity: Identity) -> Identity:
        """
        Raises:
            ValidationFailure: Field or business rules failed.
            DuplicateNameError: Name or id already taken.
            ConstraintViolationError: The identity ceiling is reached.
        """
        self._check(identity, "add")

        def change(doc: Document) -> Document:
            self.require_new_id(identity.id, (i.id for i in doc.identities))
            self.require_unique_name(identity.name, ((i.id, i.name) for i in doc.identities))
            self.require_capacity(len(doc.identities), MAX_IDENTITIES, "SSH identities")
            return doc.model_copy(update={"identities": [*doc.identities, identity]})

        await self.mutate(change)
        logger.info("identity_added", identity_id=identity.id, name=identity.name)
        return identity

    async def update(self, identity: Identity) -> Identity:
        self._check(identity, "update")

        def change(doc: Document) -> Document:
            if doc.find_identity(identity.id) is None:
                raise self.not_found(identity.id)
            self.require_unique_name(
                identity.name, ((i.id, i.name) for i in doc.identities), exclude_id=identity.id
            )
            identities = [identity if i.id == identity.id else i for i in doc.identities]
            return doc.model_copy(update={"identities": identities})

        await self.mutate(change)
        logger.info("identity_updated", identity_id=identity.id)
        return identity

    async def delete(self, identity_id: str) -> None:
        """
        Raises:
            EntityNotFoundError: No such identity.
            ConstraintViolationError: A server profile still uses it.
        """

        def change(doc: Document) -> Document:
            if doc.find_identity(identity_id) is None:
                raise self.not_found(identity_id)
            users = doc.profiles_for_identity(identity_id)
            if users:
                raise ConstraintViolationError(
                    f"Cannot delete SSH identity: it is used by {len(users)} server profile(s): "
                    + ", ".join(p.name for p in users)
                ).with_context(entity_type=self.entity_type, entity_id=identity_id)
            identities = [i for i in doc.identities if i.id != identity_id]
            return doc.model_copy(update={"identities": identities})

        await self.mutate(change)
        logger.info("identity_deleted", identity_id=identity_id)

    async def mark_used(self, identity_id: str, at: int | None = None) -> Identity:
        used_at = at if at is not None else now_ms()
        updated: list[Identity] = []

        def change(doc: Document) -> Document:
            current = doc.find_identity(identity_id)
            if current is None:
                raise self.not_found(identity_id)
            updated.append(current.mark_used(used_at))
            identities = [updated[0] if i.id == identity_id else i for i in doc.identities]
            return doc.model_copy(update={"identities": identities})

        await self.mutate(change)
        return updated[0]

    async def search(self, query: str) -> list[Identity]:
        if not query.strip():
            return []
        return [i for i in await self.list() if i.matches(query)]

    def observe(self) -> AsyncIterator[list[Identity]]:
        return self.observe_selection(lambda doc: list(doc.identities))

    def _check(self, identity: Identity, action: str) -> None:
        self.require_valid(
            self.validator.identities.validate(identity)
            & self.validator.business.validate_identity(identity),
            action,
        )


__all__ = ["IdentityRepository"]
