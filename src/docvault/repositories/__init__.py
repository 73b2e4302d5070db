"""docvault entity repositories.

Each repository read-modify-writes the single persisted document through
:class:`~docvault.persistence.core.PersistenceCore` and reports failures as
typed errors (``DuplicateNameError``, ``EntityNotFoundError``,
``ConstraintViolationError``, ``ValidationFailure``).
"""

from docvault.repositories.base import DocumentRepository, name_key
from docvault.repositories.identities import IdentityRepository
from docvault.repositories.messages import MessageRepository
from docvault.repositories.projects import ProjectRepository
from docvault.repositories.server_profiles import ServerProfileRepository

__all__ = [
    "DocumentRepository",
    "name_key",
    "IdentityRepository",
    "MessageRepository",
    "ProjectRepository",
    "ServerProfileRepository",
]
