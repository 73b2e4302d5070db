"""Document ⇄ JSON bytes.

Encoding writes camelCase keys, indented, UTF-8. Decoding tolerates unknown
entity fields, fills defaults for missing ones and never raises: every
failure (bad UTF-8, malformed JSON, wrong shapes) comes back as
``Err(CorruptedDataError)``.

    >>> codec = DocumentCodec()
    >>> codec.decode(codec.encode(Document())).unwrap().version
    1
    >>> codec.decode(b"{not json").is_err()
    True
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from docvault.core.errors import CorruptedDataError, SaveFailedError
from docvault.core.result import Err, Ok, Result
from docvault.models.document import Document


class DocumentCodec:
    """Serializer used for the stored document, imports, exports and backups."""

    def __init__(self, indent: int | None = 2) -> None:
        self.indent = indent

    def encode(self, doc: Document) -> bytes:
        """Serialize; raises SaveFailedError if the model cannot be dumped."""
        try:
            return doc.model_dump_json(by_alias=True, indent=self.indent).encode("utf-8")
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise SaveFailedError("Failed to serialize document", cause=e) from e

    def decode(self, data: bytes | str) -> Result[Document]:
        try:
            return Ok(Document.model_validate_json(data))
        except PydanticValidationError as e:
            return Err(CorruptedDataError(_describe(e), cause=e))
        except (UnicodeDecodeError, ValueError) as e:
            return Err(CorruptedDataError(f"Failed to decode document: {e}", cause=e))


def _describe(error: PydanticValidationError) -> str:
    first = error.errors()[0] if error.error_count() else None
    if first is None:
        return "Failed to decode document"
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    if first["type"] == "json_invalid":
        return f"Failed to decode document: invalid JSON ({first['msg']})"
    return f"Failed to decode document: {location}: {first['msg']}"


__all__ = [
    "DocumentCodec",
]
