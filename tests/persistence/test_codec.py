"""Tests for the JSON document codec."""

import json

from docvault.core.errors import CorruptedDataError
from docvault.models import Document
from docvault.persistence import DocumentCodec


class TestEncode:
    def test_camel_case_keys(self, populated_doc):
        data = json.loads(DocumentCodec().encode(populated_doc))
        assert "serverProfiles" in data
        assert "lastModified" in data
        assert data["serverProfiles"][0]["sshIdentityId"] == populated_doc.identities[0].id

    def test_unknown_top_level_keys_survive(self):
        doc = Document.model_validate({"version": 2, "preferences": {"theme": "dark"}})
        data = json.loads(DocumentCodec().encode(doc))
        assert data["preferences"] == {"theme": "dark"}

    def test_compact_output(self):
        assert b"\n" not in DocumentCodec(indent=None).encode(Document())


class TestDecode:
    def test_decodes_what_it_encodes(self, populated_doc):
        codec = DocumentCodec()
        decoded = codec.decode(codec.encode(populated_doc)).unwrap()
        assert decoded == populated_doc

    def test_missing_fields_take_defaults(self):
        doc = DocumentCodec().decode(b'{"version": 1}').unwrap()
        assert doc.identities == []
        assert doc.messages == {}

    def test_unknown_entity_fields_ignored(self, populated_doc):
        data = json.loads(DocumentCodec().encode(populated_doc))
        data["identities"][0]["legacyFlag"] = True
        doc = DocumentCodec().decode(json.dumps(data)).unwrap()
        assert doc.identities[0].name == "Dev"

    def test_malformed_json(self):
        result = DocumentCodec().decode(b"{not json")
        assert result.is_err()
        assert isinstance(result.error, CorruptedDataError)
        assert result.error.message.startswith("Failed to decode document")

    def test_wrong_shape(self):
        result = DocumentCodec().decode(b'{"identities": "nope"}')
        assert result.is_err()
        assert "identities" in result.error.message

    def test_bad_utf8(self):
        assert DocumentCodec().decode(b"\xff\xfe\x00").is_err()
