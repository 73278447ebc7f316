"""
EggTrack Backend — Settings Tests

What we test:
    ✅ base_url normalization
    ✅ storage backend / log level / link template validation
    ✅ production checks report a missing secret and a missing blob token
    ✅ build_backend picks the configured backend
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from eggtrack.config import Settings, format_base_url
from eggtrack.storage import BlobBackend, LocalBackend, build_backend


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestFormatBaseUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "http://localhost:3000"),
            ("", "http://localhost:3000"),
            ("labels.example.com", "https://labels.example.com"),
            ("http://localhost:8000/", "http://localhost:8000"),
            ("https://labels.example.com", "https://labels.example.com"),
        ],
    )
    def test_normalization(self, raw, expected):
        assert format_base_url(raw) == expected

    def test_applied_to_settings(self):
        assert make_settings(base_url="eggs.example.org").base_url == "https://eggs.example.org"


class TestValidation:
    def test_backend_name_is_normalized(self):
        assert make_settings(storage_backend=" BLOB ").storage_backend == "blob"

    def test_unknown_backend_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_settings(storage_backend="s3")

    def test_bad_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_settings(log_level="LOUD")

    def test_link_template_with_unknown_field_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_settings(default_link_template="https://x.test/{page}")

    def test_production_checks(self):
        with pytest.raises(ValueError) as exc_info:
            make_settings(storage_backend="blob", add_secret="").validate_required_for_production()

        message = str(exc_info.value)
        assert "ADD_SECRET" in message
        assert "BLOB_READ_WRITE_TOKEN" in message

    def test_production_checks_pass(self):
        make_settings(add_secret="x", storage_backend="local").validate_required_for_production()


class TestBuildBackend:
    def test_local(self, tmp_path):
        backend = build_backend(
            make_settings(storage_backend="local", local_storage_path=str(tmp_path / "e.json"))
        )

        assert isinstance(backend, LocalBackend)

    @pytest.mark.asyncio
    async def test_blob(self):
        backend = build_backend(
            make_settings(storage_backend="blob", blob_read_write_token="tok", blob_path="/labels/entries.json")
        )

        assert isinstance(backend, BlobBackend)
        assert backend.path == "labels/entries.json"
        assert backend.prefix == "labels/"
        await backend.aclose()
