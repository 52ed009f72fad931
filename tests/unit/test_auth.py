"""
Unit tests for API key checks and signed storage tokens.
"""

from datetime import timedelta

import pytest

from printbroker.api.auth import validate_api_key
from printbroker.storage import InvalidStorageToken, StorageUrlSigner


class TestApiKey:
    """Tests for API key validation."""

    def test_validate_api_key_matches(self):
        assert validate_api_key("secret", "secret") is True

    def test_validate_api_key_wrong(self):
        assert validate_api_key("wrong", "secret") is False

    def test_validate_api_key_missing(self):
        assert validate_api_key(None, "secret") is False
        assert validate_api_key("", "secret") is False

    def test_validate_api_key_unconfigured_allows_all(self):
        """Without a configured key every request is allowed."""
        assert validate_api_key(None, None) is True
        assert validate_api_key("anything", "") is True


class TestStorageUrlSigner:
    """Tests for signed download URLs."""

    @pytest.fixture
    def signer(self) -> StorageUrlSigner:
        return StorageUrlSigner(
            base_url="http://broker.local/",
            signing_key="test-key",
            ttl_seconds=60,
        )

    def test_get_url(self, signer: StorageUrlSigner):
        storage_id = "a" * 32
        url = signer.get_url(storage_id)

        assert url.startswith(f"http://broker.local/storage/{storage_id}?token=")

    def test_verify_valid_token(self, signer: StorageUrlSigner):
        token = signer.create_token("a" * 32)

        signer.verify_token("a" * 32, token)

    def test_token_bound_to_storage_id(self, signer: StorageUrlSigner):
        token = signer.create_token("a" * 32)

        with pytest.raises(InvalidStorageToken):
            signer.verify_token("b" * 32, token)

    def test_expired_token(self, signer: StorageUrlSigner):
        token = signer.create_token("a" * 32, expires_delta=timedelta(hours=-1))

        with pytest.raises(InvalidStorageToken):
            signer.verify_token("a" * 32, token)

    def test_token_from_other_key(self, signer: StorageUrlSigner):
        other = StorageUrlSigner(base_url="http://x", signing_key="other-key")
        token = other.create_token("a" * 32)

        with pytest.raises(InvalidStorageToken):
            signer.verify_token("a" * 32, token)

    def test_garbage_token(self, signer: StorageUrlSigner):
        with pytest.raises(InvalidStorageToken):
            signer.verify_token("a" * 32, "not-a-token")
