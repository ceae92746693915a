"""Tests for hash_sender() - deterministic HMAC hashing of webhook senders."""

import re

import pytest

from swadeshi.infra.hashing import hash_sender

TEST_SENDER = "910000000001"


@pytest.fixture
def mock_hash_secret(monkeypatch):
    monkeypatch.setenv("CONTACT_HASH_SECRET", "test_secret_key_for_hmac_testing")


class TestHashSender:
    def test_hash_length_is_32(self, mock_hash_secret):
        assert len(hash_sender(TEST_SENDER)) == 32

    def test_hash_is_base64url(self, mock_hash_secret):
        result = hash_sender(TEST_SENDER, "PNID")
        assert re.fullmatch(r"[A-Za-z0-9_-]{32}", result)

    def test_deterministic(self, mock_hash_secret):
        assert hash_sender(TEST_SENDER, "PNID") == hash_sender(TEST_SENDER, "PNID")

    def test_scoped_by_business_number(self, mock_hash_secret):
        assert hash_sender(TEST_SENDER, "PNID-1") != hash_sender(TEST_SENDER, "PNID-2")

    def test_depends_on_secret(self, monkeypatch):
        monkeypatch.setenv("CONTACT_HASH_SECRET", "one")
        first = hash_sender(TEST_SENDER)
        monkeypatch.setenv("CONTACT_HASH_SECRET", "two")
        assert hash_sender(TEST_SENDER) != first

    def test_missing_secret(self, monkeypatch):
        monkeypatch.delenv("CONTACT_HASH_SECRET", raising=False)
        with pytest.raises(RuntimeError, match="CONTACT_HASH_SECRET"):
            hash_sender(TEST_SENDER)
