"""Tests for log redaction of public-link tokens."""

import logging

from cloudvault.core.logging_config import _SecretFilter, redact

TOKEN = "0123456789abcdef0123456789abcdef"


class TestRedact:

    def test_public_path_masked(self):
        assert redact(f"GET /api/files/public/{TOKEN} 200") == "GET /api/files/public/***REDACTED*** 200"

    def test_key_value_masked(self):
        assert TOKEN not in redact(f"token={TOKEN}")
        assert TOKEN not in redact(f"public_url: {TOKEN}")

    def test_other_ids_untouched(self):
        text = f"GET /api/files/{TOKEN}/info 200"
        assert redact(text) == text


class TestSecretFilter:

    def test_filter_rewrites_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, f"/public/{TOKEN}", None, None)
        assert _SecretFilter().filter(record) is True
        assert TOKEN not in record.msg
