"""Unit tests for PII filtering and JSON log formatting."""

import json
import logging

from finsync.core.logging import JSONLogFormatter, filter_pii, setup_logging


class TestPIIFiltering:
    """Test PII redaction in log messages."""

    def test_filter_card_number(self):
        assert filter_pii("Card 4111 1111 1111 1111 declined") == "Card [CARD] declined"

    def test_filter_email(self):
        assert "[EMAIL]" in filter_pii("user jane.doe@example.com synced")
        assert "jane.doe" not in filter_pii("user jane.doe@example.com synced")

    def test_filter_access_token(self):
        text = filter_pii("token access-sandbox-8ab976e6-64bc-4b38-98f7-731e7a349970 rejected")
        assert text == "token [ACCESS_TOKEN] rejected"

    def test_filter_encrypted_envelope(self):
        assert filter_pii("stored enc:v1:aa11:bb22:cc33") == "stored [SECRET]"

    def test_empty_text(self):
        assert filter_pii("") == ""

    def test_plain_text_unchanged(self):
        assert filter_pii("Sync job completed") == "Sync job completed"


class TestJSONLogFormatter:
    """Test structured log output."""

    def _record(self, msg: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord("finsync.test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        data = json.loads(JSONLogFormatter().format(self._record("hello")))
        assert data["level"] == "INFO"
        assert data["logger"] == "finsync.test"
        assert data["message"] == "hello"

    def test_extra_fields_included(self):
        record = self._record("job done", job_id="abc", attempt=2, status="COMPLETED")
        data = json.loads(JSONLogFormatter().format(record))
        assert data["job_id"] == "abc"
        assert data["attempt"] == 2
        assert data["status"] == "COMPLETED"

    def test_message_is_filtered(self):
        data = json.loads(JSONLogFormatter().format(self._record("mail a@b.io")))
        assert data["message"] == "mail [EMAIL]"


class TestSetupLogging:
    def test_idempotent(self):
        setup_logging("INFO")
        setup_logging("DEBUG")
        root = logging.getLogger()
        json_handlers = [h for h in root.handlers if isinstance(h.formatter, JSONLogFormatter)]
        assert len(json_handlers) == 1
        assert root.level == logging.DEBUG
