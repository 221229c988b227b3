"""
Tests for rgcost/utils.py utility functions.

Covers:
- generate_run_id format and uniqueness
- get_timestamp format
- format_cost display
- is_auth_error detection for azure-core exceptions
- redact_log_message and RedactingFilter
- setup_logging (console and file handlers)
- write_json and write_csv
- ProgressTracker plain-text mode
"""
import json
import logging
import os
import stat
import sys
from datetime import datetime
from decimal import Decimal

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rgcost.utils import (
    ProgressTracker,
    RedactingFilter,
    format_cost,
    generate_run_id,
    get_timestamp,
    is_auth_error,
    redact_log_message,
    setup_logging,
    write_csv,
    write_json,
)

SUB_GUID = "0b1f6471-1bf0-4dda-aec3-cb9272f09590"


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way it was after setup_logging runs."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# =============================================================================
# Run metadata Tests
# =============================================================================

class TestGenerateRunId:
    """Tests for generate_run_id function."""

    def test_run_id_format(self):
        """Test run ID has correct format: YYYYMMDD-HHMMSS-xxxxxxxx"""
        parts = generate_run_id().split('-')

        assert len(parts) == 3
        assert len(parts[0]) == 8 and parts[0].isdigit()
        assert len(parts[1]) == 6 and parts[1].isdigit()
        assert len(parts[2]) == 8

    def test_run_id_uniqueness(self):
        ids = [generate_run_id() for _ in range(100)]
        assert len(set(ids)) == 100


class TestGetTimestamp:
    """Tests for get_timestamp function."""

    def test_timestamp_format(self):
        """Test timestamp is ISO format with Z suffix."""
        ts = get_timestamp()
        assert ts.endswith('Z')
        datetime.fromisoformat(ts.replace('Z', '+00:00'))


class TestFormatCost:
    """Tests for format_cost function."""

    def test_two_decimals(self):
        assert format_cost(Decimal("12.5"), "USD") == "12.50 USD"

    def test_thousands_separator(self):
        assert format_cost(Decimal("1234567.891"), "EUR") == "1,234,567.89 EUR"

    def test_zero(self):
        assert format_cost(Decimal("0")) == "0.00 USD"


# =============================================================================
# Auth Error Tests
# =============================================================================

class TestIsAuthError:
    """Tests for is_auth_error detection."""

    def test_client_authentication_error(self):
        assert is_auth_error(ClientAuthenticationError(message="token expired"))

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_http_auth_status(self, status_code):
        exc = HttpResponseError(message="denied")
        exc.status_code = status_code
        assert is_auth_error(exc)

    def test_http_authorization_message(self):
        exc = HttpResponseError(message="AuthorizationFailed: client does not have authorization")
        assert is_auth_error(exc)

    def test_http_throttled_is_not_auth(self):
        exc = HttpResponseError(message="Too many requests")
        exc.status_code = 429
        assert not is_auth_error(exc)

    def test_other_azure_errors(self):
        assert not is_auth_error(ResourceNotFoundError(message="scope not found"))

    def test_generic_exceptions(self):
        assert not is_auth_error(ValueError("bad value"))
        assert not is_auth_error(RuntimeError("boom"))


# =============================================================================
# Log Redaction Tests
# =============================================================================

class TestRedaction:
    """Tests for GUID redaction in log output."""

    def test_masks_guid(self):
        message = f"Querying /subscriptions/{SUB_GUID}/resourceGroups/rg-web"
        redacted = redact_log_message(message)

        assert SUB_GUID not in redacted
        assert "/subscriptions/0b1f****-****/resourceGroups/rg-web" in redacted

    def test_masks_multiple_guids(self):
        other = "11111111-2222-3333-4444-555555555555"
        redacted = redact_log_message(f"{SUB_GUID} and {other}")
        assert redacted == "0b1f****-**** and 1111****-****"

    def test_no_guid_unchanged(self):
        assert redact_log_message("Found 3 resource groups") == "Found 3 resource groups"

    def test_filter_masks_msg_and_args(self):
        record = logging.LogRecord(
            "rgcost", logging.INFO, __file__, 1,
            "Subscription %s has %d groups", (SUB_GUID, 4), None,
        )

        assert RedactingFilter().filter(record) is True
        assert SUB_GUID not in record.getMessage()
        assert record.getMessage() == "Subscription 0b1f****-**** has 4 groups"


# =============================================================================
# setup_logging Tests
# =============================================================================

class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_default_level(self, restore_root_logger):
        setup_logging()
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1

    def test_case_insensitive(self, restore_root_logger):
        setup_logging("debug")
        assert restore_root_logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging("CHATTY")
        assert restore_root_logger.level == logging.INFO

    def test_file_handler_redacts(self, restore_root_logger, tmp_path):
        setup_logging("INFO", output_dir=str(tmp_path))
        assert len(restore_root_logger.handlers) == 2

        logging.getLogger("rgcost.test").info(f"Using subscription {SUB_GUID}")
        for handler in restore_root_logger.handlers:
            handler.flush()

        log_files = list(tmp_path.glob("rgcost_log_*.log"))
        assert len(log_files) == 1
        content = log_files[0].read_text()
        assert "Using subscription 0b1f****-****" in content
        assert SUB_GUID not in content


# =============================================================================
# File Output Tests
# =============================================================================

class TestWriteJson:
    """Tests for write_json function."""

    def test_write_local_file(self, tmp_path):
        filepath = tmp_path / "out.json"
        data = {"grand_total": Decimal("12.50"), "groups": [{"name": "rg-web"}], "none": None}

        write_json(data, str(filepath))

        loaded = json.loads(filepath.read_text())
        assert loaded == {"grand_total": "12.50", "groups": [{"name": "rg-web"}], "none": None}

    def test_owner_only_permissions(self, tmp_path):
        filepath = tmp_path / "out.json"
        write_json({}, str(filepath))
        assert stat.S_IMODE(filepath.stat().st_mode) & (stat.S_IRWXG | stat.S_IRWXO) == 0


class TestWriteCsv:
    """Tests for write_csv function."""

    def test_write_local_file(self, tmp_path):
        filepath = tmp_path / "out.csv"
        write_csv([{"name": "item1", "value": 100}, {"name": "item2", "value": 200}], str(filepath))

        content = filepath.read_text()
        assert "name,value" in content
        assert "item1,100" in content
        assert "item2,200" in content

    def test_empty_data_without_fieldnames(self, tmp_path):
        filepath = tmp_path / "out.csv"
        write_csv([], str(filepath))
        assert not filepath.exists()

    def test_empty_data_with_fieldnames_writes_header(self, tmp_path):
        filepath = tmp_path / "out.csv"
        write_csv([], str(filepath), fieldnames=["resource_group", "total_cost"])
        assert filepath.read_text().strip() == "resource_group,total_cost"

    def test_quotes_commas_and_quotes(self, tmp_path):
        filepath = tmp_path / "out.csv"
        write_csv([{"name": 'disk "a", b'}], str(filepath))
        assert '"disk ""a"", b"' in filepath.read_text()


# =============================================================================
# ProgressTracker Tests
# =============================================================================

class TestProgressTracker:
    """Tests for ProgressTracker in plain (non-TTY) mode."""

    def test_counts_and_output(self, capsys):
        with ProgressTracker("Azure Cost", total_groups=2, show_progress=False) as tracker:
            tracker.start_group("rg-web")
            tracker.complete_group(rows=3)
            tracker.start_group("rg-data")
            tracker.complete_group(failed=True)

        assert tracker.completed_groups == 2
        assert tracker.failed_groups == 1
        assert tracker.total_rows == 3

        out = capsys.readouterr().out
        assert "Azure Cost Collection Starting" in out
        assert "[rg-web] Complete - 3 row(s)" in out
        assert "[rg-data] Complete - FAILED" in out
        assert "Azure Cost Collection Complete" in out
