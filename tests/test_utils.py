"""
Tests for azinv/utils.py utility functions.

Covers:
- bytes_to_gib / mb_to_gib conversion
- unconsumed capacity
- enum_value and to_int
- AuthError and is_auth_error detection
- write_csv (local files, empty reports, blob URLs)
- join_output_path
- setup_logging
- ProgressTracker plain-mode counters
"""
import csv
import logging
import os
import sys
from unittest.mock import Mock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from azinv.utils import (
    AuthError,
    ProgressTracker,
    bytes_to_gib,
    enum_value,
    is_auth_error,
    is_blob_url,
    join_output_path,
    mb_to_gib,
    setup_logging,
    to_int,
    unconsumed,
    write_csv,
)

# =============================================================================
# Unit Conversion Tests
# =============================================================================

class TestBytesToGib:
    """Tests for bytes_to_gib function."""

    def test_exact_gib(self):
        assert bytes_to_gib(1073741824) == 1.0

    def test_rounds_to_two_decimals(self):
        """1.5 GiB plus a few bytes rounds to 1.5."""
        assert bytes_to_gib(1610612736 + 1000) == 1.5

    def test_zero(self):
        assert bytes_to_gib(0) == 0.0

    def test_none_stays_none(self):
        """Absent input is not reported as zero."""
        assert bytes_to_gib(None) is None

    def test_pool_max_size(self):
        """102400 MB pool max size is 100 GiB."""
        assert bytes_to_gib(102400 * 1024 ** 2) == 100.0


class TestMbToGib:
    """Tests for mb_to_gib function."""

    def test_conversion(self):
        assert mb_to_gib(2048) == 2.0

    def test_fractional(self):
        assert mb_to_gib(512) == 0.5

    def test_none(self):
        assert mb_to_gib(None) is None


class TestUnconsumed:
    """Tests for unconsumed function."""

    def test_provisioned_minus_used(self):
        assert unconsumed(100.0, 40.0) == 60.0

    def test_floored_at_zero(self):
        """Used larger than provisioned never goes negative."""
        assert unconsumed(100.0, 140.0) == 0.0

    @pytest.mark.parametrize("provisioned,used", [
        (None, 10.0),
        (100.0, None),
        (0.0, 10.0),
        (None, None),
    ])
    def test_undefined(self, provisioned, used):
        assert unconsumed(provisioned, used) is None


class TestEnumValue:
    """Tests for enum_value function."""

    def test_plain_string(self):
        assert enum_value("Standard_D2s_v3") == "Standard_D2s_v3"

    def test_enum_like(self):
        value = Mock()
        value.value = "Enabled"
        assert enum_value(value) == "Enabled"

    def test_none(self):
        assert enum_value(None) is None


class TestToInt:
    """Tests for to_int function."""

    def test_rounds(self):
        assert to_int(41.6) == 42

    def test_none(self):
        assert to_int(None) is None


# =============================================================================
# AuthError / is_auth_error Tests
# =============================================================================

class TestAuthError:
    """Tests for AuthError exception."""

    def test_message_and_original(self):
        original = ValueError("token expired")
        err = AuthError("Failed to authenticate", original_error=original)
        assert str(err) == "Failed to authenticate"
        assert err.original_error is original

    def test_default_original_is_none(self):
        assert AuthError("nope").original_error is None


class TestIsAuthError:
    """Tests for is_auth_error function."""

    def test_regular_exception_not_auth(self):
        assert is_auth_error(ValueError("Some error")) is False

    def test_client_authentication_error(self):
        assert is_auth_error(ClientAuthenticationError("credential unavailable")) is True

    def test_http_403(self):
        exc = HttpResponseError("Forbidden")
        exc.status_code = 403
        assert is_auth_error(exc) is True

    def test_http_401(self):
        exc = HttpResponseError("Unauthorized")
        exc.status_code = 401
        assert is_auth_error(exc) is True

    def test_http_authorization_failed_code(self):
        """AuthorizationFailed in the message counts even without a status."""
        exc = HttpResponseError("(AuthorizationFailed) The client does not have authorization")
        assert is_auth_error(exc) is True

    def test_http_500_not_auth(self):
        exc = HttpResponseError("Internal server error")
        exc.status_code = 500
        assert is_auth_error(exc) is False


# =============================================================================
# write_csv Tests
# =============================================================================

class TestWriteCsv:
    """Tests for write_csv function."""

    def test_write_local_file(self, tmp_path):
        filepath = str(tmp_path / "out.csv")
        data = [
            {"name": "item1", "value": 100},
            {"name": "item2", "value": 200},
        ]
        write_csv(data, filepath, fieldnames=["name", "value"])

        with open(filepath) as f:
            content = f.read()

        assert "name,value" in content
        assert "item1,100" in content
        assert "item2,200" in content

    def test_empty_data_writes_header(self, tmp_path):
        """An empty report still has its header row."""
        filepath = str(tmp_path / "empty.csv")
        write_csv([], filepath, fieldnames=["SubscriptionName", "StorageAccount"])

        with open(filepath) as f:
            lines = f.read().splitlines()

        assert lines == ["SubscriptionName,StorageAccount"]

    def test_none_written_as_empty_cell(self, tmp_path):
        filepath = str(tmp_path / "none.csv")
        write_csv([{"a": None, "b": 1.5}], filepath, fieldnames=["a", "b"])

        with open(filepath, newline='') as f:
            rows = list(csv.reader(f))

        assert rows[1] == ["", "1.5"]

    def test_creates_directory(self, tmp_path):
        filepath = str(tmp_path / "nested" / "dir" / "out.csv")
        write_csv([{"a": 1}], filepath, fieldnames=["a"])
        assert os.path.exists(filepath)

    def test_field_order(self, tmp_path):
        filepath = str(tmp_path / "order.csv")
        write_csv([{"a": 1, "b": 2}], filepath, fieldnames=["b", "a"])

        with open(filepath) as f:
            lines = f.readlines()

        assert lines[0].strip() == "b,a"
        assert lines[1].strip() == "2,1"

    @patch('azinv.utils.write_to_blob')
    def test_blob_url(self, mock_write_to_blob):
        url = "https://acct.blob.core.windows.net/reports/vm-summary.csv"
        write_csv([{"a": 1}], url, fieldnames=["a"])

        mock_write_to_blob.assert_called_once()
        content, target = mock_write_to_blob.call_args[0]
        assert target == url
        assert content.splitlines() == ["a", "1"]


class TestOutputPaths:
    """Tests for is_blob_url and join_output_path."""

    def test_blob_url_detection(self):
        assert is_blob_url("https://acct.blob.core.windows.net/reports") is True
        assert is_blob_url("./reports") is False

    def test_join_directory(self):
        assert join_output_path("reports", "vm-disks.csv") == os.path.join("reports", "vm-disks.csv")

    def test_join_blob_container(self):
        joined = join_output_path("https://acct.blob.core.windows.net/reports/", "vm-disks.csv")
        assert joined == "https://acct.blob.core.windows.net/reports/vm-disks.csv"


# =============================================================================
# setup_logging Tests
# =============================================================================

class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_default_level(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_case_insensitive(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_azure_sdk_quieted(self):
        """Azure SDK HTTP logging stays at WARNING or above."""
        setup_logging("DEBUG")
        assert logging.getLogger('azure').level == logging.WARNING

    def test_log_file_in_output_dir(self, tmp_path):
        setup_logging("INFO", output_dir=str(tmp_path))
        log_files = [p for p in os.listdir(tmp_path) if p.startswith("azinv_log_")]
        assert len(log_files) == 1
        logging.getLogger().handlers.clear()


# =============================================================================
# ProgressTracker Tests
# =============================================================================

class TestProgressTracker:
    """Tests for ProgressTracker in plain (non-TTY) mode."""

    def test_counters(self, capsys):
        with ProgressTracker("SQL inventory", total_subscriptions=2, show_progress=False) as tracker:
            tracker.start_subscription("sub-1", "Alpha")
            tracker.add_rows(3)
            tracker.complete_subscription()
            tracker.start_subscription("sub-2", "Beta")
            tracker.fail_subscription()

        assert tracker.completed_subscriptions == 1
        assert tracker.failed_subscriptions == 1
        assert tracker.total_rows == 3

        out = capsys.readouterr().out
        assert "SQL inventory Complete" in out
        assert "Failed:" in out
