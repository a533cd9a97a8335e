"""Tests for adosync error types and exit codes."""

import pytest

from adosync.integrations.errors import (
    MAX_ERROR_DETAIL_LENGTH,
    DomainError,
    ErrorCode,
    status_to_error_code,
    truncate_detail,
)
from adosync.utils.errors import (
    AdoSyncError,
    CipherKeyError,
    ConfigValidationError,
    ExitCode,
    NotConfiguredError,
    UserCancelledError,
)


class TestExitCodes:
    """Tests for the AdoSyncError hierarchy."""

    @pytest.mark.parametrize(
        ("error_class", "exit_code"),
        [
            (AdoSyncError, ExitCode.GENERAL_ERROR),
            (NotConfiguredError, ExitCode.NOT_CONFIGURED),
            (ConfigValidationError, ExitCode.INVALID_INPUT),
            (CipherKeyError, ExitCode.GENERAL_ERROR),
            (UserCancelledError, ExitCode.USER_CANCELLED),
        ],
    )
    def test_default_exit_codes(self, error_class, exit_code):
        """Each error type carries its exit code."""
        assert error_class("boom").exit_code == exit_code

    def test_explicit_exit_code_wins(self):
        """An explicit exit code overrides the class default."""
        error = NotConfiguredError("x", exit_code=ExitCode.GENERAL_ERROR)

        assert error.exit_code == ExitCode.GENERAL_ERROR

    def test_domain_error_is_adosync_error(self):
        """DomainError maps to the remote-error exit code."""
        error = DomainError.create(ErrorCode.API_ERROR, "x")

        assert isinstance(error, AdoSyncError)
        assert error.exit_code == ExitCode.REMOTE_ERROR


class TestStatusMapping:
    """Tests for status_to_error_code and DomainError.from_status."""

    @pytest.mark.parametrize(
        ("status", "code", "retryable"),
        [
            (401, ErrorCode.INVALID_PAT, False),
            (403, ErrorCode.INSUFFICIENT_PERMISSIONS, False),
            (404, ErrorCode.WORK_ITEM_NOT_FOUND, False),
            (429, ErrorCode.RATE_LIMIT_EXCEEDED, True),
            (500, ErrorCode.SERVER_ERROR, True),
            (503, ErrorCode.SERVER_ERROR, True),
            (400, ErrorCode.API_ERROR, False),
            (418, ErrorCode.API_ERROR, False),
        ],
    )
    def test_status_codes(self, status, code, retryable):
        """Each status maps to its code and retryable flag."""
        error = DomainError.from_status(status, "detail")

        assert status_to_error_code(status) is code
        assert error.code is code
        assert error.retryable is retryable
        assert error.user_message

    def test_messages(self):
        """Messages name the failure and include the detail."""
        assert DomainError.from_status(401, "bad").message == "Authentication failed: bad"
        assert DomainError.from_status(502, "down").message == "Server error (502): down"
        assert DomainError.from_status(418, "teapot").message == "HTTP 418: teapot"

    def test_detail_truncated(self):
        """Long details are truncated before they reach the message."""
        error = DomainError.from_status(500, "x" * 1000)

        assert len(error.message) < 300
        assert error.message.endswith("... [truncated]")


class TestDomainError:
    """Tests for DomainError construction and serialization."""

    def test_every_code_has_defaults(self):
        """Every code has a user message."""
        for code in ErrorCode:
            error = DomainError.create(code, "message")
            assert error.user_message
            assert isinstance(error.retryable, bool)

    def test_overrides(self):
        """Explicit user message and retryable flag are kept."""
        error = DomainError(ErrorCode.API_ERROR, "m", user_message="custom", retryable=True)

        assert error.user_message == "custom"
        assert error.retryable is True

    def test_to_dict(self):
        """Serialization uses the wire field names."""
        error = DomainError.create(ErrorCode.NETWORK_ERROR, "timeout")

        assert error.to_dict() == {
            "code": "NETWORK_ERROR",
            "message": "timeout",
            "userMessage": error.user_message,
            "retryable": True,
        }

    def test_str_is_message(self):
        """str() gives the diagnostic message."""
        assert str(DomainError.create(ErrorCode.API_ERROR, "oops")) == "oops"


class TestTruncateDetail:
    """Tests for truncate_detail."""

    def test_short_unchanged(self):
        """Short details are untouched."""
        assert truncate_detail("short") == "short"

    def test_long_cut(self):
        """Details beyond the limit are cut."""
        result = truncate_detail("y" * (MAX_ERROR_DETAIL_LENGTH + 1))

        assert result == "y" * MAX_ERROR_DETAIL_LENGTH + "... [truncated]"
