"""Unit tests for custom exception hierarchy"""
import logging
import pytest
from datetime import datetime

import psycopg

from soulpet.exceptions import (
    SoulPetError,
    ValidationError,
    ChallengeNotFoundError,
    PersistenceError,
    ConfigurationError,
    wrap_external_exception,
)


class TestSoulPetError:
    """Test base exception class"""

    def test_basic_exception(self):
        """Test basic exception creation"""
        error = SoulPetError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)

    def test_exception_with_context(self):
        """Test exception with full context"""
        error = SoulPetError(
            message="Save failed",
            user_id="user-123",
            operation="complete_step",
            context={"challenge_id": "dog_breathing_daily"},
            user_message="Could not save your progress"
        )
        assert error.user_id == "user-123"
        assert error.operation == "complete_step"
        assert error.context["challenge_id"] == "dog_breathing_daily"
        assert error.user_message == "Could not save your progress"

    def test_to_dict(self):
        """Test serialization"""
        error = SoulPetError("Test error", request_id="req-1")
        data = error.to_dict()
        assert data["error"] == "SoulPetError"
        assert data["message"] == "Test error"
        assert data["request_id"] == "req-1"
        assert "timestamp" in data

    def test_logs_on_creation(self, caplog):
        """Test errors are logged when raised"""
        with caplog.at_level(logging.ERROR, logger="soulpet.exceptions"):
            SoulPetError("boom")
        assert "SoulPetError: boom" in caplog.text


class TestDomainErrors:
    """Test specific exception types"""

    def test_validation_error(self):
        """Test validation error carries the field"""
        error = ValidationError("Increment must be a positive integer", field="amount", value=0)
        assert isinstance(error, SoulPetError)
        assert error.field == "amount"
        assert error.value == 0
        assert error.context == {"field": "amount", "value": 0}
        assert "amount" in error.user_message

    def test_validation_error_logs_as_warning(self, caplog):
        """Test caller mistakes are logged at warning level"""
        with caplog.at_level(logging.WARNING, logger="soulpet.exceptions"):
            ValidationError("bad", field="amount")
        assert caplog.records[-1].levelno == logging.WARNING

    def test_challenge_not_found(self):
        """Test lookup error context"""
        error = ChallengeNotFoundError("missing", challenge_id="x", companion_type="dog")
        assert error.challenge_id == "x"
        assert error.context["companion_type"] == "dog"

    def test_persistence_error_defaults_transient(self):
        """Test persistence errors are transient unless told otherwise"""
        error = PersistenceError("offline", record_key=("user-123", "dog"))
        assert error.transient is True
        assert error.context["record_key"] == ("user-123", "dog")

    def test_persistence_error_merges_context(self):
        """Test caller context is kept alongside the record key"""
        error = PersistenceError("bad", transient=False, context={"period_key": "2026-W43"})
        assert error.context["period_key"] == "2026-W43"
        assert error.context["transient"] is False

    def test_configuration_error(self):
        """Test configuration error"""
        error = ConfigurationError("DATABASE_URL is required", config_key="DATABASE_URL")
        assert error.config_key == "DATABASE_URL"


class TestWrapExternalException:
    """Test driver exception wrapping"""

    def test_operational_error_is_transient(self):
        """Test connection failures become transient persistence errors"""
        original = psycopg.OperationalError("connection refused")
        wrapped = wrap_external_exception(original, operation="load_companion_progress", user_id="u")
        assert isinstance(wrapped, PersistenceError)
        assert wrapped.transient is True
        assert wrapped.cause is original

    def test_os_error_is_transient(self):
        """Test network errors become transient persistence errors"""
        wrapped = wrap_external_exception(ConnectionResetError("reset"), operation="upsert")
        assert isinstance(wrapped, PersistenceError)
        assert wrapped.transient is True

    def test_query_error_is_permanent(self):
        """Test other driver errors are not retried"""
        wrapped = wrap_external_exception(
            psycopg.errors.UndefinedTable("no such table"),
            operation="upsert_challenge_progress",
            record_key=("u", "dog", "dog_zen_weekly", "2026-W43"),
        )
        assert isinstance(wrapped, PersistenceError)
        assert wrapped.transient is False
        assert wrapped.record_key == ("u", "dog", "dog_zen_weekly", "2026-W43")

    def test_soulpet_error_passes_through(self):
        """Test our own errors are returned unchanged"""
        original = ValidationError("bad", field="amount")
        assert wrap_external_exception(original, operation="x") is original

    def test_unknown_error_fallback(self):
        """Test unknown errors fall back to the base class"""
        wrapped = wrap_external_exception(ValueError("odd"), operation="load_session")
        assert type(wrapped) is SoulPetError
        assert "load_session failed" in wrapped.message
