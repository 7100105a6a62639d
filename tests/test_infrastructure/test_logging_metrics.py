"""
Test infrastructure components: logging, metrics, retry, settings.

These tests verify the production hardening infrastructure works correctly.
"""

import sqlite3
from pathlib import Path

import pytest
from prometheus_client import REGISTRY
from pydantic import ValidationError

from trust_hierarchies import Hierarchies
from trust_hierarchies.kernel.errors import LastAuthorityLockout
from trust_hierarchies.kernel.logging import (
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from trust_hierarchies.kernel.policy import FederationPolicy, Settings
from trust_hierarchies.kernel.retry import retry_on_sqlite_lock

from tests.helpers import make_property


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        cid = get_correlation_id()
        assert cid
        assert get_correlation_id() == cid

        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_log_operation_measures_duration(self) -> None:
        configure_logging(json_output=False, log_level="INFO")

        with LogOperation(get_logger(__name__), "test_operation", federation_id="fed-1") as op:
            pass

        assert op.duration_ms >= 0

    def test_log_operation_reraises_domain_errors(self) -> None:
        configure_logging(json_output=False, log_level="INFO")

        with pytest.raises(LastAuthorityLockout):
            with LogOperation(get_logger(__name__), "revoke_root_authority", caller="alice"):
                raise LastAuthorityLockout("alice", "fed-1")

    def test_log_operation_reraises_unexpected_errors(self) -> None:
        configure_logging(json_output=False, log_level="INFO")

        with pytest.raises(ValueError):
            with LogOperation(get_logger(__name__), "failing_operation"):
                raise ValueError("Test error")

    def test_identity_fields_are_redacted(self) -> None:
        redacted = redact_context(
            {"caller": "alice", "receiver": "bob", "operation": "add_property"}
        )

        assert redacted["caller"] == "***REDACTED***"
        assert redacted["receiver"] == "***REDACTED***"
        assert redacted["operation"] == "add_property"


class TestRetryLogic:
    """Test SQLite lock retries."""

    def test_retries_then_succeeds(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_gives_up_after_max_attempts(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=2)
        def always_locked() -> None:
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            always_locked()
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self) -> None:
        calls = []

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def broken() -> None:
            calls.append(1)
            raise ValueError("not a lock")

        with pytest.raises(ValueError):
            broken()
        assert len(calls) == 1


class TestMetrics:
    """Test Prometheus counters move with engine activity."""

    def test_mutation_and_validation_counters(self, hierarchies: Hierarchies) -> None:
        success = {"operation": "add_property", "status": "success"}
        rejected = {"operation": "revoke_root_authority", "status": "rejected"}
        valid = {"source": "live", "result": "valid"}
        cached_invalid = {"source": "cached", "result": "invalid"}
        appended = {"stream_type": "federation", "event_type": "PropertyAdded"}

        before = {
            "success": _sample("hierarchies_mutations_total", success),
            "rejected": _sample("hierarchies_mutations_total", rejected),
            "valid": _sample("hierarchies_validations_total", valid),
            "cached_invalid": _sample("hierarchies_validations_total", cached_invalid),
            "appended": _sample("hierarchies_events_appended_total", appended),
        }

        fed_id = hierarchies.create_federation("root-alice").federation_id
        hierarchies.add_property(fed_id, make_property("p", allow_any=True), caller="root-alice")
        hierarchies.create_accreditation_to_attest(
            fed_id, "u", [make_property("p", allow_any=True)], caller="root-alice"
        )
        with pytest.raises(LastAuthorityLockout):
            hierarchies.revoke_root_authority(fed_id, "root-alice", caller="root-alice")
        hierarchies.validate_property(fed_id, "u", "p", "v")
        hierarchies.cached(fed_id).validate_property("stranger", "p", "v")

        assert _sample("hierarchies_mutations_total", success) == before["success"] + 1
        assert _sample("hierarchies_mutations_total", rejected) == before["rejected"] + 1
        assert _sample("hierarchies_validations_total", valid) == before["valid"] + 1
        assert (
            _sample("hierarchies_validations_total", cached_invalid)
            == before["cached_invalid"] + 1
        )
        assert _sample("hierarchies_events_appended_total", appended) == before["appended"] + 1


class TestSettings:
    """Test environment-driven configuration."""

    ENV_NAMES = (
        "HIERARCHIES_DB_PATH",
        "HIERARCHIES_LOG_LEVEL",
        "HIERARCHIES_JSON_LOGS",
        "HIERARCHIES_POLICY__ENFORCE_DELEGATION_SCOPE",
        "ENVIRONMENT",
    )

    def test_defaults(self, monkeypatch) -> None:
        for name in self.ENV_NAMES:
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.db_path == Path(".hierarchies.db")
        assert settings.log_level == "INFO"
        assert settings.json_logs is False
        assert settings.policy == FederationPolicy()

    def test_environment_overrides(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("HIERARCHIES_DB_PATH", str(tmp_path / "h.db"))
        monkeypatch.setenv("HIERARCHIES_LOG_LEVEL", "debug")
        monkeypatch.setenv("HIERARCHIES_POLICY__ENFORCE_DELEGATION_SCOPE", "false")
        monkeypatch.delenv("HIERARCHIES_JSON_LOGS", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings.from_env()

        assert settings.db_path == tmp_path / "h.db"
        assert settings.log_level == "DEBUG"
        assert settings.json_logs is True
        assert settings.policy.enforce_delegation_scope is False
        assert settings.policy.revocation_by_issuer_only is True

    def test_explicit_json_flag_beats_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("HIERARCHIES_JSON_LOGS", "0")

        assert Settings.from_env().json_logs is False

    def test_invalid_log_level_is_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("HIERARCHIES_LOG_LEVEL", "chatty")

        with pytest.raises(ValidationError):
            Settings.from_env()
