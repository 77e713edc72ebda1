"""
Tests for structured JSON logging and the typed exception hierarchy.
"""

import json
import logging
from io import StringIO

import pytest

from ledger_kernel.exceptions import (
    ConcurrencyError,
    ConcurrentPostingError,
    DuplicateEntryNumberError,
    LedgerKernelError,
    PeriodError,
    PeriodHasDraftEntriesError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_kwargs: dict, exc: Exception | None = None) -> dict:
    logger = logging.getLogger("ledger_kernel.test.formatter")
    record = logger.makeRecord(
        logger.name,
        logging.WARNING,
        __file__,
        1,
        "something_happened",
        (),
        (type(exc), exc, None) if exc is not None else None,
        extra=record_kwargs,
    )
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:
    def test_one_json_object_with_extra_fields(self):
        payload = _format({"entry_number": "JE-2025-00001", "line_count": 2})
        assert payload["message"] == "something_happened"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "ledger_kernel.test.formatter"
        assert payload["entry_number"] == "JE-2025-00001"
        assert payload["line_count"] == 2

    def test_context_fields_merged(self):
        with LogContext.bind(tenant_id="t-1", actor_id="a-1"):
            payload = _format({})
        assert payload["tenant_id"] == "t-1"
        assert payload["actor_id"] == "a-1"

    def test_bound_context_restored_on_exit(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_unknown_context_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(favourite_colour="blue")

    def test_exception_code_and_fields_included(self):
        payload = _format({}, exc=UnbalancedEntryError("100.00", "90.00"))
        assert payload["exc_type"] == "UnbalancedEntryError"
        assert payload["exc_code"] == "UNBALANCED_ENTRY"
        assert payload["exc_debits"] == "100.00"
        assert payload["exc_credits"] == "90.00"


class TestGetLogger:
    def test_namespaced_under_ledger_kernel(self):
        assert get_logger("services.journal").name == "ledger_kernel.services.journal"

    def test_module_loggers_reach_captured_logs(self, captured_logs):
        get_logger("test.capture").info("sample_logged", extra={"value": 7})
        records = [r for r in captured_logs() if r["message"] == "sample_logged"]
        assert records and records[0]["value"] == 7


class TestExceptionHierarchy:
    def test_codes_are_machine_readable(self):
        err = PeriodHasDraftEntriesError(2025, 1, 1)
        assert err.code == "PERIOD_HAS_DRAFT_ENTRIES"
        assert err.draft_entries_count == 1
        assert isinstance(err, PeriodError)
        assert isinstance(err, LedgerKernelError)

    def test_validation_errors_are_not_retryable(self):
        assert isinstance(UnbalancedEntryError("1.00", "2.00"), ValidationError)
        assert not UnbalancedEntryError("1.00", "2.00").retryable

    @pytest.mark.parametrize(
        "err",
        [ConcurrentPostingError("id", "draft"), DuplicateEntryNumberError("JE-2025-00001")],
    )
    def test_concurrency_errors_are_retryable(self, err):
        assert isinstance(err, ConcurrencyError)
        assert err.retryable
