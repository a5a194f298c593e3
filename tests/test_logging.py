"""Tests for lease-specific structured logging (tenancy_kernel/logging_config.py)."""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from tenancy_engines.notice import issue_notice
from tenancy_engines.rent_revision import compute_revision
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import InvalidIndexError, SignatureRoundFailedError
from tenancy_kernel.logging_config import (
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)
from tests.conftest import TEST_ACTOR_ID


def _by_message(records: list[dict], message: str) -> list[dict]:
    return [r for r in records if r["message"] == message]


class TestLeaseContext:
    """Lease, actor and job ids bound around lease work reach every record."""

    def test_notice_records_carry_lease_and_actor(self, captured_logs):
        lease_id = uuid4()
        with LogContext.bind(lease_id=str(lease_id), actor_id=str(TEST_ACTOR_ID)):
            issue_notice(lease_id, date(2024, 3, 1), 3, PartyRole.TENANT, date(2024, 3, 1))

        record = _by_message(captured_logs(), "notice_issued")[0]
        assert record["lease_id"] == str(lease_id)
        assert record["actor_id"] == str(TEST_ACTOR_ID)
        assert record["move_out_date"] == "2024-06-01"

    def test_lease_scope_inside_job_scope(self, captured_logs):
        logger = get_logger("batch.services.runner")
        lease_id = str(uuid4())
        with LogContext.bind(job_id="revision-reminders-2024-03-01"):
            with LogContext.bind(lease_id=lease_id):
                logger.info("revision_reminder_emitted")
            logger.info("revision_reminder_batch_completed")

        inner, outer = captured_logs()
        assert inner["job_id"] == outer["job_id"] == "revision-reminders-2024-03-01"
        assert inner["lease_id"] == lease_id
        assert "lease_id" not in outer

    def test_missing_lease_id_is_not_bound(self):
        with LogContext.bind(lease_id=None, actor_id=str(TEST_ACTOR_ID)):
            assert LogContext.get_all() == {"actor_id": str(TEST_ACTOR_ID)}


class TestPayloadSerialization:

    def test_dates_decimals_and_ids_are_strings(self, captured_logs):
        notice_id = uuid4()
        get_logger("modules.lease.service").info(
            "notice_stored",
            extra={
                "notice_id": notice_id,
                "move_out": date(2024, 2, 29),
                "monthly_rent": Decimal("610.73"),
            },
        )

        record = captured_logs()[0]
        assert record["notice_id"] == str(notice_id)
        assert record["move_out"] == "2024-02-29"
        assert record["monthly_rent"] == "610.73"

    def test_index_error_fields(self, captured_logs):
        logger = get_logger("engines.rent_revision")
        with pytest.raises(InvalidIndexError):
            try:
                compute_revision("600", "0", "132.59")
            except InvalidIndexError:
                logger.error("revision_rejected", exc_info=True)
                raise

        record = _by_message(captured_logs(), "revision_rejected")[0]
        assert record["exc_code"] == "INVALID_INDEX"
        assert record["exc_reference_irl"] == "0"
        assert record["exc_new_irl"] == "132.59"

    def test_failed_round_error_fields(self, captured_logs):
        lease_id = str(uuid4())
        try:
            raise SignatureRoundFailedError(lease_id, "tenant", 2)
        except SignatureRoundFailedError:
            get_logger("modules.lease.signatures").warning("signature_rejected", exc_info=True)

        record = _by_message(captured_logs(), "signature_rejected")[0]
        assert record["exc_code"] == "SIGNATURE_ROUND_FAILED"
        assert record["exc_lease_id"] == lease_id
        assert record["exc_party"] == "tenant"
        assert record["exc_round_number"] == 2


class TestEngineTraceRecords:

    def test_notice_engine_trace(self, captured_logs):
        lease_id = str(uuid4())
        with LogContext.bind(lease_id=lease_id):
            issue_notice(uuid4(), date(2024, 1, 31), 1, PartyRole.OWNER, date(2024, 1, 2))

        trace = _by_message(captured_logs(), "LEASE_ENGINE_TRACE")[0]
        assert trace["engine_name"] == "notice"
        assert trace["function"] == "issue_notice"
        assert trace["lease_id"] == lease_id
        assert len(trace["input_fingerprint"]) == 16

    def test_same_notice_inputs_share_fingerprint(self, captured_logs):
        for _ in range(2):
            issue_notice(uuid4(), date(2024, 1, 31), 1, PartyRole.OWNER, date(2024, 1, 2))

        traces = _by_message(captured_logs(), "LEASE_ENGINE_TRACE")
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]


class TestConfigureLogging:

    def test_second_call_keeps_one_handler(self):
        reset_logging()
        try:
            configure_logging(handler=logging.NullHandler())
            configure_logging(handler=logging.NullHandler())
            assert len(logging.getLogger("tenancy_kernel").handlers) == 1
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

    def test_lease_loggers_share_the_kernel_namespace(self):
        assert get_logger("modules.lease.service").name == "tenancy_kernel.modules.lease.service"
