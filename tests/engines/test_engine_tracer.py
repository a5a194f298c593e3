"""Tests for the LEASE_ENGINE_TRACE decorator."""

from datetime import date
from decimal import Decimal

from tenancy_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("amount", "on"))
def _sample(amount, on, note=None):
    return amount


class TestTracedEngine:

    def test_trace_record_fields(self, captured_logs):
        assert _sample(Decimal("10"), date(2024, 1, 1)) == Decimal("10")

        traces = [r for r in captured_logs() if r["message"] == "LEASE_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "LEASE_ENGINE_TRACE"
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["logger"] == "tenancy_kernel.engines.tracer"
        assert trace["duration_ms"] >= 0

    def test_positional_and_keyword_calls_match(self, captured_logs):
        _sample(Decimal("10"), date(2024, 1, 1))
        _sample(on=date(2024, 1, 1), amount=Decimal("10"))
        traces = [r for r in captured_logs() if r["message"] == "LEASE_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_unlisted_arguments_do_not_change_fingerprint(self, captured_logs):
        _sample(Decimal("10"), date(2024, 1, 1), note="a")
        _sample(Decimal("10"), date(2024, 1, 1), note="b")
        traces = [r for r in captured_logs() if r["message"] == "LEASE_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]


class TestInputFingerprint:

    def test_deterministic(self):
        args = {"a": Decimal("1.5"), "b": {"y": 2, "x": 1}}
        assert compute_input_fingerprint(("a", "b"), args) == compute_input_fingerprint(
            ("a", "b"), {"b": {"x": 1, "y": 2}, "a": Decimal("1.5")}
        )

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_different_values_differ(self):
        assert compute_input_fingerprint(("a",), {"a": 1}) != compute_input_fingerprint(
            ("a",), {"a": 2}
        )
