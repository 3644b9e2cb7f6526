"""
Tests for the per-pass error tracker.
"""

from ..error_tracker import CursorError, ErrorSeverity, ErrorTracker


class TestErrorTracker:

    def test_report_counts_by_severity(self):
        tracker = ErrorTracker()
        tracker.report("lookup failed", document_id="a", severity=ErrorSeverity.WARNING)
        tracker.report("bulk item rejected", document_id="b")
        tracker.report("pass aborted", severity=ErrorSeverity.CRITICAL, details={"stage": "stream_batches"})

        report = tracker.generate_report()

        assert report["total_errors"] == 3
        assert report["warning_count"] == 1
        assert report["error_count"] == 1
        assert report["critical_count"] == 1
        assert report["errors"][2]["details"] == {"stage": "stream_batches"}
        assert tracker.has_critical_errors()

    def test_get_errors_filters_by_minimum_severity(self):
        tracker = ErrorTracker()
        tracker.report("w", severity=ErrorSeverity.WARNING)
        tracker.report("e", severity=ErrorSeverity.ERROR)

        assert [e.message for e in tracker.get_errors(ErrorSeverity.ERROR)] == ["e"]
        assert not tracker.has_critical_errors()

    def test_report_exception(self):
        tracker = ErrorTracker()
        exc = CursorError("scroll expired", recovery_suggestion="Increase SYNC_SCROLL_LEASE")

        error = tracker.report_exception(exc, severity=ErrorSeverity.CRITICAL)

        assert error.message == "scroll expired"
        assert error.recovery_suggestion == "Increase SYNC_SCROLL_LEASE"
        assert tracker.has_critical_errors()
