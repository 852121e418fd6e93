"""Tests for the JSON-lines audit trail."""
import pytest

from fortigate_manager.utils.audit_log import (
    ChangeRecord,
    ChangeTracker,
    audit_logger,
    get_recent_changes,
    setup_audit_logging,
)


@pytest.fixture
def audit_file(tmp_path):
    path = setup_audit_logging(str(tmp_path))
    yield path
    for handler in list(audit_logger.handlers):
        handler.close()
        audit_logger.removeHandler(handler)


def _flush():
    for handler in audit_logger.handlers:
        handler.flush()


class TestChangeTracker:
    """Tests for writing and reading audit records."""

    def test_records_round_trip(self, audit_file):
        tracker = ChangeTracker("fw01")
        tracker.log_change("save_object", {"name": "ELS-lab"}, success=True, user="alice@example.edu")
        tracker.log_change(
            "delete_object", {"name": "ELS-old"}, success=False,
            user="bob@example.edu", error="No active SSH connection to the FortiGate",
        )
        _flush()

        records = get_recent_changes(audit_file)

        assert [r.operation for r in records] == ["delete_object", "save_object"]
        assert records[0].error == "No active SSH connection to the FortiGate"
        assert records[1].target == "fw01"
        assert records[1].user == "alice@example.edu"

    def test_filters_and_limit(self, audit_file):
        tracker = ChangeTracker("fw01")
        for i in range(5):
            tracker.log_change("save_object", {"name": f"ELS-{i}"}, success=True, user="alice@example.edu")
        tracker.log_change("replace_group_members", {"members": []}, success=True, user="bob@example.edu")
        _flush()

        assert len(get_recent_changes(audit_file, operation="save_object")) == 5
        assert len(get_recent_changes(audit_file, user="bob@example.edu")) == 1
        latest = get_recent_changes(audit_file, operation="save_object", limit=2)
        assert [r.parameters["name"] for r in latest] == ["ELS-4", "ELS-3"]

    def test_malformed_lines_skipped(self, audit_file):
        ChangeTracker("fw01").log_change("save_object", {}, success=True)
        _flush()
        with open(audit_file, "a", encoding="utf-8") as f:
            f.write("not json\n")
        assert len(get_recent_changes(audit_file)) == 1

    def test_missing_file(self, tmp_path):
        assert get_recent_changes(str(tmp_path / "absent.log")) == []

    def test_record_json(self):
        record = ChangeRecord("2026-01-01T00:00:00+00:00", "fw01", "save_object", "a@b.c", True, {"x": 1})
        assert ChangeRecord.from_json(record.to_json()) == record
