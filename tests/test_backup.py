"""Tests for backup export, validation and parsing."""

import json
import pytest

from finflow.backup import BackupImportError, export_backup, parse_backup
from finflow.models import Bucket, MonthRecord
from finflow.validation import BackupValidator


VALID = json.dumps({
    "months": [{"id": "2024-01", "income": 100000}],
    "buckets": [{"id": "b1", "name": "Trip", "target": 5000, "priority": 1}],
})


class TestExport:
    """Tests for backup export."""

    def test_export_layout(self):
        """Test months in key order, buckets in priority order, camelCase keys."""
        text = export_backup(
            [MonthRecord(id="2024-02", fixed_expenses=10), MonthRecord(id="2023-12")],
            [Bucket(id="late", priority=2), Bucket(id="early", priority=1)],
        )
        payload = json.loads(text)

        assert [m["id"] for m in payload["months"]] == ["2023-12", "2024-02"]
        assert [b["id"] for b in payload["buckets"]] == ["early", "late"]
        assert payload["months"][1]["fixedExpenses"] == 10
        assert text.startswith('{\n  "months"')

    def test_export_raw_documents(self):
        text = export_backup([{"id": "2024-01", "updatedAt": 1}], [], indent=0)
        assert json.loads(text)["months"] == [{"id": "2024-01", "updatedAt": 1}]

    def test_export_parse_cycle_keeps_documents(self):
        months = [MonthRecord.model_validate({"id": "2024-01", "income": 10, "custom": "x"})]
        document = parse_backup(export_backup(months, []))

        assert document.months[0]["custom"] == "x"
        assert document.month_records()[0].income == 10


class TestBackupValidator:
    """Tests for the two-stage backup validation."""

    @pytest.fixture
    def validator(self):
        return BackupValidator()

    def test_valid_backup(self, validator):
        result = validator.validate(VALID)

        assert result.is_valid
        assert result.issues == []
        assert result.document.document_count == 2

    def test_bytes_accepted(self, validator):
        assert validator.validate(VALID.encode("utf-8")).schema_valid

    @pytest.mark.parametrize("text,issue_type", [
        ("{not json", "invalid_json"),
        ("[]", "invalid_type"),
        ('{"months": []}', "missing"),
        ('{"months": {}, "buckets": []}', "invalid_type"),
        ('{"months": [1], "buckets": []}', "invalid_type"),
        ('{"months": [{"income": 1}], "buckets": []}', "missing"),
        ('{"months": [], "buckets": [{"id": ""}]}', "missing"),
        ('{"months": [], "buckets": [{"id": 7}]}', "missing"),
    ])
    def test_schema_errors(self, validator, text, issue_type):
        """Test structural problems that reject the whole backup."""
        result = validator.validate(text)

        assert not result.schema_valid
        assert not result.is_valid
        assert result.document is None
        assert result.errors[0].issue_type == issue_type

    def test_issue_location(self, validator):
        result = validator.validate('{"months": [{"id": "2024-01"}, {"id": null}], "buckets": []}')
        assert result.errors[0].field == "months[1].id"

    def test_warnings_do_not_block(self, validator):
        """Test that odd month ids and duplicates are warnings only."""
        text = json.dumps({
            "months": [{"id": "January"}, {"id": "2024-01"}, {"id": "2024-01"}],
            "buckets": [],
        })
        result = validator.validate(text)

        assert result.schema_valid
        assert result.is_valid
        assert len(result.warnings) == 2
        assert {i.issue_type for i in result.issues} == {"suspicious_value", "duplicate_id"}

    def test_summary(self, validator):
        assert validator.get_user_friendly_summary(validator.validate(VALID)) == "✅ Backup looks good."
        summary = validator.get_user_friendly_summary(validator.validate("[]"))
        assert summary.startswith("❌")


class TestParseBackup:
    """Tests for parse_backup."""

    def test_parse_valid(self):
        document = parse_backup(VALID)

        assert document.months[0]["id"] == "2024-01"
        assert document.bucket_records()[0].name == "Trip"

    def test_parse_invalid_raises_with_issues(self):
        with pytest.raises(BackupImportError) as exc_info:
            parse_backup('{"months": [], "buckets": "nope"}')

        assert len(exc_info.value.issues) == 1
        assert "'buckets' must be a list" in exc_info.value.messages
        assert "Backup rejected" in str(exc_info.value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
