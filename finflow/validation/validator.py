"""
Two-Stage Backup Validation

DESIGN DECISION: A backup is validated in full before a single document
is written, in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- The text parses as JSON
- The top level is an object with ``months`` and ``buckets`` lists
- Every item is an object with a non-empty string ``id``
- Any failure here rejects the whole backup

STAGE 2 - SEMANTIC VALIDATION:
- Month ids not shaped like ``YYYY-MM``
- Ids repeated within a collection (the last one wins on restore)
- These are reported as warnings; the backup is still restorable

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the caller decides.
"""

import json
from collections import Counter
from typing import Any

from finflow.engine.periods import is_month_key
from finflow.models.backup import BackupDocument, ValidationIssue, ValidationResult


COLLECTIONS = ("months", "buckets")


class BackupValidator:
    """
    Validates backup text through a two-stage pipeline.

    Stage 2 only runs if stage 1 passes.
    """

    def _parse(self, text: Any) -> tuple[Any, list[ValidationIssue]]:
        if isinstance(text, (bytes, bytearray)):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError as e:
                return None, [ValidationIssue(
                    field="document",
                    issue_type="invalid_encoding",
                    message=f"Backup is not valid UTF-8: {e}",
                    severity="error",
                )]

        if not isinstance(text, str):
            return None, [ValidationIssue(
                field="document",
                issue_type="invalid_type",
                message="Backup must be JSON text",
                severity="error",
            )]

        try:
            return json.loads(text), []
        except json.JSONDecodeError as e:
            return None, [ValidationIssue(
                field="document",
                issue_type="invalid_json",
                message=f"Backup is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
                severity="error",
            )]

    def _validate_schema(self, payload: Any) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not isinstance(payload, dict):
            issues.append(ValidationIssue(
                field="document",
                issue_type="invalid_type",
                message="Backup must be a JSON object with 'months' and 'buckets'",
                severity="error",
            ))
            return False, issues

        for name in COLLECTIONS:
            items = payload.get(name)
            if items is None:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="missing",
                    message=f"Backup has no '{name}' list",
                    severity="error",
                ))
                continue
            if not isinstance(items, list):
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_type",
                    message=f"'{name}' must be a list",
                    severity="error",
                ))
                continue

            for index, item in enumerate(items):
                location = f"{name}[{index}]"
                if not isinstance(item, dict):
                    issues.append(ValidationIssue(
                        field=location,
                        issue_type="invalid_type",
                        message=f"{location} must be an object",
                        severity="error",
                    ))
                    continue
                record_id = item.get("id")
                if not isinstance(record_id, str) or not record_id.strip():
                    issues.append(ValidationIssue(
                        field=f"{location}.id",
                        issue_type="missing",
                        message=f"{location} has no usable id",
                        severity="error",
                    ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(self, document: BackupDocument) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for index, month in enumerate(document.months):
            if not is_month_key(month["id"]):
                issues.append(ValidationIssue(
                    field=f"months[{index}].id",
                    issue_type="suspicious_value",
                    message=f"Month id '{month['id']}' is not shaped like YYYY-MM",
                    severity="warning",
                ))

        for name in COLLECTIONS:
            counts = Counter(item["id"] for item in getattr(document, name))
            for record_id, count in sorted(counts.items()):
                if count > 1:
                    issues.append(ValidationIssue(
                        field=name,
                        issue_type="duplicate_id",
                        message=f"'{record_id}' appears {count} times in {name}; the last one wins",
                        severity="warning",
                    ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(self, text: Any) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            text: Backup JSON text (str or UTF-8 bytes)

        Returns:
            ValidationResult with all issues found, and the parsed
            document when the schema is valid
        """
        payload, all_issues = self._parse(text)

        schema_valid = False
        if not all_issues:
            schema_valid, schema_issues = self._validate_schema(payload)
            all_issues.extend(schema_issues)

        semantic_valid = False
        document = None
        if schema_valid:
            document = BackupDocument(
                months=payload["months"],
                buckets=payload["buckets"],
            )
            semantic_valid, semantic_issues = self._validate_semantic(document)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
            document=document,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summarize a validation result for the owner."""
        if result.is_valid and not result.warnings:
            return "✅ Backup looks good."

        lines = []

        if not result.schema_valid:
            lines.append("❌ This backup cannot be restored:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines).strip()
