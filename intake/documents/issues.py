"""Document issue encoding and parsing.

Issues are stored on documents as plain strings. The canonical encoding is

    [SEVERITY:type:expected:detected] description

e.g. ``[ERROR:wrong_year:2025:2024] Document is from 2024``. Two older
shapes are still read: ``[type] description`` (severity inferred from the
type) and bare text (a warning of type ``other``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final, Literal

from intake.models.engagement import FriendlyIssue

Severity = Literal["error", "warning"]

ERROR_TYPES: Final[frozenset[str]] = frozenset(
    {"wrong_year", "wrong_type", "incomplete", "illegible"}
)

_ENCODED = re.compile(r"^\[(ERROR|WARNING):([^:\]]+):([^:\]]*):([^\]]*)\]\s*(.*)$", re.IGNORECASE | re.DOTALL)
_LEGACY = re.compile(r"^\[([^\]:]+)\]\s*(.*)$", re.DOTALL)


@dataclass(frozen=True)
class ParsedIssue:
    severity: Severity
    type: str
    expected: str | None
    detected: str | None
    description: str

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


def is_error_type(issue_type: str) -> bool:
    """True for issue types that block a checklist item from completing."""
    return issue_type in ERROR_TYPES


def encode_issue(
    severity: Severity,
    issue_type: str,
    description: str,
    expected: str | int | None = None,
    detected: str | int | None = None,
) -> str:
    """Build an issue string in the canonical encoding."""
    expected_part = "" if expected is None else str(expected)
    detected_part = "" if detected is None else str(detected)
    return f"[{severity.upper()}:{issue_type}:{expected_part}:{detected_part}] {description}"


def parse_issue(issue: str) -> ParsedIssue:
    """Parse an encoded, legacy or plain issue string. Never raises."""
    match = _ENCODED.match(issue)
    if match:
        severity, issue_type, expected, detected, description = match.groups()
        return ParsedIssue(
            severity="error" if severity.lower() == "error" else "warning",
            type=issue_type,
            expected=expected or None,
            detected=detected or None,
            description=description.strip(),
        )

    match = _LEGACY.match(issue)
    if match:
        issue_type, description = match.groups()
        return ParsedIssue(
            severity="error" if is_error_type(issue_type) else "warning",
            type=issue_type,
            expected=None,
            detected=None,
            description=description.strip(),
        )

    return ParsedIssue(
        severity="warning",
        type="other",
        expected=None,
        detected=None,
        description=issue.strip(),
    )


def get_suggested_action(issue: ParsedIssue) -> str:
    """Recommended accountant action for a parsed issue."""
    if issue.type == "wrong_year":
        if issue.expected:
            return f"Request document for tax year {issue.expected}"
        return "Request document for the correct tax year"
    if issue.type == "wrong_type":
        if issue.expected and issue.detected:
            return f"Request {issue.expected} instead of {issue.detected}"
        return "Request the correct document type"
    if issue.type == "missing_field" and issue.expected:
        return f"Request a copy where {issue.expected} is visible"
    return _ACTIONS.get(issue.type, "Review and take appropriate action")


_ACTIONS: Final[dict[str, str]] = {
    "incomplete": "Request complete document with all pages",
    "illegible": "Request clearer scan or photo",
    "duplicate": "Verify if duplicate is intentional",
    "low_confidence": "Manually verify document classification",
}


def has_errors(issues: Iterable[str]) -> bool:
    return any(parse_issue(i).is_error for i in issues)


def has_warnings(issues: Iterable[str]) -> bool:
    return any(not parse_issue(i).is_error for i in issues)


def to_friendly_issues(issues: Iterable[str]) -> list[FriendlyIssue]:
    """Render issues for display, cached on ``Document.issue_details``."""
    friendly: list[FriendlyIssue] = []
    for raw in issues:
        parsed = parse_issue(raw)
        friendly.append(
            FriendlyIssue(
                original=raw,
                friendly_message=parsed.description or parsed.type.replace("_", " "),
                suggested_action=get_suggested_action(parsed),
                severity=parsed.severity,
            )
        )
    return friendly


__all__ = [
    "ERROR_TYPES",
    "ParsedIssue",
    "encode_issue",
    "get_suggested_action",
    "has_errors",
    "has_warnings",
    "is_error_type",
    "parse_issue",
    "to_friendly_issues",
]
