"""
Scene validation - Check a scene for structural issues.

Dangling references are tolerated while editing; this module is the only
place they are reported, and only when asked.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from .models import GroupShape, SceneState


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken reference or identity
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a scene."""
    severity: IssueSeverity
    message: str
    shape_id: str | None = None
    connector_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.shape_id:
            result["shape_id"] = self.shape_id
        if self.connector_id:
            result["connector_id"] = self.connector_id
        return result


def validate_scene(state: SceneState) -> list[ValidationIssue]:
    """
    Validate a scene and return a list of issues.

    Checks for:
    - Empty scene - INFO
    - Duplicate shape ids - ERROR
    - Connector endpoint missing - ERROR
    - groupId pointing at a missing or non-group shape - ERROR
    - Group member missing - WARNING
    - Self-referencing connector - WARNING

    Args:
        state: The scene to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not state.shapes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Scene has no shapes"
        ))

    counts = Counter(s.id for s in state.shapes)
    for shape_id, count in counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Shape id used {count} times",
                shape_id=shape_id
            ))

    by_id = {s.id: s for s in state.shapes}

    for connector in state.connectors:
        if connector.from_id not in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connector references non-existent shape: {connector.from_id}",
                connector_id=connector.id
            ))
        if connector.to_id not in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connector references non-existent shape: {connector.to_id}",
                connector_id=connector.id
            ))
        if connector.from_id == connector.to_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing connector (shape points to itself)",
                connector_id=connector.id,
                shape_id=connector.from_id
            ))

    for shape in state.shapes:
        if shape.group_id:
            parent = by_id.get(shape.group_id)
            if parent is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Shape belongs to non-existent group: {shape.group_id}",
                    shape_id=shape.id
                ))
            elif not isinstance(parent, GroupShape):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Shape belongs to {shape.group_id}, which is not a group",
                    shape_id=shape.id
                ))
        if isinstance(shape, GroupShape):
            for child_id in shape.children:
                if child_id not in by_id:
                    issues.append(ValidationIssue(
                        severity=IssueSeverity.WARNING,
                        message=f"Group lists missing member: {child_id}",
                        shape_id=shape.id
                    ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
