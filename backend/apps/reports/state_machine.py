"""
State machine enforcement for Report status.

Single source of truth for the repair workflow graph:

    pending -> verified -> in_progress -> working -> completed
    pending -> rejected

rejected and completed are terminal. There is no path back to pending.
"""

from core.exceptions import (
    IllegalTransitionError,
    PermissionDeniedError,
    UnknownStatusError,
    ValidationError,
)
from apps.reports.models import ReportStatus

INITIAL_STATUS = ReportStatus.PENDING

# Allowed transitions for Report
REPORT_TRANSITIONS = {
    ReportStatus.PENDING: [ReportStatus.VERIFIED, ReportStatus.REJECTED],
    ReportStatus.VERIFIED: [ReportStatus.IN_PROGRESS],
    ReportStatus.IN_PROGRESS: [ReportStatus.WORKING],
    ReportStatus.WORKING: [ReportStatus.COMPLETED],
    ReportStatus.REJECTED: [],  # Terminal
    ReportStatus.COMPLETED: [],  # Terminal
}

# Roles allowed to move a report INTO each status
TRANSITION_ROLES = {
    ReportStatus.VERIFIED: frozenset({"admin"}),
    ReportStatus.REJECTED: frozenset({"admin"}),
    ReportStatus.IN_PROGRESS: frozenset({"admin"}),
    ReportStatus.WORKING: frozenset({"admin"}),
    ReportStatus.COMPLETED: frozenset({"admin"}),
}

# Targets whose history entry may carry an evidence attachment
ATTACHMENT_TARGETS = frozenset(
    {ReportStatus.IN_PROGRESS, ReportStatus.WORKING, ReportStatus.COMPLETED}
)

NOTE_MAX_LENGTH = 500


def parse_status(value):
    """Return the ReportStatus for value or raise UnknownStatusError."""
    try:
        return ReportStatus(value)
    except ValueError:
        raise UnknownStatusError(value)


def allowed_targets(status):
    """List the statuses reachable from status, in table order."""
    return [target.value for target in REPORT_TRANSITIONS[parse_status(status)]]


def is_terminal_state(status):
    """Check if a state is terminal (no transitions allowed)."""
    return not REPORT_TRANSITIONS[parse_status(status)]


def validate_transition(current_status, target_status):
    """
    Validate a state transition.

    Args:
        current_status: Current state
        target_status: Requested state

    Returns:
        bool: True if transition is allowed

    Raises:
        UnknownStatusError: If either state is not part of the workflow
        IllegalTransitionError: If target is not reachable from current state
    """
    current = parse_status(current_status)
    target = parse_status(target_status)

    if target not in REPORT_TRANSITIONS[current]:
        raise IllegalTransitionError(
            current.value,
            target.value,
            [allowed.value for allowed in REPORT_TRANSITIONS[current]],
        )

    return True


def authorize_transition(actor, target_status):
    """
    Check that actor may move a report into target_status.

    Returns the set of roles that were accepted.

    Raises:
        PermissionDeniedError: If actor is missing or lacks a required role
    """
    target = parse_status(target_status)
    required_roles = TRANSITION_ROLES.get(target, frozenset())

    if actor is None or getattr(actor, "id", None) is None:
        raise PermissionDeniedError(
            "An authenticated actor is required for status transitions",
            {"to": target.value},
        )

    role = getattr(actor, "role", None)
    if role not in required_roles:
        raise PermissionDeniedError(
            f"Role '{role}' cannot move reports to {target.value}",
            {"to": target.value, "requiredRoles": sorted(required_roles)},
        )

    return required_roles


def validate_payload(target_status, note=None, attachment_ref=None):
    """
    Check the note/attachment carried by a transition into target_status.

    Raises:
        ValidationError: listing every offending field
    """
    target = parse_status(target_status)
    errors = {}

    if note is not None and len(note) > NOTE_MAX_LENGTH:
        errors["note"] = [f"Note cannot exceed {NOTE_MAX_LENGTH} characters"]

    if attachment_ref and target not in ATTACHMENT_TARGETS:
        errors["attachmentRef"] = [
            f"Transitions to {target.value} accept a note only, not an attachment"
        ]

    if errors:
        raise ValidationError("Invalid transition payload", errors)
