"""
Report workflow services - all mutations flow through this layer.

Rules:
- Validation and authorization run before any write
- Status changes use version-locked updates (optimistic concurrency)
- Status, updated_at and the history entry are written in one transaction
- No direct model.save() from views
"""

import logging
import math

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from core.middleware import get_current_request_id
from apps.reports import ledger
from apps.reports.models import Report
from apps.reports.signals import evidence_released
from apps.reports.state_machine import (
    INITIAL_STATUS,
    allowed_targets,
    authorize_transition,
    parse_status,
    validate_payload,
    validate_transition,
)
from apps.reports.versioning import version_locked_update

logger = logging.getLogger(__name__)

DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000
ADDRESS_MAX_LENGTH = 200
CREATION_NOTE = "report created"


def _is_admin(actor):
    return getattr(actor, "role", None) == "admin"


def _parse_coordinate(value, field, low, high, errors):
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors[field] = [f"{field.capitalize()} must be a number"]
        return None

    if not math.isfinite(number) or number < low or number > high:
        errors[field] = [f"{field.capitalize()} must be between {low} and {high}"]
        return None

    return number


def _parse_expected_version(value):
    if value is None:
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(
            "Invalid expected version",
            {"expectedVersion": ["Must be a positive integer"]},
        )
    return value


def _validate_report_fields(reporter, description, photo_ref, latitude, longitude, address):
    """Collect every field violation; raise once with all of them."""
    errors = {}

    if reporter is None or getattr(reporter, "id", None) is None:
        errors["reporterId"] = ["Reporter is required"]

    description = description.strip() if isinstance(description, str) else ""
    if not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
        errors["description"] = [
            f"Description must be between {DESCRIPTION_MIN_LENGTH} and "
            f"{DESCRIPTION_MAX_LENGTH} characters"
        ]

    photo_ref = photo_ref.strip() if isinstance(photo_ref, str) else ""
    if not photo_ref:
        errors["photoRef"] = ["Photo is required"]

    lat = _parse_coordinate(latitude, "latitude", -90, 90, errors)
    lng = _parse_coordinate(longitude, "longitude", -180, 180, errors)

    address = address.strip() if isinstance(address, str) else ""
    if len(address) > ADDRESS_MAX_LENGTH:
        errors["address"] = [f"Address cannot exceed {ADDRESS_MAX_LENGTH} characters"]

    if errors:
        raise ValidationError("Validation failed", errors)

    return {
        "description": description,
        "photo_ref": photo_ref,
        "latitude": lat,
        "longitude": lng,
        "address": address,
    }


def create_report(reporter, description, photo_ref, latitude, longitude, address=None):
    """
    Create a new Report with status pending and its seeded history entry.

    Args:
        reporter: Submitting user (actor with id and role)
        description: 10-1000 characters after trimming
        photo_ref: Storage reference of the primary evidence image
        latitude: -90..90
        longitude: -180..180
        address: Optional human-readable address

    Returns:
        Report: Created report

    Raises:
        ValidationError: Listing every violated field
        StorageError: If the database is unavailable
    """
    fields = _validate_report_fields(
        reporter, description, photo_ref, latitude, longitude, address
    )

    now = timezone.now()
    try:
        with transaction.atomic():
            report = Report.objects.create(
                reporter_id=reporter.id,
                status=INITIAL_STATUS,
                created_at=now,
                updated_at=now,
                version=1,
                **fields,
            )
            ledger.append(
                report,
                ledger.build_entry(
                    report,
                    INITIAL_STATUS,
                    reporter,
                    note=CREATION_NOTE,
                    timestamp=now,
                ),
            )
    except DatabaseError as exc:
        logger.exception("report_create_failed", extra={"operation": "CREATE_REPORT"})
        raise StorageError("Report could not be stored") from exc

    logger.info(
        "report_created",
        extra={
            "operation": "CREATE_REPORT",
            "entity_id": str(report.id),
            "actor_id": str(reporter.id),
            "request_id": get_current_request_id(),
        },
    )
    return report


def get_report(report_id):
    """
    Load a Report by id.

    Raises:
        NotFoundError: If no report has this id
    """
    try:
        return Report.objects.select_related("reporter").get(id=report_id)
    except (Report.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Report {report_id} does not exist")


def get_report_for_actor(report_id, actor):
    """
    Load a Report the actor is allowed to see.

    Admins see every report; other users only their own.

    Raises:
        NotFoundError: If no report has this id
        PermissionDeniedError: If actor is neither admin nor the reporter
    """
    report = get_report(report_id)
    if not _is_admin(actor) and report.reporter_id != getattr(actor, "id", None):
        raise PermissionDeniedError("You can only view your own reports")
    return report


def transition_report(
    report_id,
    actor,
    requested_status,
    note=None,
    attachment_ref=None,
    expected_version=None,
):
    """
    Move a Report to requested_status and record the history entry.

    Args:
        report_id: Report identifier
        actor: Acting user (must hold a role allowed for the target)
        requested_status: Target status
        note: Optional note (<= 500 characters)
        attachment_ref: Optional evidence reference (in_progress, working,
            completed only)
        expected_version: Optional version the caller last saw

    Returns:
        Report: Updated report

    Raises:
        NotFoundError: If the report does not exist
        UnknownStatusError: If requested_status is not a workflow status
        IllegalTransitionError: If requested_status is not reachable
        PermissionDeniedError: If actor lacks the required role
        ValidationError: If note, attachment or expected_version are not
            acceptable
        ConflictError: If another transition won the race
        StorageError: If the database is unavailable
    """
    expected_version = _parse_expected_version(expected_version)
    report = get_report(report_id)
    from_status = report.status
    current_version = report.version

    # Stale reads are rejected before any workflow validation
    if expected_version is not None and expected_version != current_version:
        raise ConflictError(
            "Report was modified since it was last read",
            {"expectedVersion": expected_version, "currentVersion": current_version},
        )

    validate_transition(from_status, requested_status)
    target = parse_status(requested_status)
    authorize_transition(actor, target)
    validate_payload(target, note=note, attachment_ref=attachment_ref)

    entry = ledger.build_entry(
        report, target, actor, note=note, attachment_ref=attachment_ref
    )

    try:
        with transaction.atomic():
            version_locked_update(
                Report.objects.filter(id=report.id, status=from_status),
                current_version=current_version,
                status=target,
                updated_at=entry.timestamp,
            )
            ledger.append(report, entry)
    except ConflictError:
        logger.warning(
            "report_transition_conflict",
            extra={
                "operation": "TRANSITION_REPORT",
                "entity_id": str(report.id),
                "actor_id": str(actor.id),
                "from_status": from_status,
                "to_status": target.value,
                "request_id": get_current_request_id(),
            },
        )
        raise
    except IntegrityError as exc:
        raise ConflictError(
            "Concurrent modification detected. Re-read the report and retry.",
            {"expectedVersion": current_version},
        ) from exc
    except DatabaseError as exc:
        logger.exception(
            "report_transition_failed",
            extra={"operation": "TRANSITION_REPORT", "entity_id": str(report.id)},
        )
        raise StorageError("Report transition could not be stored") from exc

    report.version = current_version + 1

    logger.info(
        "report_transitioned",
        extra={
            "operation": "TRANSITION_REPORT",
            "entity_id": str(report.id),
            "actor_id": str(actor.id),
            "from_status": from_status,
            "to_status": target.value,
            "request_id": get_current_request_id(),
        },
    )
    return report


def delete_report(report_id, actor):
    """
    Delete a Report and release its evidence references.

    Args:
        report_id: Report identifier
        actor: Reporter of the report or an admin

    Returns:
        list: Released storage references (photo first, then attachments),
            excluding refs still used by other reports

    Raises:
        NotFoundError: If the report does not exist
        PermissionDeniedError: If actor is neither the reporter nor an admin
        StorageError: If the database is unavailable
    """
    report = get_report(report_id)

    if actor is None or (
        not _is_admin(actor) and report.reporter_id != getattr(actor, "id", None)
    ):
        raise PermissionDeniedError(
            "Only the reporter or an administrator can delete this report"
        )

    try:
        with transaction.atomic():
            owned = ledger.evidence_refs(report)
            # Refs another report still points at are kept in storage
            shared = ledger.shared_refs(report, owned)
            refs = [ref for ref in owned if ref not in shared]
            report.delete()
    except DatabaseError as exc:
        logger.exception(
            "report_delete_failed",
            extra={"operation": "DELETE_REPORT", "entity_id": str(report_id)},
        )
        raise StorageError("Report could not be deleted") from exc

    for receiver, response in evidence_released.send_robust(
        sender=Report, report_id=report_id, refs=refs
    ):
        if isinstance(response, Exception):
            logger.error(
                "evidence_release_failed",
                exc_info=response,
                extra={
                    "operation": "DELETE_REPORT",
                    "entity_id": str(report_id),
                    "receiver": getattr(receiver, "__name__", repr(receiver)),
                },
            )

    logger.info(
        "report_deleted",
        extra={
            "operation": "DELETE_REPORT",
            "entity_id": str(report_id),
            "actor_id": str(actor.id),
            "retained_refs": len(shared),
            "request_id": get_current_request_id(),
        },
    )
    return refs


def allowed_transitions_for(report, actor=None):
    """Statuses the actor could move report to next (empty for non-admins)."""
    if actor is not None and not _is_admin(actor):
        return []
    return allowed_targets(report.status)

