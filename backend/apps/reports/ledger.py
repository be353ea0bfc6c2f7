"""
Status history ledger - append-only view over a Report's HistoryEntry rows.

Appending is the only write. Callers that also persist the report's status
must do so inside the same transaction as append().
"""

from django.db.models import Max
from django.utils import timezone

from apps.reports.models import HistoryEntry, Report


def next_sequence(report):
    last = report.history.aggregate(last=Max("sequence"))["last"]
    return (last or 0) + 1


def build_entry(report, status, actor, note=None, attachment_ref=None, timestamp=None):
    """
    Build (but do not save) the next HistoryEntry for report.

    The timestamp never goes backwards relative to the report's last update.
    """
    timestamp = timestamp or timezone.now()
    if report.updated_at and timestamp < report.updated_at:
        timestamp = report.updated_at

    return HistoryEntry(
        report=report,
        sequence=next_sequence(report),
        status=status,
        actor=actor,
        note=(note or "").strip(),
        attachment_ref=attachment_ref or "",
        timestamp=timestamp,
    )


def append(report, entry):
    """
    Append entry to report's history and mirror it onto the report.

    Sets report.status and report.updated_at from the entry; never touches
    existing entries.
    """
    entry.report = report
    entry.save(force_insert=True)
    report.status = entry.status
    report.updated_at = entry.timestamp
    return entry


def list_chronological(report):
    """History in insertion order."""
    return list(report.history.select_related("actor").order_by("sequence"))


def list_recent_first(report):
    """History newest first; sequence breaks timestamp ties."""
    return list(
        report.history.select_related("actor").order_by("-timestamp", "-sequence")
    )


def latest_entry(report):
    return report.history.order_by("-sequence").first()


def evidence_refs(report):
    """Every storage reference owned by report: photo first, then attachments."""
    refs = [report.photo_ref] if report.photo_ref else []
    for ref in (
        report.history.exclude(attachment_ref="")
        .order_by("sequence")
        .values_list("attachment_ref", flat=True)
    ):
        if ref not in refs:
            refs.append(ref)
    return refs


def shared_refs(report, refs):
    """Subset of refs still referenced by some other report or its history."""
    if not refs:
        return set()
    photos = (
        Report.objects.exclude(id=report.id)
        .filter(photo_ref__in=refs)
        .values_list("photo_ref", flat=True)
    )
    attachments = (
        HistoryEntry.objects.exclude(report_id=report.id)
        .filter(attachment_ref__in=refs)
        .values_list("attachment_ref", flat=True)
    )
    return set(photos) | set(attachments)
