"""
File storage collaborator for report evidence.

Uploads are stored through Django's default_storage and identified by the
returned storage name. The workflow never reads file contents; it only keeps
and forwards these references. Files are removed when evidence_released fires.
"""

import logging
import os
import uuid

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.dispatch import receiver

from core.exceptions import ValidationError
from apps.reports.signals import evidence_released

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def store_evidence(file, folder="reports", field="photo"):
    """
    Store an uploaded image and return its reference.

    Raises:
        ValidationError: If the file is missing, too large or not an image
    """
    if not file:
        raise ValidationError("File is required", {field: ["File is required"]})

    extension = os.path.splitext(file.name or "")[1].lower()
    content_type = getattr(file, "content_type", "") or ""
    if extension not in ALLOWED_EXTENSIONS or not content_type.startswith("image/"):
        raise ValidationError(
            "Only image uploads are allowed",
            {field: [f"Allowed types: {', '.join(ALLOWED_EXTENSIONS)}"]},
        )

    if file.size > settings.REPORTS_MAX_UPLOAD_BYTES:
        raise ValidationError(
            "Uploaded file is too large",
            {field: [f"Maximum size is {settings.REPORTS_MAX_UPLOAD_BYTES} bytes"]},
        )

    file_name = f"{folder}/{uuid.uuid4().hex}{extension}"
    return default_storage.save(file_name, ContentFile(file.read()))


def discard_evidence(refs):
    """Delete stored files for refs; refs outside local storage are skipped."""
    removed = []
    for ref in refs:
        try:
            if default_storage.exists(ref):
                default_storage.delete(ref)
                removed.append(ref)
        except SuspiciousFileOperation:
            logger.warning(
                "evidence_ref_not_local", extra={"operation": "RELEASE_EVIDENCE", "ref": ref}
            )
    return removed


@receiver(evidence_released, dispatch_uid="reports.storage.release_evidence")
def release_evidence(sender, refs, report_id=None, **kwargs):
    removed = discard_evidence(refs)
    logger.info(
        "evidence_released",
        extra={
            "operation": "RELEASE_EVIDENCE",
            "entity_id": str(report_id) if report_id else None,
            "released": len(removed),
        },
    )
    return removed
