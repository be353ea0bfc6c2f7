"""
Version locking helper for Report state transitions.
Prevents concurrent modification corruption.
"""
from django.db.models import F
from core.exceptions import ConflictError


def version_locked_update(queryset, current_version, **updates):
    """
    Perform version-locked update on queryset.

    Args:
        queryset: Django QuerySet to update
        current_version: Expected current version number
        **updates: Fields to update

    Returns:
        int: Number of rows updated (should be 1)

    Raises:
        ConflictError: If version mismatch (concurrent modification detected)
    """
    updated_count = queryset.filter(version=current_version).update(
        **updates,
        version=F("version") + 1,
    )

    if updated_count == 0:
        raise ConflictError(
            "Concurrent modification detected. Re-read the report and retry.",
            {"expectedVersion": current_version},
        )

    return updated_count
