"""
Report domain models: Report and its embedded HistoryEntry ledger.

A Report owns its history (composition). History rows are append-only and
are removed only when their Report is deleted.
"""

import uuid
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class ReportStatus(models.TextChoices):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    WORKING = "working"
    COMPLETED = "completed"


class Report(models.Model):
    """Report model - a single citizen-submitted road damage record."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reporter = models.ForeignKey(
        "users.User", on_delete=models.CASCADE, related_name="reports"
    )
    description = models.TextField(max_length=1000)
    photo_ref = models.CharField(max_length=512)
    latitude = models.FloatField(
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    longitude = models.FloatField(
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )
    address = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=ReportStatus.choices, default=ReportStatus.PENDING
    )
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    # Optimistic concurrency token, bumped on every transition
    version = models.IntegerField(default=1)

    class Meta:
        db_table = "reports"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(status__in=ReportStatus.values),
                name="valid_report_status",
            ),
            models.CheckConstraint(
                condition=models.Q(latitude__gte=-90, latitude__lte=90),
                name="latitude_in_range",
            ),
            models.CheckConstraint(
                condition=models.Q(longitude__gte=-180, longitude__lte=180),
                name="longitude_in_range",
            ),
            models.CheckConstraint(
                condition=models.Q(version__gte=1), name="report_version_positive"
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="idx_report_status_created"),
            models.Index(
                fields=["reporter", "created_at"], name="idx_report_reporter_created"
            ),
            models.Index(fields=["updated_at"], name="idx_report_updated"),
        ]

    def __str__(self):
        return f"{self.description[:40]} ({self.status})"


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk mutation of ledger rows."""

    def update(self, **kwargs):
        raise ValueError("History entries are append-only. Updates are not allowed.")

    def delete(self):
        raise ValueError(
            "History entries are append-only. Delete the owning report instead."
        )


class HistoryEntry(models.Model):
    """HistoryEntry model - one immutable status change of a Report."""

    id = models.BigAutoField(primary_key=True)
    report = models.ForeignKey(
        Report, on_delete=models.CASCADE, related_name="history"
    )
    sequence = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=ReportStatus.choices)
    actor = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="report_transitions",
    )
    note = models.CharField(max_length=500, blank=True, default="")
    attachment_ref = models.CharField(max_length=512, blank=True, default="")
    timestamp = models.DateTimeField()

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        db_table = "report_history"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["report", "sequence"], name="unique_report_history_sequence"
            ),
            models.CheckConstraint(
                condition=models.Q(sequence__gte=1), name="history_sequence_positive"
            ),
            models.CheckConstraint(
                condition=models.Q(status__in=ReportStatus.values),
                name="valid_history_status",
            ),
        ]

    def __str__(self):
        return f"{self.report_id} #{self.sequence} -> {self.status}"

    def save(self, *args, **kwargs):
        """Override save to prevent updates."""
        if not self._state.adding:
            raise ValueError(
                "History entries are append-only. Updates are not allowed."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Override delete to prevent deletion."""
        raise ValueError(
            "History entries are append-only. Delete the owning report instead."
        )
