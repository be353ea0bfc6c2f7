# Initial Report and HistoryEntry models.

import uuid
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Report",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("description", models.TextField(max_length=1000)),
                ("photo_ref", models.CharField(max_length=512)),
                (
                    "latitude",
                    models.FloatField(
                        validators=[
                            django.core.validators.MinValueValidator(-90),
                            django.core.validators.MaxValueValidator(90),
                        ]
                    ),
                ),
                (
                    "longitude",
                    models.FloatField(
                        validators=[
                            django.core.validators.MinValueValidator(-180),
                            django.core.validators.MaxValueValidator(180),
                        ]
                    ),
                ),
                (
                    "address",
                    models.CharField(blank=True, default="", max_length=200),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                            ("in_progress", "In Progress"),
                            ("working", "Working"),
                            ("completed", "Completed"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                ("version", models.IntegerField(default=1)),
                (
                    "reporter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "reports",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=[
                                "pending",
                                "verified",
                                "rejected",
                                "in_progress",
                                "working",
                                "completed",
                            ]
                        ),
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
                        condition=models.Q(version__gte=1),
                        name="report_version_positive",
                    ),
                ],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="idx_report_status_created",
                    ),
                    models.Index(
                        fields=["reporter", "created_at"],
                        name="idx_report_reporter_created",
                    ),
                    models.Index(fields=["updated_at"], name="idx_report_updated"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HistoryEntry",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("sequence", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                            ("in_progress", "In Progress"),
                            ("working", "Working"),
                            ("completed", "Completed"),
                        ],
                        max_length=20,
                    ),
                ),
                ("note", models.CharField(blank=True, default="", max_length=500)),
                (
                    "attachment_ref",
                    models.CharField(blank=True, default="", max_length=512),
                ),
                ("timestamp", models.DateTimeField()),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="report_transitions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="reports.report",
                    ),
                ),
            ],
            options={
                "db_table": "report_history",
                "ordering": ["sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("report", "sequence"),
                        name="unique_report_history_sequence",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(sequence__gte=1),
                        name="history_sequence_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=[
                                "pending",
                                "verified",
                                "rejected",
                                "in_progress",
                                "working",
                                "completed",
                            ]
                        ),
                        name="valid_history_status",
                    ),
                ],
            },
        ),
    ]
