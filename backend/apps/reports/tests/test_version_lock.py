"""
Version lock concurrency tests.

Two admins racing pending -> verified on the same report: exactly one wins,
the other receives CONFLICT and the history holds two entries, not three.
"""

from unittest import mock

from django.db import IntegrityError
from rest_framework.test import APITestCase, APIClient

from core.exceptions import ConflictError
from apps.reports import services
from apps.reports.models import HistoryEntry, Report
from apps.reports.versioning import version_locked_update
from apps.users.models import User


class VersionLockConcurrencyTests(APITestCase):
    """Double verification: second caller gets 409, no duplicate history."""

    def setUp(self):
        self.citizen = User.objects.create_user(
            username="vl_citizen",
            password="pass",
            display_name="VL Citizen",
            role="user",
        )
        self.admin_one = User.objects.create_user(
            username="vl_admin_one",
            password="pass",
            display_name="VL Admin One",
            role="admin",
        )
        self.admin_two = User.objects.create_user(
            username="vl_admin_two",
            password="pass",
            display_name="VL Admin Two",
            role="admin",
        )
        self.report = services.create_report(
            self.citizen,
            description="Large pothole on Main St blocking traffic",
            photo_ref="p1",
            latitude=-6.2,
            longitude=106.8,
        )

    def test_stale_read_loses_at_write_time(self):
        """Second admin validated against a stale snapshot; the write rejects it."""
        stale = services.get_report(self.report.id)

        services.transition_report(self.report.id, self.admin_one, "verified")

        with mock.patch("apps.reports.services.get_report", return_value=stale):
            with self.assertRaises(ConflictError) as ctx:
                services.transition_report(self.report.id, self.admin_two, "verified")

        self.assertEqual(ctx.exception.code, "CONFLICT")
        stored = Report.objects.get(id=self.report.id)
        self.assertEqual(stored.status, "verified")
        self.assertEqual(stored.version, 2)
        self.assertEqual(stored.history.count(), 2)
        self.assertEqual(stored.history.last().actor_id, self.admin_one.id)

    def test_double_verification_over_api_with_expected_version(self):
        client = APIClient()
        url = f"/api/v1/reports/{self.report.id}/transition"

        client.force_authenticate(user=self.admin_one)
        first = client.post(
            url, {"status": "verified", "expectedVersion": 1}, format="json"
        )
        self.assertEqual(first.status_code, 200, getattr(first, "data", first.content))
        self.assertEqual(first.data["data"]["version"], 2)

        client.force_authenticate(user=self.admin_two)
        second = client.post(
            url, {"status": "verified", "expectedVersion": 1}, format="json"
        )
        self.assertEqual(second.status_code, 409, getattr(second, "data", second.content))
        self.assertEqual(second.data["error"]["code"], "CONFLICT")

        self.assertEqual(
            HistoryEntry.objects.filter(report_id=self.report.id).count(), 2
        )

    def test_sequence_collision_maps_to_conflict(self):
        with mock.patch(
            "apps.reports.ledger.HistoryEntry.save",
            side_effect=IntegrityError("duplicate sequence"),
        ):
            with self.assertRaises(ConflictError):
                services.transition_report(self.report.id, self.admin_one, "verified")

        stored = Report.objects.get(id=self.report.id)
        self.assertEqual(stored.status, "pending")
        self.assertEqual(stored.version, 1)


class VersionLockedUpdateTests(APITestCase):
    def setUp(self):
        citizen = User.objects.create_user(
            username="vlu_citizen", password="pass", display_name="VLU", role="user"
        )
        self.report = services.create_report(
            citizen,
            description="Cracked asphalt near the school gate",
            photo_ref="p2",
            latitude=1.0,
            longitude=2.0,
        )

    def test_matching_version_bumps(self):
        updated = version_locked_update(
            Report.objects.filter(id=self.report.id), current_version=1, address="Gate 2"
        )
        self.assertEqual(updated, 1)
        stored = Report.objects.get(id=self.report.id)
        self.assertEqual(stored.version, 2)
        self.assertEqual(stored.address, "Gate 2")

    def test_mismatched_version_raises(self):
        with self.assertRaises(ConflictError) as ctx:
            version_locked_update(
                Report.objects.filter(id=self.report.id), current_version=5, address="x"
            )
        self.assertEqual(ctx.exception.details, {"expectedVersion": 5})
        self.assertEqual(Report.objects.get(id=self.report.id).address, "")
