"""
API tests for apps.reports.views.

Covers the report endpoints, their permission rules and the error envelope.
"""

import shutil
import tempfile
import uuid
from unittest import mock

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.reports import services
from apps.reports.models import HistoryEntry, Report
from apps.users.models import User

DESCRIPTION = "Large pothole on Main St blocking traffic"
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


def _png(name="photo.png"):
    return SimpleUploadedFile(name, PNG_BYTES, content_type="image/png")


class ReportApiTestBase(APITestCase):
    def setUp(self):
        self.citizen = User.objects.create_user(
            username=f"citizen_{uuid.uuid4().hex[:8]}",
            password="testpass123",
            display_name="Citizen",
            role="user",
        )
        self.other = User.objects.create_user(
            username=f"other_{uuid.uuid4().hex[:8]}",
            password="testpass123",
            display_name="Other",
            role="user",
        )
        self.admin = User.objects.create_user(
            username=f"admin_{uuid.uuid4().hex[:8]}",
            password="testpass123",
            display_name="Admin",
            role="admin",
        )

    def _create(self, reporter=None, **overrides):
        fields = {
            "description": DESCRIPTION,
            "photo_ref": "p1",
            "latitude": -6.2,
            "longitude": 106.8,
        }
        fields.update(overrides)
        return services.create_report(reporter or self.citizen, **fields)

    def assertError(self, response, status_code, code):
        self.assertEqual(
            response.status_code, status_code, getattr(response, "data", response.content)
        )
        body = response.json()
        self.assertEqual(body["error"]["code"], code)
        self.assertIn("message", body["error"])
        self.assertIn("details", body["error"])
        return body["error"]


class CreateReportApiTests(ReportApiTestBase):
    def test_create_with_photo_ref(self):
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": DESCRIPTION,
                "photoRef": "p1",
                "latitude": -6.2,
                "longitude": 106.8,
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

        data = response.json()["data"]
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["reporterId"], str(self.citizen.id))
        self.assertEqual(data["location"], {"latitude": -6.2, "longitude": 106.8})
        self.assertEqual(len(data["history"]), 1)
        self.assertEqual(data["history"][0]["actorId"], str(self.citizen.id))
        self.assertEqual(data["allowedTransitions"], [])

    def test_create_validation_error_lists_fields(self):
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            reverse("reports:create-or-list-reports"),
            {"description": "too short", "photoRef": "p1", "latitude": 0, "longitude": 0},
            format="json",
        )
        error = self.assertError(response, 400, "VALIDATION_ERROR")
        self.assertIn("description", error["details"])
        self.assertEqual(Report.objects.count(), 0)

    def test_create_requires_authentication(self):
        response = self.client.post(
            reverse("reports:create-or-list-reports"), {}, format="json"
        )
        self.assertError(response, 401, "UNAUTHORIZED")


class UploadApiTests(ReportApiTestBase):
    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)
        super().tearDown()

    def test_create_with_uploaded_photo(self):
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": DESCRIPTION,
                "latitude": "-6.2",
                "longitude": "106.8",
                "photo": _png(),
            },
            format="multipart",
        )
        self.assertEqual(response.status_code, 201, response.data)

        photo_ref = response.json()["data"]["photoRef"]
        self.assertTrue(photo_ref.startswith("reports/"))
        self.assertTrue(default_storage.exists(photo_ref))

    def test_rejected_report_discards_uploaded_photo(self):
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            reverse("reports:create-or-list-reports"),
            {"description": "short", "latitude": "0", "longitude": "0", "photo": _png()},
            format="multipart",
        )
        self.assertError(response, 400, "VALIDATION_ERROR")
        _, files = default_storage.listdir("reports")
        self.assertEqual(files, [])

    def test_non_image_upload_is_rejected(self):
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": DESCRIPTION,
                "latitude": "0",
                "longitude": "0",
                "photo": SimpleUploadedFile(
                    "notes.txt", b"hello", content_type="text/plain"
                ),
            },
            format="multipart",
        )
        error = self.assertError(response, 400, "VALIDATION_ERROR")
        self.assertIn("photo", error["details"])

    def test_transition_with_attachment_and_delete_releases_files(self):
        self.client.force_authenticate(self.citizen)
        created = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": DESCRIPTION,
                "latitude": "1",
                "longitude": "1",
                "photo": _png(),
            },
            format="multipart",
        )
        report_id = created.json()["data"]["id"]
        photo_ref = created.json()["data"]["photoRef"]

        self.client.force_authenticate(self.admin)
        url = reverse("reports:transition-report", args=[report_id])
        self.client.post(url, {"status": "verified"}, format="json")
        response = self.client.post(
            url,
            {"status": "in_progress", "note": "crew on site", "attachment": _png("crew.png")},
            format="multipart",
        )
        self.assertEqual(response.status_code, 200, response.data)
        attachment_ref = response.json()["data"]["history"][-1]["attachmentRef"]
        self.assertTrue(attachment_ref.startswith("attachments/"))
        self.assertTrue(default_storage.exists(attachment_ref))

        response = self.client.delete(
            reverse("reports:get-or-delete-report", args=[report_id])
        )
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(
            response.json()["data"]["releasedRefs"], [photo_ref, attachment_ref]
        )
        self.assertFalse(default_storage.exists(photo_ref))
        self.assertFalse(default_storage.exists(attachment_ref))


    def test_deleting_report_that_reuses_another_photo_keeps_the_file(self):
        self.client.force_authenticate(self.citizen)
        created = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": DESCRIPTION,
                "latitude": "1",
                "longitude": "1",
                "photo": _png(),
            },
            format="multipart",
        )
        photo_ref = created.json()["data"]["photoRef"]

        self.client.force_authenticate(self.other)
        copied = self.client.post(
            reverse("reports:create-or-list-reports"),
            {
                "description": "Same pothole, reported again",
                "photoRef": photo_ref,
                "latitude": 1,
                "longitude": 1,
            },
            format="json",
        )
        self.assertEqual(copied.status_code, 201, copied.data)

        response = self.client.delete(
            reverse(
                "reports:get-or-delete-report", args=[copied.json()["data"]["id"]]
            )
        )
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.json()["data"]["releasedRefs"], [])
        self.assertTrue(default_storage.exists(photo_ref))

    def test_unexpected_transition_failure_discards_attachment(self):
        report = self._create()
        services.transition_report(report.id, self.admin, "verified")

        self.client.force_authenticate(self.admin)
        with mock.patch(
            "apps.reports.views.services.transition_report",
            side_effect=RuntimeError("boom"),
        ):
            response = self.client.post(
                reverse("reports:transition-report", args=[report.id]),
                {"status": "in_progress", "attachment": _png("crew.png")},
                format="multipart",
            )

        self.assertError(response, 500, "INTERNAL_ERROR")
        _, files = default_storage.listdir("attachments")
        self.assertEqual(files, [])


class ListReportApiTests(ReportApiTestBase):
    def test_admin_lists_every_report(self):
        self._create()
        self._create(reporter=self.other)

        self.client.force_authenticate(self.admin)
        response = self.client.get(reverse("reports:create-or-list-reports"))
        self.assertEqual(response.status_code, 200)

        data = response.json()["data"]
        self.assertEqual(data["totalCount"], 2)
        self.assertEqual(data["page"], 1)
        self.assertEqual(data["pageSize"], 10)
        self.assertEqual(data["pageCount"], 1)

    def test_citizen_lists_only_own_reports(self):
        mine = self._create()
        self._create(reporter=self.other)

        self.client.force_authenticate(self.citizen)
        response = self.client.get(reverse("reports:create-or-list-reports"))
        items = response.json()["data"]["items"]
        self.assertEqual([item["id"] for item in items], [str(mine.id)])

    def test_mine_with_search(self):
        self._create(description="Sinkhole by the river bank")
        self._create(description="Faded zebra crossing paint")

        self.client.force_authenticate(self.citizen)
        response = self.client.get(
            reverse("reports:list-my-reports"), {"search": "river"}
        )
        self.assertEqual(response.json()["data"]["totalCount"], 1)

    def test_status_filter_and_invalid_values(self):
        self.client.force_authenticate(self.admin)
        url = reverse("reports:create-or-list-reports")

        self.assertError(self.client.get(url, {"status": "archived"}), 400, "UNKNOWN_STATUS")
        self.assertError(self.client.get(url, {"page": 0}), 400, "INVALID_PAGE")
        self.assertError(self.client.get(url, {"page": "two"}), 400, "VALIDATION_ERROR")
        self.assertError(self.client.get(url, {"sortBy": "nope"}), 400, "VALIDATION_ERROR")

    def test_stats_and_recent(self):
        report = self._create()
        self._create(reporter=self.other)
        services.transition_report(report.id, self.admin, "verified")

        self.client.force_authenticate(self.admin)
        stats = self.client.get(reverse("reports:report-stats")).json()["data"]
        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["byStatus"]["verified"], 1)
        self.assertEqual(stats["byStatus"]["completed"], 0)

        recent = self.client.get(reverse("reports:recent-reports"), {"limit": 1})
        self.assertEqual([r["id"] for r in recent.json()["data"]], [str(report.id)])

        self.client.force_authenticate(self.other)
        own = self.client.get(reverse("reports:report-stats")).json()["data"]
        self.assertEqual(own["total"], 1)


class ReportDetailApiTests(ReportApiTestBase):
    def test_owner_and_admin_can_view(self):
        report = self._create()
        url = reverse("reports:get-or-delete-report", args=[report.id])

        self.client.force_authenticate(self.citizen)
        self.assertEqual(self.client.get(url).status_code, 200)

        self.client.force_authenticate(self.admin)
        data = self.client.get(url).json()["data"]
        self.assertEqual(data["allowedTransitions"], ["verified", "rejected"])

    def test_other_citizen_is_forbidden(self):
        report = self._create()
        self.client.force_authenticate(self.other)
        response = self.client.get(
            reverse("reports:get-or-delete-report", args=[report.id])
        )
        self.assertError(response, 403, "FORBIDDEN")

    def test_missing_report(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(
            reverse("reports:get-or-delete-report", args=[uuid.uuid4()])
        )
        self.assertError(response, 404, "NOT_FOUND")

    def test_history_orders(self):
        report = self._create()
        services.transition_report(report.id, self.admin, "verified", note="ok")
        url = reverse("reports:report-history", args=[report.id])

        self.client.force_authenticate(self.citizen)
        chronological = self.client.get(url).json()["data"]
        self.assertEqual([e["status"] for e in chronological], ["pending", "verified"])

        recent = self.client.get(url, {"order": "recent"}).json()["data"]
        self.assertEqual([e["status"] for e in recent], ["verified", "pending"])
        self.assertEqual(recent[0]["actorName"], "Admin")

        self.assertError(self.client.get(url, {"order": "sideways"}), 400, "VALIDATION_ERROR")


class TransitionApiTests(ReportApiTestBase):
    def _url(self, report):
        return reverse("reports:transition-report", args=[report.id])

    def test_admin_verifies(self):
        report = self._create()
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            self._url(report),
            {"status": "verified", "note": "confirmed on-site"},
            format="json",
        )
        self.assertEqual(response.status_code, 200, response.data)

        data = response.json()["data"]
        self.assertEqual(data["status"], "verified")
        self.assertEqual(data["version"], 2)
        self.assertEqual(len(data["history"]), 2)
        self.assertEqual(data["history"][1]["note"], "confirmed on-site")
        self.assertEqual(data["allowedTransitions"], ["in_progress"])

    def test_illegal_transition_envelope(self):
        report = self._create()
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            self._url(report), {"status": "in_progress"}, format="json"
        )
        error = self.assertError(response, 400, "ILLEGAL_TRANSITION")
        self.assertEqual(
            error["details"],
            {
                "from": "pending",
                "to": "in_progress",
                "allowedTargets": ["verified", "rejected"],
            },
        )
        self.assertEqual(HistoryEntry.objects.filter(report=report).count(), 1)

    def test_citizen_cannot_transition(self):
        report = self._create()
        self.client.force_authenticate(self.citizen)
        response = self.client.post(
            self._url(report), {"status": "verified"}, format="json"
        )
        self.assertError(response, 403, "FORBIDDEN")

    def test_foreign_citizen_sees_nothing_about_the_report(self):
        report = self._create()
        services.transition_report(report.id, self.admin, "verified")

        self.client.force_authenticate(self.other)
        response = self.client.post(
            self._url(report), {"status": "completed"}, format="json"
        )
        error = self.assertError(response, 403, "FORBIDDEN")
        self.assertNotIn("from", error["details"])
        self.assertNotIn("allowedTargets", error["details"])
        self.assertNotIn("verified", response.content.decode())
        self.assertEqual(HistoryEntry.objects.filter(report=report).count(), 2)

    def test_missing_status(self):
        report = self._create()
        self.client.force_authenticate(self.admin)
        error = self.assertError(
            self.client.post(self._url(report), {}, format="json"),
            400,
            "VALIDATION_ERROR",
        )
        self.assertIn("status", error["details"])

    def test_unknown_status(self):
        report = self._create()
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            self._url(report), {"status": "archived"}, format="json"
        )
        self.assertError(response, 400, "UNKNOWN_STATUS")


class DeleteReportApiTests(ReportApiTestBase):
    def test_other_citizen_cannot_delete(self):
        report = self._create()
        self.client.force_authenticate(self.other)
        response = self.client.delete(
            reverse("reports:get-or-delete-report", args=[report.id])
        )
        self.assertError(response, 403, "FORBIDDEN")
        self.assertTrue(Report.objects.filter(id=report.id).exists())

    def test_owner_deletes(self):
        report = self._create()
        self.client.force_authenticate(self.citizen)
        response = self.client.delete(
            reverse("reports:get-or-delete-report", args=[report.id])
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["releasedRefs"], ["p1"])
        self.assertFalse(Report.objects.filter(id=report.id).exists())
