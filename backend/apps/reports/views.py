"""
Report API views.

All mutations flow through service layer.
All endpoints define permission_classes per API contract.
"""

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from core.exceptions import ValidationError
from core.permissions import IsReporterOrAdmin
from apps.reports import ledger, selectors, services, storage
from apps.reports.serializers import (
    HistoryEntrySerializer,
    ReportDetailSerializer,
    ReportSerializer,
    TransitionSerializer,
)


def _int_param(request, name, default=None):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid {name} parameter", {name: ["Must be an integer"]}
        )


def _page_payload(report_page):
    return {
        "items": ReportSerializer(report_page.items, many=True).data,
        "totalCount": report_page.total_count,
        "pageCount": report_page.page_count,
        "page": report_page.page,
        "pageSize": report_page.page_size,
    }


def _is_admin(user):
    return getattr(user, "role", None) == "admin"


@api_view(["GET", "POST"])
@permission_classes([IsReporterOrAdmin])
def create_or_list_reports(request):
    """
    POST /api/v1/reports - Create a report (multipart photo or photoRef)
    GET /api/v1/reports - Admin: all reports by status; user: own reports
    """
    if request.method == "POST":
        return _create_report(request)

    page = _int_param(request, "page", 1)
    page_size = _int_param(request, "limit")
    status_filter = request.query_params.get("status") or None

    if _is_admin(request.user):
        report_page = selectors.list_by_status(
            status_filter,
            page=page,
            page_size=page_size,
            sort_field=request.query_params.get("sortBy", "createdAt"),
            sort_direction=request.query_params.get("sortOrder", "desc"),
        )
    else:
        report_page = selectors.list_by_owner(
            request.user.id,
            page=page,
            page_size=page_size,
            status_filter=status_filter,
            search_text=request.query_params.get("search"),
        )

    return Response({"data": _page_payload(report_page)}, status=status.HTTP_200_OK)


def _create_report(request):
    photo = request.FILES.get("photo")
    photo_ref = request.data.get("photoRef")
    stored_ref = None

    if photo is not None:
        stored_ref = storage.store_evidence(photo, field="photo")
        photo_ref = stored_ref

    try:
        report = services.create_report(
            request.user,
            description=request.data.get("description"),
            photo_ref=photo_ref,
            latitude=request.data.get("latitude"),
            longitude=request.data.get("longitude"),
            address=request.data.get("address"),
        )
    except Exception:
        if stored_ref:
            storage.discard_evidence([stored_ref])
        raise

    serializer = ReportDetailSerializer(report, context={"actor": request.user})
    return Response({"data": serializer.data}, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsReporterOrAdmin])
def list_my_reports(request):
    """
    GET /api/v1/reports/mine

    Current user's reports, filtered by status and free-text search.
    """
    report_page = selectors.list_by_owner(
        request.user.id,
        page=_int_param(request, "page", 1),
        page_size=_int_param(request, "limit"),
        status_filter=request.query_params.get("status") or None,
        search_text=request.query_params.get("search"),
    )
    return Response({"data": _page_payload(report_page)}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsReporterOrAdmin])
def report_stats(request):
    """
    GET /api/v1/reports/stats

    Dashboard statistics: global for admins, own reports for users.
    """
    reporter_id = None if _is_admin(request.user) else request.user.id
    stats = selectors.dashboard_stats(
        reporter_id=reporter_id, recent_limit=_int_param(request, "recent", 5)
    )
    stats["recent"] = ReportSerializer(stats["recent"], many=True).data
    return Response({"data": stats}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsReporterOrAdmin])
def recent_reports(request):
    """
    GET /api/v1/reports/recent

    Most recently updated reports, most recent first.
    """
    reporter_id = None if _is_admin(request.user) else request.user.id
    reports = selectors.recent_activity(
        limit=_int_param(request, "limit", 5), reporter_id=reporter_id
    )
    return Response(
        {"data": ReportSerializer(reports, many=True).data}, status=status.HTTP_200_OK
    )


@api_view(["GET", "DELETE"])
@permission_classes([IsReporterOrAdmin])
def get_or_delete_report(request, reportId):
    """
    GET /api/v1/reports/{reportId}
    DELETE /api/v1/reports/{reportId}
    """
    if request.method == "DELETE":
        released = services.delete_report(reportId, request.user)
        return Response(
            {"data": {"id": str(reportId), "releasedRefs": released}},
            status=status.HTTP_200_OK,
        )

    report = services.get_report_for_actor(reportId, request.user)
    serializer = ReportDetailSerializer(report, context={"actor": request.user})
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsReporterOrAdmin])
def report_history(request, reportId):
    """
    GET /api/v1/reports/{reportId}/history?order=chronological|recent
    """
    order = request.query_params.get("order", "chronological")
    if order not in ("chronological", "recent"):
        raise ValidationError(
            "Invalid order parameter", {"order": ["Must be chronological or recent"]}
        )

    report = services.get_report_for_actor(reportId, request.user)
    if order == "recent":
        entries = ledger.list_recent_first(report)
    else:
        entries = ledger.list_chronological(report)

    return Response(
        {"data": HistoryEntrySerializer(entries, many=True).data},
        status=status.HTTP_200_OK,
    )


@api_view(["POST"])
@permission_classes([IsReporterOrAdmin])
def transition_report(request, reportId):
    """
    POST /api/v1/reports/{reportId}/transition

    Move a report to the next workflow status (admin only).
    """
    # Only callers who can read the report get transition errors about it
    services.get_report_for_actor(reportId, request.user)

    serializer = TransitionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    attachment = request.FILES.get("attachment")
    attachment_ref = data.get("attachment_ref") or None
    stored_ref = None

    if attachment is not None:
        stored_ref = storage.store_evidence(
            attachment, folder="attachments", field="attachment"
        )
        attachment_ref = stored_ref

    try:
        report = services.transition_report(
            reportId,
            request.user,
            data["status"],
            note=data.get("note"),
            attachment_ref=attachment_ref,
            expected_version=data.get("expected_version"),
        )
    except Exception:
        if stored_ref:
            storage.discard_evidence([stored_ref])
        raise

    serializer = ReportDetailSerializer(report, context={"actor": request.user})
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)
