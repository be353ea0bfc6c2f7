"""
URL routing for report endpoints.
"""

from django.urls import path
from apps.reports import views

app_name = "reports"

urlpatterns = [
    path(
        "reports", views.create_or_list_reports, name="create-or-list-reports"
    ),  # POST, GET
    path("reports/mine", views.list_my_reports, name="list-my-reports"),
    path("reports/stats", views.report_stats, name="report-stats"),
    path("reports/recent", views.recent_reports, name="recent-reports"),
    path(
        "reports/<uuid:reportId>",
        views.get_or_delete_report,
        name="get-or-delete-report",
    ),  # GET, DELETE
    path(
        "reports/<uuid:reportId>/history",
        views.report_history,
        name="report-history",
    ),
    path(
        "reports/<uuid:reportId>/transition",
        views.transition_report,
        name="transition-report",
    ),
]
