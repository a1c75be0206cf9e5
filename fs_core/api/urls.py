# fs_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from fs_core.api.auth import LoginView, LogoutView, MeView, RefreshView
from fs_core.audit.api.views import AuditEventViewSet
from fs_core.billing.api.views import InvoiceViewSet, PaymentViewSet
from fs_core.inspections.api.views import DeficiencyViewSet, InspectionViewSet
from fs_core.jobs.api.views import JobViewSet
from fs_core.quotes.api.views import QuoteViewSet

router = DefaultRouter()

router.register(r"inspections", InspectionViewSet, basename="inspections")
router.register(r"deficiencies", DeficiencyViewSet, basename="deficiencies")
router.register(r"quotes", QuoteViewSet, basename="quotes")
router.register(r"jobs", JobViewSet, basename="jobs")
router.register(r"invoices", InvoiceViewSet, basename="invoices")
router.register(r"payments", PaymentViewSet, basename="payments")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    *router.urls,
]
