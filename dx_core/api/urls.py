# dx_core/api/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from dx_core.alerts.api.views import EscalationViewSet
from dx_core.audit.api.views import AuditEntryViewSet
from dx_core.orders.api.views import DiagnosticOrderViewSet

router = DefaultRouter()
router.register(r"orders", DiagnosticOrderViewSet, basename="orders")
router.register(r"escalations", EscalationViewSet, basename="escalations")
router.register(r"audit", AuditEntryViewSet, basename="audit")

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("", include(router.urls)),
]
