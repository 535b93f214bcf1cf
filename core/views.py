import csv
import logging

from django.db import connections
from django.http import HttpResponse
from django.utils.dateparse import parse_datetime
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView

from core.models import AuditLog
from core.serializers import AuditLogSerializer, EmailOrUsernameTokenObtainPairSerializer

logger = logging.getLogger(__name__)


class EmailOrUsernameTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailOrUsernameTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        qs = self.queryset.order_by("-created_at")

        start_date = self.request.query_params.get("start_date")
        end_date = self.request.query_params.get("end_date")
        actor_id = self.request.query_params.get("actor_id")
        action_name = self.request.query_params.get("action")
        entity = self.request.query_params.get("entity")
        entity_id = self.request.query_params.get("entity_id")

        if start_date:
            dt = parse_datetime(start_date)
            if dt:
                qs = qs.filter(created_at__gte=dt)
        if end_date:
            dt = parse_datetime(end_date)
            if dt:
                qs = qs.filter(created_at__lte=dt)
        if actor_id:
            qs = qs.filter(actor_id=actor_id)
        if action_name:
            qs = qs.filter(action=action_name)
        if entity:
            qs = qs.filter(entity=entity)
        if entity_id:
            qs = qs.filter(entity_id=entity_id)

        return qs

    @action(detail=False, methods=["get"], url_path="export")
    def export(self, request):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="audit-logs.csv"'

        writer = csv.writer(response)
        writer.writerow(["id", "created_at", "actor", "action", "entity", "entity_id", "summary", "request_id"])
        for log in self.get_queryset():
            writer.writerow(
                [
                    log.id,
                    log.created_at.isoformat(),
                    getattr(log.actor, "username", ""),
                    log.action,
                    log.entity,
                    log.entity_id,
                    log.summary,
                    log.request_id,
                ]
            )
        return response


@api_view(["GET"])
@permission_classes([AllowAny])
def healthz(request):
    return Response({"status": "ok", "request_id": getattr(request, "request_id", None)})


@api_view(["GET"])
@permission_classes([AllowAny])
def readyz(request):
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except Exception as exc:
        logger.exception("readiness_check_failed")
        return Response(
            {"status": "error", "request_id": getattr(request, "request_id", None), "detail": str(exc)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return Response({"status": "ready", "request_id": getattr(request, "request_id", None)})
