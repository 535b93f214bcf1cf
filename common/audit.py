import json

from django.core.serializers.json import DjangoJSONEncoder

from core.models import AuditLog


def get_request_id(request):
    return getattr(request, "request_id", None) or request.headers.get("X-Request-ID")


def get_client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


def _json_safe(value):
    if value is None:
        return None
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


def create_audit_log(
    *,
    actor=None,
    action,
    entity,
    entity_id=None,
    summary="",
    before_snapshot=None,
    after_snapshot=None,
    request_id=None,
    ip_address=None,
):
    return AuditLog.objects.create(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        summary=summary[:255],
        before_snapshot=_json_safe(before_snapshot),
        after_snapshot=_json_safe(after_snapshot),
        request_id=request_id,
        ip_address=ip_address,
    )


def create_audit_log_from_request(
    request,
    *,
    action,
    entity,
    entity_id=None,
    summary="",
    before_snapshot=None,
    after_snapshot=None,
):
    user = getattr(request, "user", None)
    return create_audit_log(
        actor=user if user is not None and user.is_authenticated else None,
        action=action,
        entity=entity,
        entity_id=entity_id,
        summary=summary,
        before_snapshot=before_snapshot,
        after_snapshot=after_snapshot,
        request_id=get_request_id(request),
        ip_address=get_client_ip(request),
    )
