import logging

from django.db import DatabaseError

from apps.core.users.models import AuditLog

logger = logging.getLogger(__name__)


def _extract_ip(request):
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_audit_event(request, action, school=None, target=None, details=''):
    target_model = ''
    target_id = ''

    if target is not None:
        target_model = target.__class__.__name__
        target_id = str(getattr(target, 'pk', ''))

    user = request.user if request.user.is_authenticated else None

    try:
        return AuditLog.objects.create(
            school=school or getattr(user, 'school', None),
            user=user,
            action=action,
            target_model=target_model,
            target_id=target_id,
            details=details,
            method=request.method,
            path=request.path[:255],
            ip_address=_extract_ip(request),
        )
    except DatabaseError:
        # Audit writes must never break business actions.
        logger.exception('Audit log write failed', extra={'action': action})
        return None
