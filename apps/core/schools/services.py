from apps.core.schools.models import School


SCHOOL_CODE_HEADER = 'X-School-Code'
SCHOOL_CODE_PARAM = 'school'


def normalize_school_code(value):
    return (value or '').strip().lower()


def get_active_school(code):
    code = normalize_school_code(code)
    if not code:
        return None
    return School.objects.filter(code=code, is_active=True).first()


def resolve_school_for_request(request):
    """
    Tenant for the current request.

    Staff users are pinned to their own school. Superadmins have no school
    of their own and pick one per request with the `X-School-Code` header
    or the `school` query parameter.
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return None

    if user.school_id:
        school = user.school
        return school if school.is_active else None

    if user.is_superuser or user.is_platform_admin:
        code = request.headers.get(SCHOOL_CODE_HEADER) or request.GET.get(SCHOOL_CODE_PARAM)
        return get_active_school(code)
    return None
