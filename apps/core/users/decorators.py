from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.http import JsonResponse


def _normalize_roles(allowed_roles):
    if isinstance(allowed_roles, str):
        return {allowed_roles}
    return set(allowed_roles)


def role_required(allowed_roles):
    normalized_roles = _normalize_roles(allowed_roles)

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return redirect_to_login(request.get_full_path())

            if request.user.role not in normalized_roles:
                return JsonResponse({'error': 'You do not have access to this resource.'}, status=403)

            if not getattr(request, 'current_school', None):
                return JsonResponse({'error': 'No school is associated with this account.'}, status=403)

            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
