from apps.core.schools.services import resolve_school_for_request


class CurrentSchoolMiddleware:
    """Sets `request.current_school`, or None when the request has no tenant."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.current_school = resolve_school_for_request(request)
        return self.get_response(request)
