import json
from functools import wraps

from django.http import JsonResponse

from .models import ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF, User


class Actor:
    """
    Authenticated session context for one request.

    Every permission check receives an Actor explicitly instead of reading the
    request or any ambient state. Roles and department memberships are loaded
    once when the actor is built.
    """

    def __init__(self, user, role_names=None, department_ids=None):
        self.user = user
        if role_names is None:
            role_names = user.get_role_names()
        if department_ids is None:
            department_ids = list(user.departments.order_by('pk').values_list('pk', flat=True))
        self.role_names = list(role_names)
        self.department_ids = list(department_ids)

    def __repr__(self):
        return f"<Actor {self.user.email} roles={self.role_names}>"

    @property
    def id(self):
        return self.user.pk

    @property
    def is_super_admin(self):
        return self.user.is_superuser or ROLE_SUPER_ADMIN in self.role_names

    @property
    def is_admin(self):
        return ROLE_ADMIN in self.role_names

    @property
    def role(self):
        """Highest role the actor holds."""
        if self.is_super_admin:
            return ROLE_SUPER_ADMIN
        if self.is_admin:
            return ROLE_ADMIN
        return ROLE_STAFF

    def belongs_to(self, department_id):
        return department_id is not None and department_id in self.department_ids

    @property
    def first_department_id(self):
        return self.department_ids[0] if self.department_ids else None


def get_actor(request):
    """
    Build the Actor for the request, caching it on the request object.

    Returns None for anonymous requests.
    """
    if not request.user.is_authenticated:
        return None
    actor = getattr(request, '_actor', None)
    if actor is None or actor.user.pk != request.user.pk:
        actor = Actor(request.user)
        request._actor = actor
    return actor


def api_login_required(view_func):
    """
    Decorator for JSON endpoints: reject anonymous and suspended users.

    The built Actor is attached to the request as ``request.actor``.
    """
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        actor = get_actor(request)
        if actor is None:
            return JsonResponse({'message': 'Not authorized, please log in'}, status=401)
        if actor.user.status == User.Status.SUSPENDED:
            return JsonResponse({'message': 'Access denied: Account suspended'}, status=403)
        request.actor = actor
        return view_func(request, *args, **kwargs)
    return _wrapped_view


def role_required(required_roles):
    """
    Decorator to require one of the given roles on a JSON endpoint.

    Superusers always pass. Implies ``api_login_required``.
    """
    def decorator(view_func):
        @wraps(view_func)
        @api_login_required
        def _wrapped_view(request, *args, **kwargs):
            actor = request.actor
            has_role = actor.is_super_admin or any(role in actor.role_names for role in required_roles)
            if not has_role:
                return JsonResponse(
                    {'message': f"Forbidden: role '{actor.role}' is not authorized"},
                    status=403
                )
            return view_func(request, *args, **kwargs)
        return _wrapped_view
    return decorator


def json_body(request):
    """
    Decode a JSON request body, falling back to form data.

    Raises ValueError for malformed JSON or a body that is not an object.
    """
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        data = json.loads(request.body)
        if not isinstance(data, dict):
            raise ValueError("Expected a JSON object")
        return data
    return request.POST.dict()
