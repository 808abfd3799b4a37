"""
Role based access control.

``ROLE_PERMISSIONS`` is the single source of truth for which role may
use which resource with which HTTP method.  Views declare the resource
they belong to through :func:`RouteAccess`; a handful of operations are
narrowed further to specific roles with :func:`HasRole`.
"""
from __future__ import annotations

from rest_framework.permissions import BasePermission

from .exceptions import RouteAccessDenied

ALL_METHODS = ['GET', 'POST', 'PUT', 'DELETE']

ROLE_PERMISSIONS: dict[str, dict] = {
    'Admin': {
        'canAccess': ['*'],
        'dashboard': '/api/dashboards/admin',
        'routes': {
            'users': ALL_METHODS,
            'doctors': ALL_METHODS,
            'patients': ALL_METHODS,
            'appointments': ALL_METHODS,
            'wards': ALL_METHODS,
            'medicines': ALL_METHODS,
            'prescriptions': ALL_METHODS,
            'billing': ALL_METHODS,
            'staff': ALL_METHODS,
            'reports': ['GET'],
        },
    },
    'Doctor': {
        'canAccess': ['patients', 'appointments', 'prescriptions', 'reports-limited'],
        'dashboard': '/api/dashboards/doctor',
        'routes': {
            'patients': ['GET', 'PUT'],
            'appointments': ['GET', 'PUT'],
            'prescriptions': ['GET', 'POST', 'PUT'],
            'medicines': ['GET'],
            'reports': ['GET'],
        },
    },
    'Patient': {
        'canAccess': ['own-data', 'appointments-limited'],
        'dashboard': '/api/dashboards/patient',
        'routes': {
            'patients': ['GET'],
            'appointments': ['GET', 'POST'],
            'prescriptions': ['GET'],
            'billing': ['GET'],
            'doctors': ['GET'],
        },
    },
    'Nurse': {
        'canAccess': ['patients', 'wards', 'appointments-limited'],
        'dashboard': '/api/dashboards/nurse',
        'routes': {
            'patients': ['GET', 'PUT'],
            'wards': ['GET', 'PUT'],
            'appointments': ['GET'],
            'prescriptions': ['GET'],
            'medicines': ['GET'],
        },
    },
    'Receptionist': {
        'canAccess': ['appointments', 'patients', 'billing'],
        'dashboard': '/api/dashboards/receptionist',
        'routes': {
            'patients': ['GET', 'POST', 'PUT'],
            'appointments': ['GET', 'POST', 'PUT', 'DELETE'],
            'billing': ['GET', 'POST', 'PUT'],
            'doctors': ['GET'],
            'wards': ['GET'],
        },
    },
    'Pharmacist': {
        'canAccess': ['medicines', 'prescriptions'],
        'dashboard': '/api/dashboards/pharmacist',
        'routes': {
            'medicines': ['GET', 'POST', 'PUT'],
            'prescriptions': ['GET', 'PUT'],
            'patients': ['GET'],
            'reports': ['GET'],
        },
    },
}

_METHOD_ALIASES = {'PATCH': 'PUT', 'HEAD': 'GET', 'OPTIONS': 'GET'}


def normalize_method(method: str) -> str:
    method = (method or '').upper()
    return _METHOD_ALIASES.get(method, method)


def check_route_access(role: str | None, resource: str, method: str) -> None:
    """Raise :class:`RouteAccessDenied` unless ``role`` may use ``method`` on ``resource``."""
    permissions = ROLE_PERMISSIONS.get(role or '')
    if permissions is None:
        raise RouteAccessDenied('Invalid role')
    if role == 'Admin':
        return
    method = normalize_method(method)
    routes = permissions['routes']
    allowed = routes.get(resource)
    if allowed is None:
        raise RouteAccessDenied(
            f"Access denied. {role}s cannot access {resource}",
            allowed_routes=list(routes.keys()),
        )
    if method not in allowed:
        raise RouteAccessDenied(
            f"Access denied. {role}s cannot {method} {resource}",
            allowed_methods=list(allowed),
        )


def is_route_allowed(role: str | None, resource: str, method: str) -> bool:
    try:
        check_route_access(role, resource, method)
    except RouteAccessDenied:
        return False
    return True


def RouteAccess(resource: str, method: str | None = None):
    """Permission class bound to one resource of the role table.

    ``method`` overrides the request method for action endpoints, e.g.
    allocating a bed is a POST that counts as an update of the ward.
    """

    class _RouteAccess(BasePermission):
        def has_permission(self, request, view) -> bool:  # type: ignore[override]
            user = getattr(request, 'user', None)
            if not (user and user.is_authenticated):
                return False
            check_route_access(getattr(user, 'role', None), resource, method or request.method)
            return True

    _RouteAccess.__name__ = f"RouteAccess_{resource}"
    return _RouteAccess


def HasRole(*roles: str, methods=None):
    """Permission class allowing only the given roles.  Admin always passes.

    With ``methods`` the restriction applies to those (normalised) request
    methods only, e.g. ``HasRole(methods=('POST', 'PUT', 'DELETE'))`` keeps
    reads open and writes Admin-only.
    """
    allowed = set(roles) | {'Admin'}
    restricted = {normalize_method(m) for m in methods} if methods else None

    class _HasRole(BasePermission):
        def has_permission(self, request, view) -> bool:  # type: ignore[override]
            user = getattr(request, 'user', None)
            if not (user and user.is_authenticated):
                return False
            if restricted is not None and normalize_method(request.method) not in restricted:
                return True
            role = getattr(user, 'role', None)
            if role not in allowed:
                raise RouteAccessDenied(f"User role {role} is not authorized to access this route")
            return True

    _HasRole.__name__ = f"HasRole_{'_'.join(roles)}"
    return _HasRole
