import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    """A request that is well formed but breaks a business rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request conflicts with the current state'
    default_code = 'conflict'


class AuthError(APIException):
    """Bad credentials or a deactivated account.

    Kept separate from ``AuthenticationFailed`` so DRF does not turn it
    into a 403 on endpoints that carry no authentication header.
    """
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid credentials'
    default_code = 'auth_error'


class RouteAccessDenied(PermissionDenied):
    """403 carrying the routes or methods the caller may use instead."""

    def __init__(self, detail=None, *, allowed_routes=None, allowed_methods=None):
        super().__init__(detail)
        self.extra = {}
        if allowed_routes is not None:
            self.extra['allowedRoutes'] = allowed_routes
        if allowed_methods is not None:
            self.extra['allowedMethods'] = allowed_methods


def _first_message(data) -> str:
    if isinstance(data, dict):
        if 'detail' in data:
            return _first_message(data['detail'])
        parts = []
        for field, value in data.items():
            msg = _first_message(value)
            parts.append(msg if field == 'non_field_errors' else f"{field}: {msg}")
        return '; '.join(parts)
    if isinstance(data, (list, tuple)):
        return ', '.join(_first_message(v) for v in data)
    return str(data)


def api_exception_handler(exc, context):
    if isinstance(exc, IntegrityError):
        logger.warning('integrity error on %s: %s', context.get('view'), exc)
        return Response({'success': False, 'message': 'Duplicate field value entered'}, status=400)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error', exc_info=exc)
        return Response({'success': False, 'message': 'Server Error'}, status=500)

    # normalize response
    body = {'success': False, 'message': _first_message(resp.data)}
    if isinstance(resp.data, dict) and 'detail' not in resp.data:
        body['errors'] = resp.data
    elif isinstance(resp.data, list):
        body['errors'] = resp.data
    body.update(getattr(exc, 'extra', {}))
    resp.data = body
    return resp
