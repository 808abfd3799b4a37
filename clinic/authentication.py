"""
Bearer token authentication.

Access tokens are JWTs issued by ``rest_framework_simplejwt`` carrying
the user id and the role the user had when signing in.  A token whose
role claim no longer matches the account is refused so that a role
change takes effect immediately.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed


class BearerJWTAuthentication(JWTAuthentication):
    """JWT authentication reading ``Authorization: Bearer <token>``."""

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        role = validated_token.get('role')
        if role is not None and role != user.role:
            raise AuthenticationFailed('Not authorized to access this route', code='role_changed')
        return user
