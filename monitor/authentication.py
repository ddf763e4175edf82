"""
Custom authentication backend for token-based auth.

This module defines a subclass of Django REST framework's
``TokenAuthentication`` that pins the ``keyword`` used in the
``Authorization`` header.  By keeping this logic separate from any
view definitions we avoid circular import issues when the REST
framework imports authentication classes during initialization.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    ``Bearer`` headers are left to simplejwt's ``JWTAuthentication``,
    which follows this class in ``DEFAULT_AUTHENTICATION_CLASSES``.
    """

    keyword = 'Token'
