"""
Fitness provider bridge for doctors.

``/api/fit/auth`` dispatches on ``?action=``: ``get-auth-url`` and
``check-status`` need a signed-in doctor, ``callback`` is hit by the
provider's redirect and identifies the doctor through the signed state.
"""
from __future__ import annotations

import logging
import requests
from urllib.parse import urlencode

from django.conf import settings
from django.core import signing
from django.db import DatabaseError
from django.http import HttpResponseRedirect
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotAuthenticated, PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from monitor.exceptions import FitnessNotConnected, TokenRefreshError
from monitor.models import User
from monitor.permissions import IsDoctor
from monitor.services import fitness

logger = logging.getLogger(__name__)


def _dashboard_redirect(**params) -> HttpResponseRedirect:
    base = settings.FRONTEND_URL.rstrip('/')
    return HttpResponseRedirect(f'{base}/dashboard/doctor?{urlencode(params)}')


def _require_doctor(request):
    user = request.user
    if not user or not user.is_authenticated:
        raise NotAuthenticated()
    if user.role != User.ROLE_DOCTOR:
        raise PermissionDenied('Only doctors can connect a fitness account')
    return user


def _callback(request):
    error = request.query_params.get('error')
    if error:
        logger.info('fitness consent declined: %s', error)
        return _dashboard_redirect(google_fit_error=error)

    code = request.query_params.get('code')
    state = request.query_params.get('state')
    if not code or not state:
        return Response({'ok': False, 'error': 'Missing code or state'}, status=400)

    try:
        doctor_id = fitness.read_state(state)
    except signing.BadSignature:
        return _dashboard_redirect(google_fit_error='invalid_state')
    doctor = User.objects.filter(pk=doctor_id, role=User.ROLE_DOCTOR).first()
    if doctor is None:
        return _dashboard_redirect(google_fit_error='invalid_state')

    try:
        grant = fitness.exchange_code(code)
    except (RuntimeError, ValueError, requests.RequestException) as e:
        logger.warning('fitness code exchange failed for doctor %s: %s', doctor_id, e)
        return _dashboard_redirect(google_fit_error='token_exchange_failed')

    try:
        fitness.store_grant(doctor, grant)
    except DatabaseError:
        logger.exception('storing fitness tokens failed for doctor %s', doctor_id)
        return _dashboard_redirect(google_fit_error='storage_failed')
    logger.info('fitness account connected for doctor %s', doctor_id)
    return _dashboard_redirect(google_fit_connected='true')


@api_view(['GET'])
@permission_classes([AllowAny])
def fit_auth(request):
    action = request.query_params.get('action')

    if action == 'callback':
        return _callback(request)

    if action == 'get-auth-url':
        doctor = _require_doctor(request)
        try:
            return Response({'authUrl': fitness.build_auth_url(doctor.id)})
        except RuntimeError as e:
            return Response({'ok': False, 'error': str(e)}, status=503)

    if action == 'check-status':
        doctor = _require_doctor(request)
        return Response(fitness.connection_status(doctor))

    return Response({'ok': False, 'error': 'Invalid action'}, status=400)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def fit_data(request):
    try:
        payload = fitness.sync_health_data(request.user)
    except FitnessNotConnected:
        return Response({'ok': False, 'error': 'Google Fit not connected', 'connected': False}, status=400)
    except TokenRefreshError as e:
        logger.warning('fitness token refresh failed for doctor %s: %s', request.user.id, e)
        return Response({'ok': False, 'error': 'Failed to refresh token', 'needsReauth': True}, status=401)
    return Response({**payload, 'connected': True})
