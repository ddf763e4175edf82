import logging
import random
import requests
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

from django.conf import settings
from django.core import signing
from django.utils import timezone

from monitor.exceptions import FitnessNotConnected, TokenRefreshError
from monitor.models import DoctorHealthData, FitnessConnection

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_ENDPOINT = 'https://oauth2.googleapis.com/token'
AGGREGATE_ENDPOINT = 'https://www.googleapis.com/fitness/v1/users/me/dataset:aggregate'

SCOPES = (
    'https://www.googleapis.com/auth/fitness.heart_rate.read',
    'https://www.googleapis.com/auth/fitness.oxygen_saturation.read',
    'https://www.googleapis.com/auth/fitness.activity.read',
    'https://www.googleapis.com/auth/fitness.body.read',
)

HEART_RATE = 'com.google.heart_rate.bpm'
OXYGEN_SATURATION = 'com.google.oxygen_saturation'
STEP_COUNT = 'com.google.step_count.delta'

DAY_MS = 24 * 60 * 60 * 1000
STATE_SALT = 'monitor.fitness.state'


@dataclass
class TokenGrant:
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


@dataclass
class FitReading:
    heart_rate: Optional[int] = None
    spo2: Optional[int] = None
    steps: Optional[int] = None


def _ensure_enabled():
    if not settings.GOOGLE_FIT_ENABLE:
        raise RuntimeError('Google Fit integration not enabled on server')


# ---------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------
def sign_state(user_id: int) -> str:
    return signing.dumps({'uid': user_id}, salt=STATE_SALT)


def read_state(state: str) -> int:
    """Return the doctor id carried by ``state``; raises ``signing.BadSignature``."""
    data = signing.loads(state, salt=STATE_SALT, max_age=settings.GOOGLE_FIT_STATE_MAX_AGE)
    return int(data['uid'])


def build_auth_url(user_id: int) -> str:
    _ensure_enabled()
    params = {
        'client_id': settings.GOOGLE_CLIENT_ID,
        'redirect_uri': settings.GOOGLE_FIT_REDIRECT_URI,
        'response_type': 'code',
        'scope': ' '.join(SCOPES),
        'access_type': 'offline',
        'prompt': 'consent',
        'state': sign_state(user_id),
    }
    return f'{AUTH_ENDPOINT}?{urlencode(params)}'


def _token_request(form: dict) -> dict:
    r = requests.post(TOKEN_ENDPOINT, data=form, timeout=settings.GOOGLE_FIT_TIMEOUT)
    data = r.json()
    if not isinstance(data, dict):
        raise RuntimeError(f'token endpoint returned {type(data).__name__}, status {r.status_code}')
    if 'error' in data or r.status_code >= 400:
        raise RuntimeError(f"token endpoint error {r.status_code}: {data.get('error')} {data.get('error_description', '')}".strip())
    if not data.get('access_token'):
        raise RuntimeError('Invalid token response: missing access_token')
    return data


def exchange_code(code: str) -> TokenGrant:
    _ensure_enabled()
    data = _token_request({
        'code': code,
        'client_id': settings.GOOGLE_CLIENT_ID,
        'client_secret': settings.GOOGLE_CLIENT_SECRET,
        'redirect_uri': settings.GOOGLE_FIT_REDIRECT_URI,
        'grant_type': 'authorization_code',
    })
    return TokenGrant(
        access_token=data['access_token'],
        expires_in=int(data.get('expires_in', 3600)),
        refresh_token=data.get('refresh_token'),
    )


def refresh_access_token(refresh_token: str) -> TokenGrant:
    try:
        data = _token_request({
            'refresh_token': refresh_token,
            'client_id': settings.GOOGLE_CLIENT_ID,
            'client_secret': settings.GOOGLE_CLIENT_SECRET,
            'grant_type': 'refresh_token',
        })
    except (RuntimeError, ValueError, requests.RequestException) as e:
        raise TokenRefreshError(str(e)) from e
    return TokenGrant(
        access_token=data['access_token'],
        expires_in=int(data.get('expires_in', 3600)),
        refresh_token=data.get('refresh_token'),
    )


def store_grant(doctor, grant: TokenGrant) -> FitnessConnection:
    expires_at = timezone.now() + timedelta(seconds=grant.expires_in)
    defaults = {'access_token': grant.access_token, 'token_expires_at': expires_at}
    if grant.refresh_token:
        defaults['refresh_token'] = grant.refresh_token
    conn, _ = FitnessConnection.objects.update_or_create(doctor=doctor, defaults=defaults)
    return conn


def connection_status(doctor) -> dict:
    conn = FitnessConnection.objects.filter(doctor=doctor).first()
    return {
        'connected': conn is not None,
        'lastSync': conn.last_sync_at.isoformat() if conn and conn.last_sync_at else None,
        'tokenExpired': bool(conn and conn.token_expires_at < timezone.now()),
    }


def valid_access_token(doctor) -> str:
    """Return a usable access token, refreshing and persisting it when expired."""
    conn = FitnessConnection.objects.filter(doctor=doctor).first()
    if conn is None:
        raise FitnessNotConnected('Google Fit not connected')
    if conn.token_expires_at >= timezone.now():
        return conn.access_token
    logger.info('fitness token for doctor %s expired, refreshing', doctor.pk)
    if not conn.refresh_token:
        raise TokenRefreshError('no refresh token stored')
    grant = refresh_access_token(conn.refresh_token)
    store_grant(doctor, grant)
    return grant.access_token


# ---------------------------------------------------------------------
# Aggregate reads
# ---------------------------------------------------------------------
def fetch_aggregate(access_token: str, data_type: str, *, now_ms: Optional[int] = None) -> list[dict]:
    """Return the points of the single 24h bucket for ``data_type`` (empty on failure)."""
    now_ms = now_ms or int(timezone.now().timestamp() * 1000)
    body = {
        'aggregateBy': [{'dataTypeName': data_type}],
        'bucketByTime': {'durationMillis': DAY_MS},
        'startTimeMillis': now_ms - DAY_MS,
        'endTimeMillis': now_ms,
    }
    try:
        r = requests.post(
            AGGREGATE_ENDPOINT,
            json=body,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=settings.GOOGLE_FIT_TIMEOUT,
        )
        r.raise_for_status()
        data = r.json()
        return data['bucket'][0]['dataset'][0].get('point', []) or []
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
        logger.info('no %s data available: %s', data_type, e)
        return []


def _value(point: dict, key: str):
    try:
        return point['value'][0].get(key)
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


def read_fit(access_token: str) -> FitReading:
    reading = FitReading()
    hr_points = fetch_aggregate(access_token, HEART_RATE)
    if hr_points and _value(hr_points[-1], 'fpVal') is not None:
        reading.heart_rate = round(_value(hr_points[-1], 'fpVal'))
    spo2_points = fetch_aggregate(access_token, OXYGEN_SATURATION)
    if spo2_points and _value(spo2_points[-1], 'fpVal') is not None:
        reading.spo2 = round(_value(spo2_points[-1], 'fpVal') * 100)
    step_points = fetch_aggregate(access_token, STEP_COUNT)
    if step_points:
        reading.steps = sum(_value(p, 'intVal') or 0 for p in step_points)
    return reading


def health_status(heart_rate: int, spo2: int) -> str:
    return 'CRITICAL' if heart_rate > 120 or spo2 < 92 else 'NORMAL'


def sync_health_data(doctor, *, rng: Optional[random.Random] = None) -> dict:
    """Read the last 24h from the provider, filling gaps with demo values."""
    rng = rng or random.Random()
    access_token = valid_access_token(doctor)
    fit = read_fit(access_token)

    now = timezone.now()
    payload = {
        'heartRate': fit.heart_rate or rng.randint(65, 84),
        'spo2': fit.spo2 or rng.randint(96, 98),
        'steps': fit.steps or rng.randint(2000, 9999),
        'lastUpdated': now.isoformat(),
        'isDemo': not fit.heart_rate and not fit.spo2,
    }
    payload['status'] = health_status(payload['heartRate'], payload['spo2'])

    DoctorHealthData.objects.create(
        doctor=doctor,
        heart_rate=payload['heartRate'],
        spo2=payload['spo2'],
        steps=payload['steps'],
        data_source=DoctorHealthData.SOURCE_DEMO if payload['isDemo'] else DoctorHealthData.SOURCE_GOOGLE_FIT,
    )
    FitnessConnection.objects.filter(doctor=doctor).update(last_sync_at=now)
    return payload
