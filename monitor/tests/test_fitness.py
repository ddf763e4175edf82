import random
import time
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from django.core import signing
from django.db import DatabaseError
from django.urls import reverse
from django.utils import timezone

from monitor.models import DoctorHealthData, FitnessConnection
from monitor.services import fitness

pytestmark = pytest.mark.django_db


class FakeResponse:
    def __init__(self, data, status_code=200):
        self._data = data
        self.status_code = status_code

    def json(self):
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')


def aggregate(points):
    return FakeResponse({'bucket': [{'dataset': [{'point': points}]}]})


@pytest.fixture
def fit_settings(settings):
    settings.GOOGLE_FIT_ENABLE = True
    settings.GOOGLE_CLIENT_ID = 'client-id'
    settings.GOOGLE_CLIENT_SECRET = 'client-secret'
    settings.FRONTEND_URL = 'https://app.example'
    return settings


@pytest.fixture
def connection(doctor):
    return FitnessConnection.objects.create(
        doctor=doctor, access_token='live-token', refresh_token='refresh-1',
        token_expires_at=timezone.now() + timedelta(hours=1),
    )


def test_auth_url_carries_signed_state(as_user, doctor, fit_settings):
    r = as_user(doctor).get(reverse('fit-auth'), {'action': 'get-auth-url'})
    assert r.status_code == 200
    url = urlparse(r.data['authUrl'])
    qs = parse_qs(url.query)
    assert url.netloc == 'accounts.google.com'
    assert qs['access_type'] == ['offline']
    assert qs['prompt'] == ['consent']
    assert len(qs['scope'][0].split()) == 4
    assert fitness.read_state(qs['state'][0]) == doctor.id


def test_auth_url_requires_doctor(as_user, receptionist, fit_settings):
    r = as_user(receptionist).get(reverse('fit-auth'), {'action': 'get-auth-url'})
    assert r.status_code == 403


def test_invalid_action(as_user, doctor):
    r = as_user(doctor).get(reverse('fit-auth'), {'action': 'nope'})
    assert r.status_code == 400
    assert r.data['error'] == 'Invalid action'


def test_callback_stores_tokens(api_client, doctor, fit_settings, monkeypatch):
    def fake_post(url, data=None, timeout=None, **kw):
        assert url == fitness.TOKEN_ENDPOINT
        assert data['grant_type'] == 'authorization_code'
        return FakeResponse({'access_token': 'at', 'refresh_token': 'rt', 'expires_in': 3600})

    monkeypatch.setattr(fitness.requests, 'post', fake_post)
    state = fitness.sign_state(doctor.id)
    r = api_client.get(reverse('fit-auth'), {'action': 'callback', 'code': 'c0de', 'state': state})
    assert r.status_code == 302
    assert r['Location'] == 'https://app.example/dashboard/doctor?google_fit_connected=true'
    conn = FitnessConnection.objects.get(doctor=doctor)
    assert conn.access_token == 'at'
    assert conn.refresh_token == 'rt'
    assert conn.token_expires_at > timezone.now() + timedelta(minutes=59)


def test_callback_error_paths(api_client, doctor, fit_settings, monkeypatch):
    url = reverse('fit-auth')
    r = api_client.get(url, {'action': 'callback', 'error': 'access_denied'})
    assert r['Location'].endswith('google_fit_error=access_denied')

    r = api_client.get(url, {'action': 'callback', 'code': 'x'})
    assert r.status_code == 400
    assert r.data['error'] == 'Missing code or state'

    r = api_client.get(url, {'action': 'callback', 'code': 'x', 'state': 'forged'})
    assert r['Location'].endswith('google_fit_error=invalid_state')

    monkeypatch.setattr(fitness.requests, 'post', lambda *a, **kw: FakeResponse({'error': 'invalid_grant'}, 400))
    r = api_client.get(url, {'action': 'callback', 'code': 'x', 'state': fitness.sign_state(doctor.id)})
    assert r['Location'].endswith('google_fit_error=token_exchange_failed')
    assert not FitnessConnection.objects.filter(doctor=doctor).exists()


def test_callback_rejects_expired_state(api_client, doctor, fit_settings, monkeypatch):
    fit_settings.GOOGLE_FIT_STATE_MAX_AGE = 600
    issued = int(time.time()) - 3600
    with monkeypatch.context() as m:
        m.setattr(signing.TimestampSigner, 'timestamp', lambda self: signing.b62_encode(issued))
        state = fitness.sign_state(doctor.id)

    r = api_client.get(reverse('fit-auth'), {'action': 'callback', 'code': 'x', 'state': state})
    assert r.status_code == 302
    assert r['Location'].endswith('google_fit_error=invalid_state')
    assert not FitnessConnection.objects.filter(doctor=doctor).exists()


def test_callback_rejects_non_object_token_body(api_client, doctor, fit_settings, monkeypatch):
    monkeypatch.setattr(fitness.requests, 'post', lambda *a, **kw: FakeResponse(['not', 'an', 'object']))
    r = api_client.get(reverse('fit-auth'), {'action': 'callback', 'code': 'x',
                                             'state': fitness.sign_state(doctor.id)})
    assert r['Location'].endswith('google_fit_error=token_exchange_failed')
    assert not FitnessConnection.objects.filter(doctor=doctor).exists()


def test_callback_reports_storage_failure(api_client, doctor, fit_settings, monkeypatch):
    monkeypatch.setattr(fitness.requests, 'post',
                        lambda *a, **kw: FakeResponse({'access_token': 'at', 'expires_in': 3600}))

    def broken_store(doctor, grant):
        raise DatabaseError('disk full')

    monkeypatch.setattr(fitness, 'store_grant', broken_store)
    r = api_client.get(reverse('fit-auth'), {'action': 'callback', 'code': 'x',
                                             'state': fitness.sign_state(doctor.id)})
    assert r.status_code == 302
    assert r['Location'] == 'https://app.example/dashboard/doctor?google_fit_error=storage_failed'


def test_check_status(as_user, doctor, connection):
    r = as_user(doctor).get(reverse('fit-auth'), {'action': 'check-status'})
    assert r.data == {'connected': True, 'lastSync': None, 'tokenExpired': False}


def test_data_without_connection(as_user, doctor):
    r = as_user(doctor).get(reverse('fit-data'))
    assert r.status_code == 400
    assert r.data['error'] == 'Google Fit not connected'
    assert r.data['connected'] is False


def test_data_reads_real_values(as_user, doctor, connection, monkeypatch):
    responses = {
        fitness.HEART_RATE: aggregate([{'value': [{'fpVal': 71.6}]}, {'value': [{'fpVal': 88.4}]}]),
        fitness.OXYGEN_SATURATION: aggregate([{'value': [{'fpVal': 0.973}]}]),
        fitness.STEP_COUNT: aggregate([{'value': [{'intVal': 1200}]}, {'value': [{'intVal': 800}]}]),
    }

    def fake_post(url, json=None, headers=None, timeout=None):
        assert headers['Authorization'] == 'Bearer live-token'
        assert json['bucketByTime'] == {'durationMillis': 86400000}
        return responses[json['aggregateBy'][0]['dataTypeName']]

    monkeypatch.setattr(fitness.requests, 'post', fake_post)
    r = as_user(doctor).post(reverse('fit-data'))
    assert r.status_code == 200
    assert r.data['heartRate'] == 88
    assert r.data['spo2'] == 97
    assert r.data['steps'] == 2000
    assert r.data['isDemo'] is False
    assert r.data['status'] == 'NORMAL'
    assert r.data['connected'] is True

    row = DoctorHealthData.objects.get(doctor=doctor)
    assert row.data_source == DoctorHealthData.SOURCE_GOOGLE_FIT
    connection.refresh_from_db()
    assert connection.last_sync_at is not None


def test_data_falls_back_to_demo_values(doctor, connection, monkeypatch):
    monkeypatch.setattr(fitness.requests, 'post', lambda *a, **kw: FakeResponse({}, 500))
    payload = fitness.sync_health_data(doctor, rng=random.Random(7))
    assert payload['isDemo'] is True
    assert 65 <= payload['heartRate'] <= 84
    assert 96 <= payload['spo2'] <= 98
    assert 2000 <= payload['steps'] <= 9999
    assert payload['status'] == 'NORMAL'
    assert DoctorHealthData.objects.get(doctor=doctor).data_source == DoctorHealthData.SOURCE_DEMO


def test_critical_status():
    assert fitness.health_status(121, 98) == 'CRITICAL'
    assert fitness.health_status(80, 91) == 'CRITICAL'
    assert fitness.health_status(120, 92) == 'NORMAL'


def test_expired_token_is_refreshed(as_user, doctor, connection, monkeypatch):
    connection.token_expires_at = timezone.now() - timedelta(minutes=1)
    connection.save()

    def fake_post(url, data=None, json=None, headers=None, timeout=None):
        if url == fitness.TOKEN_ENDPOINT:
            assert data['grant_type'] == 'refresh_token'
            assert data['refresh_token'] == 'refresh-1'
            return FakeResponse({'access_token': 'fresh', 'expires_in': 3600})
        assert headers['Authorization'] == 'Bearer fresh'
        return aggregate([])

    monkeypatch.setattr(fitness.requests, 'post', fake_post)
    r = as_user(doctor).get(reverse('fit-data'))
    assert r.status_code == 200
    connection.refresh_from_db()
    assert connection.access_token == 'fresh'
    # provider sent no new refresh token
    assert connection.refresh_token == 'refresh-1'
    assert connection.token_expires_at > timezone.now()


def test_refresh_failure_requires_reauth(as_user, doctor, connection, monkeypatch):
    connection.token_expires_at = timezone.now() - timedelta(minutes=1)
    connection.save()
    monkeypatch.setattr(fitness.requests, 'post', lambda *a, **kw: FakeResponse({'error': 'invalid_grant'}, 400))
    r = as_user(doctor).get(reverse('fit-data'))
    assert r.status_code == 401
    assert r.data['error'] == 'Failed to refresh token'
    assert r.data['needsReauth'] is True
