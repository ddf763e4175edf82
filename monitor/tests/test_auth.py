from urllib.parse import parse_qs, urlparse

import pytest
from django.urls import reverse
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework.test import APIClient

from monitor.models import AuditEvent, User
from monitor.services import accounts

from .conftest import make_user

pytestmark = pytest.mark.django_db


def login(client, email, password):
    return client.post(reverse('auth-login'), {'email': email, 'password': password}, format='json')


def test_login_issues_token_and_jwt(doctor):
    client = APIClient()
    r = login(client, 'DR.RAO@ggh.example', 'P@ssw0rd123')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['role'] == 'doctor'
    assert r.data['user']['name'] == 'Anita Rao'
    assert r.data['user']['specialization'] == 'Cardiology'

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    me = client.get(reverse('auth-me'))
    assert me.status_code == 200
    assert me.data['user']['email'] == 'dr.rao@ggh.example'

    jwt_client = APIClient()
    jwt_client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert jwt_client.get(reverse('auth-me')).status_code == 200


def test_login_rejects_bad_password(doctor):
    r = login(APIClient(), 'dr.rao@ggh.example', 'wrong-password')
    assert r.status_code == 400
    assert r.data == {'ok': False, 'error': 'Invalid email or password'}


def test_login_ignores_role_in_payload():
    make_user('pat@ggh.example', User.ROLE_PATIENT)
    r = APIClient().post(reverse('auth-login'), {
        'email': 'pat@ggh.example', 'password': 'P@ssw0rd123', 'role': 'doctor',
    }, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'


def test_refresh_and_logout(doctor):
    client = APIClient()
    r = login(client, 'dr.rao@ggh.example', 'P@ssw0rd123')
    refresh = r.data['jwt_refresh']

    rr = client.post(reverse('auth-refresh'), {'refresh': refresh}, format='json')
    assert rr.status_code == 200
    assert 'jwt_access' in rr.data

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    out = client.post(reverse('auth-logout'), {'refresh': refresh}, format='json')
    assert out.status_code == 200
    assert out.data['blacklisted'] == 1

    again = APIClient().post(reverse('auth-refresh'), {'refresh': refresh}, format='json')
    assert again.status_code == 401
    assert again.data['ok'] is False


def test_refresh_rejects_garbage():
    r = APIClient().post(reverse('auth-refresh'), {'refresh': 'not-a-token'}, format='json')
    assert r.status_code == 401


def test_change_password(as_user, doctor):
    client = as_user(doctor)
    r = client.post(reverse('auth-password'), {'new_password': 'short'}, format='json')
    assert r.status_code == 400
    assert 'new_password' in r.data['fields']

    r = client.post(reverse('auth-password'), {
        'new_password': 'N3w-passw0rd', 'confirm_password': 'other-pass',
    }, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Passwords do not match'

    r = client.post(reverse('auth-password'), {'new_password': 'N3w-passw0rd'}, format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.check_password('N3w-passw0rd')


def test_me_requires_auth():
    r = APIClient().get(reverse('auth-me'))
    assert r.status_code == 401
    assert r.data['ok'] is False


def test_request_id_is_echoed(doctor):
    r = APIClient().get(reverse('healthz'), HTTP_X_REQUEST_ID='abc123')
    assert r.status_code == 200
    assert r['X-Request-ID'] == 'abc123'
    assert r.json() == {'ok': True, 'db': True}


def _reset_params(message):
    link = next(line for line in message.body.splitlines() if 'reset-password?' in line)
    qs = parse_qs(urlparse(link).query)
    return qs['uid'][0], qs['token'][0]


def test_password_reset_flow(doctor, mailoutbox, settings):
    settings.FRONTEND_URL = 'https://app.example'
    client = APIClient()
    session = login(client, 'dr.rao@ggh.example', 'P@ssw0rd123').data

    r = client.post(reverse('auth-password-reset'), {'email': 'Dr.Rao@ggh.example'}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ['dr.rao@ggh.example']
    assert 'https://app.example/auth/reset-password?' in mailoutbox[0].body
    uid, token = _reset_params(mailoutbox[0])

    r = client.post(reverse('auth-password-reset-confirm'), {
        'uid': uid, 'token': token, 'new_password': 'Fresh-passw0rd',
    }, format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.check_password('Fresh-passw0rd')
    assert AuditEvent.objects.filter(user=doctor, action='password_reset').exists()

    # old sessions are gone and the link is single use
    stale = APIClient()
    stale.credentials(HTTP_AUTHORIZATION=f"Token {session['token']}")
    assert stale.get(reverse('auth-me')).status_code == 401
    again = client.post(reverse('auth-refresh'), {'refresh': session['jwt_refresh']}, format='json')
    assert again.status_code == 401
    r = client.post(reverse('auth-password-reset-confirm'), {
        'uid': uid, 'token': token, 'new_password': 'Another-passw0rd',
    }, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Invalid or expired reset link'


def test_password_reset_hides_unknown_addresses(mailoutbox):
    r = APIClient().post(reverse('auth-password-reset'), {'email': 'nobody@ggh.example'}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert mailoutbox == []


def test_password_reset_survives_mail_failure(doctor, monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError('smtp down')

    monkeypatch.setattr(accounts, 'send_mail', refuse)
    r = APIClient().post(reverse('auth-password-reset'), {'email': 'dr.rao@ggh.example'}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True


@pytest.mark.parametrize('uid,token', [
    ('garbage', 'garbage'),
    (None, 'bad-token'),
])
def test_password_reset_rejects_bad_links(doctor, uid, token):
    uid = uid or urlsafe_base64_encode(force_bytes(doctor.pk))
    r = APIClient().post(reverse('auth-password-reset-confirm'), {
        'uid': uid, 'token': token, 'new_password': 'Fresh-passw0rd',
    }, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Invalid or expired reset link'
    doctor.refresh_from_db()
    assert doctor.check_password('P@ssw0rd123')


def test_password_reset_confirm_validates_new_password(doctor):
    r = APIClient().post(reverse('auth-password-reset-confirm'), {
        'uid': 'x', 'token': 'y', 'new_password': 'short',
    }, format='json')
    assert r.status_code == 400
    assert 'new_password' in r.data['fields']
