import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from monitor.models import DoctorProfile, Patient, ReceptionistProfile, User


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


def make_user(email, role, password='P@ssw0rd123', **extra):
    return User.objects.create_user(username=email, email=email, password=password, role=role, **extra)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def receptionist(db):
    user = make_user('desk@ggh.example', User.ROLE_RECEPTIONIST)
    ReceptionistProfile.objects.create(user=user, full_name='Front Desk', hospital_name='GGH')
    return user


@pytest.fixture
def doctor(db):
    user = make_user('dr.rao@ggh.example', User.ROLE_DOCTOR)
    DoctorProfile.objects.create(user=user, full_name='Anita Rao', specialization='Cardiology', phone='+91 90000 00001')
    return user


@pytest.fixture
def other_doctor(db):
    user = make_user('dr.khan@ggh.example', User.ROLE_DOCTOR)
    DoctorProfile.objects.create(user=user, full_name='Imran Khan', specialization='Pulmonology', phone='+91 90000 00002')
    return user


@pytest.fixture
def patient(db, doctor, receptionist):
    user = make_user('ravi@ggh.example', User.ROLE_PATIENT)
    return Patient.objects.create(
        user=user, email=user.email, name='Ravi Kumar', age=54, room='ICU-3',
        doctor=doctor, registered_by=receptionist, is_icu=True,
    )


@pytest.fixture
def as_user(api_client):
    def _login(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _login
