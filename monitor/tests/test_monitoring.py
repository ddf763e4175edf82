import uuid

import pytest
from django.urls import reverse

from monitor.models import Patient, PatientAlert, PatientVitals
from monitor.services import alerts as alert_service
from monitor.services.alerts import evaluate_vitals

from .conftest import make_user


@pytest.fixture
def broadcasts(monkeypatch):
    sent = []
    monkeypatch.setattr(alert_service, '_broadcast', lambda group, event: sent.append((group, event)))
    return sent


def vitals_url(patient):
    return reverse('patient-vitals', args=[patient.id])


class TestEvaluateVitals:
    def test_normal_reading(self):
        ev = evaluate_vitals({'heart_rate': 72, 'oxygen_level': 98, 'temperature': 36.8})
        assert ev.level == 'normal'
        assert not ev.abnormal
        assert ev.priority is None

    @pytest.mark.parametrize('reading,level', [
        ({'heart_rate': 130}, 'warning'),
        ({'heart_rate': 150}, 'critical'),
        ({'heart_rate': 45}, 'warning'),
        ({'oxygen_level': 90}, 'warning'),
        ({'oxygen_level': 85}, 'critical'),
        ({'temperature': 40.1}, 'critical'),
        ({'blood_pressure_systolic': 85}, 'warning'),
    ])
    def test_single_sign_grades(self, reading, level):
        assert evaluate_vitals(reading).level == level

    def test_priority_rules(self):
        assert evaluate_vitals({'heart_rate': 130}).priority == 'moderate'
        assert evaluate_vitals({'heart_rate': 130, 'oxygen_level': 90}).priority == 'high'
        assert evaluate_vitals({'heart_rate': 130, 'oxygen_level': 80}).priority == 'critical'

    def test_missing_signs_are_ignored(self):
        ev = evaluate_vitals({'heart_rate': None, 'glucose_level': 320})
        assert ev.level == 'critical'
        assert [f.vital for f in ev.findings] == ['glucose_level']


@pytest.mark.django_db
class TestVitalsEndpoint:
    def test_record_normal_vitals(self, as_user, receptionist, patient, broadcasts, django_capture_on_commit_callbacks):
        client = as_user(receptionist)
        with django_capture_on_commit_callbacks(execute=True):
            r = client.post(vitals_url(patient), {'heart_rate': 75, 'oxygen_level': 97}, format='json')
        assert r.status_code == 201
        assert r.data['status'] == 'normal'
        assert r.data['alert'] is None
        assert PatientAlert.objects.count() == 0
        assert len(broadcasts) == 1
        group, event = broadcasts[0]
        assert group == f'vitals.{patient.id}'
        assert event['type'] == 'vitals.recorded'
        assert event['status'] == 'normal'
        assert event['vitals']['heart_rate'] == 75

    def test_critical_vitals_raise_one_alert(self, as_user, doctor, patient, broadcasts, django_capture_on_commit_callbacks):
        client = as_user(doctor)
        with django_capture_on_commit_callbacks(execute=True):
            r = client.post(vitals_url(patient), {'heart_rate': 150, 'oxygen_level': 85}, format='json')
        assert r.status_code == 201
        assert r.data['status'] == 'critical'
        assert r.data['alert']['priority'] == 'critical'
        assert r.data['alert']['patient'] == {'name': 'Ravi Kumar', 'room': 'ICU-3'}
        patient.refresh_from_db()
        assert patient.status == Patient.STATUS_CRITICAL

        groups = [g for g, _ in broadcasts]
        assert groups == ['alerts', f'vitals.{patient.id}']
        assert broadcasts[0][1]['type'] == 'alert.created'

        # still unacknowledged: no duplicate
        r = client.post(vitals_url(patient), {'heart_rate': 155}, format='json')
        assert r.data['alert'] is None
        assert PatientAlert.objects.filter(patient=patient).count() == 1

    def test_recovery_resets_status(self, as_user, doctor, patient, broadcasts):
        client = as_user(doctor)
        client.post(vitals_url(patient), {'heart_rate': 130}, format='json')
        patient.refresh_from_db()
        assert patient.status == Patient.STATUS_WARNING
        client.post(vitals_url(patient), {'heart_rate': 80}, format='json')
        patient.refresh_from_db()
        assert patient.status == Patient.STATUS_NORMAL

    def test_empty_reading_is_rejected(self, as_user, doctor, patient):
        r = as_user(doctor).post(vitals_url(patient), {}, format='json')
        assert r.status_code == 400
        assert r.data['error'] == 'At least one vital sign is required'

    def test_out_of_range_value_is_rejected(self, as_user, doctor, patient):
        r = as_user(doctor).post(vitals_url(patient), {'oxygen_level': 140}, format='json')
        assert r.status_code == 400
        assert 'oxygen_level' in r.data['fields']

    def test_patient_reads_own_vitals_but_cannot_record(self, as_user, patient, broadcasts):
        PatientVitals.objects.create(patient=patient, heart_rate=70)
        PatientVitals.objects.create(patient=patient, heart_rate=71)
        client = as_user(patient.user)
        r = client.get(vitals_url(patient), {'limit': 1})
        assert r.status_code == 200
        assert len(r.data) == 1
        r = client.post(vitals_url(patient), {'heart_rate': 70}, format='json')
        assert r.status_code == 403

    def test_other_doctor_is_denied(self, as_user, other_doctor, patient):
        r = as_user(other_doctor).get(vitals_url(patient))
        assert r.status_code == 403

    def test_unassigned_patient_is_closed_to_doctors(self, as_user, doctor, broadcasts):
        walk_in = Patient.objects.create(name='Walk In', age=30, room='ER-1')
        client = as_user(doctor)
        assert client.get(reverse('patient-detail', args=[walk_in.id])).status_code == 403
        assert client.get(vitals_url(walk_in)).status_code == 403
        r = client.post(vitals_url(walk_in), {'heart_rate': 150}, format='json')
        assert r.status_code == 403
        assert not PatientVitals.objects.filter(patient=walk_in).exists()
        assert broadcasts == []

    def test_unknown_patient(self, as_user, doctor):
        r = as_user(doctor).get(reverse('patient-vitals', args=[uuid.uuid4()]))
        assert r.status_code == 404
        assert r.data == {'ok': False, 'error': 'patient not found'}


@pytest.mark.django_db
class TestAlerts:
    def test_visible_alerts(self, as_user, doctor, other_doctor, patient, broadcasts):
        unassigned = Patient.objects.create(name='Walk In', age=30, room='ER-1')
        theirs = Patient.objects.create(name='Other', age=40, room='W-2', doctor=other_doctor)
        mine = alert_service.raise_alert(patient, alert_type='vitals_warning', priority='moderate', message='m')
        shared = alert_service.raise_alert(unassigned, alert_type='vitals_warning', priority='moderate', message='u')
        alert_service.raise_alert(theirs, alert_type='vitals_warning', priority='moderate', message='o')
        acked = alert_service.raise_alert(patient, alert_type='manual', priority='low', message='old')
        alert_service.acknowledge_alert(doctor, acked)

        r = as_user(doctor).get(reverse('alerts'))
        assert r.status_code == 200
        assert {a['id'] for a in r.data} == {str(mine.id), str(shared.id)}

    def test_alerts_limited_to_twenty(self, as_user, doctor, patient, broadcasts):
        for i in range(25):
            alert_service.raise_alert(patient, alert_type=f't{i}', priority='low', message=str(i))
        r = as_user(doctor).get(reverse('alerts'))
        assert len(r.data) == 20

    def test_acknowledge_is_idempotent(self, as_user, doctor, patient, broadcasts):
        alert = alert_service.raise_alert(patient, alert_type='vitals_critical', priority='critical', message='m')
        client = as_user(doctor)
        url = reverse('alert-acknowledge', args=[alert.id])

        first = client.post(url)
        assert first.status_code == 200
        assert first.data['is_acknowledged'] is True
        stamp = first.data['acknowledged_at']

        second = client.post(url)
        assert second.status_code == 200
        assert second.data['acknowledged_at'] == stamp
        alert.refresh_from_db()
        assert alert.acknowledged_by_id == doctor.id

    def test_acknowledgement_broadcast_names_the_doctor(self, doctor, patient, broadcasts,
                                                        django_capture_on_commit_callbacks):
        alert = alert_service.raise_alert(patient, alert_type='manual', priority='low', message='m')
        with django_capture_on_commit_callbacks(execute=True):
            alert_service.acknowledge_alert(doctor, alert)
        group, event = broadcasts[-1]
        assert group == 'alerts'
        assert event['type'] == 'alert.acknowledged'
        assert event['alert']['id'] == str(alert.id)
        assert event['alert']['doctor_id'] == doctor.id

    def test_other_doctors_alert_is_forbidden(self, as_user, other_doctor, patient, broadcasts):
        alert = alert_service.raise_alert(patient, alert_type='x', priority='low', message='m')
        r = as_user(other_doctor).post(reverse('alert-acknowledge', args=[alert.id]))
        assert r.status_code == 403

    def test_alerts_are_doctor_only(self, as_user, receptionist):
        assert as_user(receptionist).get(reverse('alerts')).status_code == 403


@pytest.mark.django_db
class TestDashboards:
    def test_doctor_dashboard_orders_by_urgency(self, as_user, doctor, patient):
        Patient.objects.create(name='Beta', age=61, room='W-1', doctor=doctor, status='warning')
        Patient.objects.create(name='Alpha', age=33, room='W-2', doctor=doctor, status='critical')
        r = as_user(doctor).get(reverse('doctor-dashboard'))
        assert r.status_code == 200
        assert [p['status'] for p in r.data['patients']] == ['critical', 'warning', 'normal']
        assert r.data['stats'] == {'total': 3, 'critical': 1, 'warning': 1, 'normal': 1, 'icu': 1}

    def test_doctor_profile_update(self, as_user, doctor):
        client = as_user(doctor)
        r = client.patch(reverse('doctor-profile'), {'department': 'Cardiac ICU'}, format='json')
        assert r.status_code == 200
        assert r.data['department'] == 'Cardiac ICU'
        assert client.get(reverse('doctor-profile')).data['full_name'] == 'Anita Rao'

    def test_patient_me(self, as_user, patient):
        r = as_user(patient.user).get(reverse('patient-me'))
        assert r.status_code == 200
        assert r.data['patient']['name'] == 'Ravi Kumar'
        assert r.data['doctor'] == {
            'id': patient.doctor_id, 'full_name': 'Anita Rao',
            'specialization': 'Cardiology', 'phone': '+91 90000 00001',
        }

    def test_patient_me_without_record(self, as_user):
        user = make_user('orphan@ggh.example', 'patient')
        r = as_user(user).get(reverse('patient-me'))
        assert r.status_code == 404

    def test_patient_detail_access(self, as_user, doctor, other_doctor, receptionist, patient):
        url = reverse('patient-detail', args=[patient.id])
        assert as_user(doctor).get(url).status_code == 200
        assert as_user(receptionist).get(url).status_code == 200
        assert as_user(patient.user).get(url).status_code == 200
        assert as_user(other_doctor).get(url).status_code == 403
        stranger = make_user('desk2@ggh.example', 'receptionist')
        assert as_user(stranger).get(url).status_code == 403
