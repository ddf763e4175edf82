"""
Vitals evaluation, alert raising and real-time fan-out.

A vitals reading is graded sign by sign against fixed adult ICU bands.
The worst grade becomes the patient's status, and an abnormal reading
raises a ``PatientAlert`` unless one of the same type is still waiting
for acknowledgement.  New alerts are pushed to the ``alerts`` channel
group and every reading to ``vitals.<patient id>``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from monitor.models import Patient, PatientAlert, PatientVitals
from monitor.services.audit import audit

logger = logging.getLogger(__name__)

ALERTS_GROUP = 'alerts'

NORMAL = Patient.STATUS_NORMAL
WARNING = Patient.STATUS_WARNING
CRITICAL = Patient.STATUS_CRITICAL

_SEVERITY = {NORMAL: 0, WARNING: 1, CRITICAL: 2}

# (field, label, unit, critical_low, warning_low, warning_high, critical_high)
# A value below critical_low or above critical_high is critical; outside
# [warning_low, warning_high] it is a warning.  None disables a bound.
VITAL_BANDS = (
    ('heart_rate', 'Heart rate', 'bpm', 40, 50, 120, 140),
    ('oxygen_level', 'SpO2', '%', 88, 92, None, None),
    ('temperature', 'Temperature', '°C', 35.0, 36.0, 38.0, 39.5),
    ('blood_pressure_systolic', 'Systolic BP', 'mmHg', 80, 90, 160, 180),
    ('blood_pressure_diastolic', 'Diastolic BP', 'mmHg', 40, 50, 100, 120),
    ('respiratory_rate', 'Respiratory rate', '/min', 8, 12, 24, 30),
    ('glucose_level', 'Glucose', 'mg/dL', 54, 70, 180, 300),
)


def vitals_group(patient_id) -> str:
    return f'vitals.{patient_id}'


@dataclass
class Finding:
    vital: str
    label: str
    value: float
    unit: str
    level: str

    def describe(self) -> str:
        return f'{self.label} {self.value:g}{self.unit}'


@dataclass
class Evaluation:
    level: str = NORMAL
    findings: list[Finding] = field(default_factory=list)

    @property
    def abnormal(self) -> bool:
        return self.level != NORMAL

    @property
    def priority(self) -> Optional[str]:
        if self.level == CRITICAL:
            return PatientAlert.PRIORITY_CRITICAL
        if self.level == WARNING:
            warnings = sum(1 for f in self.findings if f.level == WARNING)
            return PatientAlert.PRIORITY_HIGH if warnings >= 2 else PatientAlert.PRIORITY_MODERATE
        return None


def grade(value, crit_low, warn_low, warn_high, crit_high) -> str:
    if value is None:
        return NORMAL
    if (crit_low is not None and value < crit_low) or (crit_high is not None and value > crit_high):
        return CRITICAL
    if (warn_low is not None and value < warn_low) or (warn_high is not None and value > warn_high):
        return WARNING
    return NORMAL


def evaluate_vitals(vitals) -> Evaluation:
    """Grade every recorded sign of ``vitals`` (a model or a dict)."""
    get = vitals.get if isinstance(vitals, dict) else (lambda k: getattr(vitals, k, None))
    result = Evaluation()
    for fname, label, unit, cl, wl, wh, ch in VITAL_BANDS:
        value = get(fname)
        level = grade(value, cl, wl, wh, ch)
        if level == NORMAL:
            continue
        result.findings.append(Finding(fname, label, value, unit, level))
        if _SEVERITY[level] > _SEVERITY[result.level]:
            result.level = level
    return result


def _broadcast(group: str, event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception:
        # the triggering write has already committed
        logger.exception('broadcast to %s failed', group)


def alert_payload(alert: PatientAlert) -> dict:
    return {
        'id': str(alert.id),
        'patient_id': str(alert.patient_id),
        'doctor_id': alert.doctor_id,
        'alert_type': alert.alert_type,
        'priority': alert.priority,
        'message': alert.message,
        'is_acknowledged': alert.is_acknowledged,
        'created_at': alert.created_at.isoformat() if alert.created_at else None,
        'patient': {'name': alert.patient.name, 'room': alert.patient.room},
    }


def vitals_payload(v: PatientVitals) -> dict:
    return {
        'id': str(v.id),
        'patient_id': str(v.patient_id),
        'heart_rate': v.heart_rate,
        'blood_pressure_systolic': v.blood_pressure_systolic,
        'blood_pressure_diastolic': v.blood_pressure_diastolic,
        'oxygen_level': v.oxygen_level,
        'temperature': v.temperature,
        'glucose_level': v.glucose_level,
        'respiratory_rate': v.respiratory_rate,
        'recorded_at': v.recorded_at.isoformat() if v.recorded_at else None,
    }


def raise_alert(patient: Patient, *, alert_type: str, priority: str, message: str) -> PatientAlert:
    alert = PatientAlert.objects.create(
        patient=patient,
        doctor_id=patient.doctor_id,
        alert_type=alert_type,
        priority=priority,
        message=message,
    )
    transaction.on_commit(lambda: _broadcast(ALERTS_GROUP, {'type': 'alert.created', 'alert': alert_payload(alert)}))
    return alert


def record_vitals(patient: Patient, data: dict) -> tuple[PatientVitals, Evaluation, Optional[PatientAlert]]:
    """Store a reading, update the patient's status and raise an alert if needed."""
    with transaction.atomic():
        vitals = PatientVitals.objects.create(patient=patient, **data)
        evaluation = evaluate_vitals(vitals)

        if patient.status != evaluation.level:
            patient.status = evaluation.level
            patient.save(update_fields=['status', 'updated_at'])

        alert = None
        if evaluation.abnormal:
            alert_type = f'vitals_{evaluation.level}'
            already_open = PatientAlert.objects.filter(
                patient=patient, alert_type=alert_type, is_acknowledged=False
            ).exists()
            if not already_open:
                summary = ', '.join(f.describe() for f in evaluation.findings)
                alert = raise_alert(
                    patient,
                    alert_type=alert_type,
                    priority=evaluation.priority,
                    message=f'{patient.name} (room {patient.room}): {summary}',
                )
                logger.info('raised %s alert %s for patient %s', alert.priority, alert.id, patient.id)

    transaction.on_commit(lambda: _broadcast(vitals_group(patient.id), {
        'type': 'vitals.recorded',
        'vitals': vitals_payload(vitals),
        'status': patient.status,
    }))
    return vitals, evaluation, alert


def visible_alerts(doctor):
    """Unacknowledged alerts for the doctor's patients and for unassigned patients."""
    return (PatientAlert.objects
            .filter(is_acknowledged=False)
            .filter(Q(patient__doctor=doctor) | Q(patient__doctor__isnull=True))
            .select_related('patient')
            .order_by('-created_at'))


def acknowledge_alert(doctor, alert: PatientAlert) -> PatientAlert:
    if alert.is_acknowledged:
        return alert
    alert.is_acknowledged = True
    alert.acknowledged_at = timezone.now()
    alert.acknowledged_by = doctor
    alert.save(update_fields=['is_acknowledged', 'acknowledged_at', 'acknowledged_by'])
    audit(user=doctor, action='alert_acknowledge', object_type='alert', object_id=alert.id,
          detail={'patient': str(alert.patient_id), 'priority': alert.priority})
    transaction.on_commit(lambda: _broadcast(ALERTS_GROUP, {
        'type': 'alert.acknowledged',
        'alert': {
            'id': str(alert.id),
            'doctor_id': alert.doctor_id,
            'acknowledged_at': alert.acknowledged_at.isoformat(),
        },
    }))
    return alert
