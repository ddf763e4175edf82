"""
Database models for the HealthPulse monitoring backend.

These models capture the core concepts of the system: staff and patient
accounts, ICU patients with their point-in-time vitals and the alerts
raised from them, plus the doctor-side fitness integration.  Field names
mirror the JSON the dashboard front-end already consumes so that views
can serialise rows with little translation.
"""
from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model with an application role.

    Roles mirror the dashboard roles: 'doctor', 'receptionist' and
    'patient'.  Accounts are created with ``username`` equal to the
    e-mail address, which is unique and is what people log in with.
    """
    ROLE_DOCTOR = 'doctor'
    ROLE_RECEPTIONIST = 'receptionist'
    ROLE_PATIENT = 'patient'
    ROLE_CHOICES = [
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_RECEPTIONIST, 'Receptionist'),
        (ROLE_PATIENT, 'Patient'),
    ]
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"


class DoctorProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    full_name = models.CharField(max_length=255, blank=True)
    specialization = models.CharField(max_length=255, blank=True)
    profession = models.CharField(max_length=255, blank=True)
    license_number = models.CharField(max_length=64, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    department = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.full_name or self.user.email}"


class ReceptionistProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='receptionist_profile')
    full_name = models.CharField(max_length=255)
    department = models.CharField(max_length=255, blank=True)
    hospital_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.full_name


class Patient(models.Model):
    """An admitted patient.

    A patient row may exist without a login account; registration through
    the reception desk creates both and links them via ``user``.  The
    ``status`` follows the latest vitals evaluation.
    """
    STATUS_NORMAL = 'normal'
    STATUS_WARNING = 'warning'
    STATUS_CRITICAL = 'critical'
    STATUS_CHOICES = [
        (STATUS_NORMAL, 'Normal'),
        (STATUS_WARNING, 'Warning'),
        (STATUS_CRITICAL, 'Critical'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_record'
    )
    email = models.EmailField(blank=True)
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField()
    gender = models.CharField(max_length=16, blank=True)
    room = models.CharField(max_length=32)
    bed_number = models.CharField(max_length=32, blank=True)
    diagnosis = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=255, blank=True)
    emergency_phone = models.CharField(max_length=32, blank=True)
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='assigned_patients'
    )
    registered_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='registered_patients'
    )
    password_given = models.BooleanField(default=False)
    # dashboards sort and count by status
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_NORMAL, db_index=True)
    is_icu = models.BooleanField(default=False)
    admission_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'status'], name='patient_doctor_status_idx'),
            models.Index(fields=['registered_by', 'created_at'], name='patient_registrar_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.name} (room {self.room})"


class PatientVitals(models.Model):
    """A point-in-time vitals reading for a patient."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='vitals')
    heart_rate = models.PositiveIntegerField(null=True, blank=True)
    blood_pressure_systolic = models.PositiveIntegerField(null=True, blank=True)
    blood_pressure_diastolic = models.PositiveIntegerField(null=True, blank=True)
    oxygen_level = models.FloatField(null=True, blank=True)
    temperature = models.FloatField(null=True, blank=True)
    glucose_level = models.FloatField(null=True, blank=True)
    respiratory_rate = models.PositiveIntegerField(null=True, blank=True)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'recorded_at'], name='vitals_patient_time_idx')]

    def __str__(self) -> str:
        return f"vitals {self.patient_id} @ {self.recorded_at:%F %T}"


class PatientAlert(models.Model):
    PRIORITY_LOW = 'low'
    PRIORITY_MODERATE = 'moderate'
    PRIORITY_HIGH = 'high'
    PRIORITY_CRITICAL = 'critical'
    PRIORITY_CHOICES = [
        (PRIORITY_LOW, 'Low'),
        (PRIORITY_MODERATE, 'Moderate'),
        (PRIORITY_HIGH, 'High'),
        (PRIORITY_CRITICAL, 'Critical'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='alerts')
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_alerts'
    )
    alert_type = models.CharField(max_length=64)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_MODERATE)
    message = models.TextField()
    is_acknowledged = models.BooleanField(default=False, db_index=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='acknowledged_alerts'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['is_acknowledged', 'created_at'], name='alert_open_time_idx'),
            models.Index(fields=['patient', 'alert_type', 'is_acknowledged'], name='alert_patient_type_idx'),
        ]

    def __str__(self) -> str:
        return f"[{self.priority}] {self.alert_type} for {self.patient_id}"


class FitnessConnection(models.Model):
    """OAuth tokens linking a doctor to the fitness provider."""
    doctor = models.OneToOneField(User, on_delete=models.CASCADE, related_name='fitness_connection')
    access_token = models.TextField()
    refresh_token = models.TextField(blank=True)
    token_expires_at = models.DateTimeField()
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"fit:{self.doctor_id} exp={self.token_expires_at:%F %T}"


class DoctorHealthData(models.Model):
    SOURCE_GOOGLE_FIT = 'google_fit'
    SOURCE_DEMO = 'demo'
    SOURCE_CHOICES = ((SOURCE_GOOGLE_FIT, 'google_fit'), (SOURCE_DEMO, 'demo'))

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='health_data')
    heart_rate = models.PositiveIntegerField(null=True, blank=True)
    spo2 = models.PositiveIntegerField(null=True, blank=True)
    steps = models.PositiveIntegerField(null=True, blank=True)
    data_source = models.CharField(max_length=16, choices=SOURCE_CHOICES, default=SOURCE_DEMO)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['doctor', 'recorded_at'], name='health_doctor_time_idx')]

    def __str__(self) -> str:
        return f"health {self.doctor_id} hr={self.heart_rate} spo2={self.spo2} ({self.data_source})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_time_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_time_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
