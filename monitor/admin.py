"""
Django admin registrations for the monitoring models.
"""

from django.contrib import admin

from .models import (
    User,
    DoctorProfile,
    ReceptionistProfile,
    Patient,
    PatientVitals,
    PatientAlert,
    FitnessConnection,
    DoctorHealthData,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'role', 'is_active', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'username', 'first_name', 'last_name')


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'specialization', 'department', 'phone')
    search_fields = ('full_name', 'user__email', 'specialization')


@admin.register(ReceptionistProfile)
class ReceptionistProfileAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'hospital_name', 'department')
    search_fields = ('full_name', 'user__email')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('name', 'room', 'bed_number', 'status', 'is_icu', 'doctor', 'password_given', 'created_at')
    list_filter = ('status', 'is_icu', 'password_given')
    search_fields = ('name', 'email', 'room')


@admin.register(PatientVitals)
class PatientVitalsAdmin(admin.ModelAdmin):
    list_display = ('patient', 'heart_rate', 'oxygen_level', 'temperature', 'recorded_at')
    search_fields = ('patient__name',)


@admin.register(PatientAlert)
class PatientAlertAdmin(admin.ModelAdmin):
    list_display = ('patient', 'alert_type', 'priority', 'is_acknowledged', 'created_at')
    list_filter = ('priority', 'is_acknowledged', 'alert_type')
    search_fields = ('patient__name', 'message')


@admin.register(FitnessConnection)
class FitnessConnectionAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'token_expires_at', 'last_sync_at')
    exclude = ('access_token', 'refresh_token')


@admin.register(DoctorHealthData)
class DoctorHealthDataAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'heart_rate', 'spo2', 'steps', 'data_source', 'recorded_at')
    list_filter = ('data_source',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
