"""
URL mappings for the monitoring API.

Trailing slashes are omitted to match the paths the dashboard front-end
calls.
"""
from django.urls import path, include

from .views import auth, chat, dashboards, fitness, health, monitoring, registration

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    path('api/auth/login', auth.login_view, name='auth-login'),
    path('api/auth/refresh', auth.refresh_view, name='auth-refresh'),
    path('api/auth/logout', auth.logout_view, name='auth-logout'),
    path('api/auth/me', auth.me_view, name='auth-me'),
    path('api/auth/password', auth.change_password_view, name='auth-password'),
    path('api/auth/password-reset', auth.password_reset_request_view, name='auth-password-reset'),
    path('api/auth/password-reset/confirm', auth.password_reset_confirm_view,
         name='auth-password-reset-confirm'),

    path('api/register/patient', registration.register_patient, name='register-patient'),
    path('api/register/doctor', registration.register_doctor, name='register-doctor'),
    path('api/reception/patients', registration.recent_patients, name='reception-patients'),
    path('api/reception/patients/<uuid:patient_id>/credentials-given', registration.credentials_given,
         name='reception-credentials-given'),
    path('api/reception/doctors', registration.doctors, name='reception-doctors'),

    path('api/fit/auth', fitness.fit_auth, name='fit-auth'),
    path('api/fit/data', fitness.fit_data, name='fit-data'),

    path('api/chat', chat.chat, name='chat'),

    path('api/patients/<uuid:patient_id>', dashboards.patient_detail, name='patient-detail'),
    path('api/patients/<uuid:patient_id>/vitals', monitoring.patient_vitals, name='patient-vitals'),
    path('api/alerts', monitoring.alerts, name='alerts'),
    path('api/alerts/<uuid:alert_id>/acknowledge', monitoring.alert_acknowledge, name='alert-acknowledge'),

    path('api/doctor/dashboard', dashboards.doctor_dashboard, name='doctor-dashboard'),
    path('api/doctor/profile', dashboards.doctor_profile, name='doctor-profile'),
    path('api/patient/me', dashboards.patient_me, name='patient-me'),
]
