import logging
import secrets
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from rest_framework.exceptions import NotFound

from monitor.exceptions import RegistrationError
from monitor.models import DoctorProfile, Patient
from monitor.services.audit import audit

logger = logging.getLogger(__name__)
User = get_user_model()

PASSWORD_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789@#$%&*'


def generate_password(length: int = 10) -> str:
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def _create_account(email: str, password: str, *, role: str, full_name: str):
    if User.objects.filter(email__iexact=email).exists():
        raise RegistrationError('A user with this email address has already been registered')
    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=email, email=email, password=password, first_name=full_name[:150],
            )
            user.role = role
            user.save(update_fields=['role'])
    except DatabaseError as e:
        logger.warning('account creation failed for %s: %s', email, e)
        raise RegistrationError(str(e)) from e
    return user


def _rollback_account(user) -> None:
    user_id = user.pk
    user.delete()
    logger.info('rolled back account %s after profile insert failure', user_id)


def register_patient(registered_by, *, email, name, age, room, gender='', bed_number='',
                     diagnosis='', emergency_contact='', emergency_phone='', doctor_id=None):
    """Create a patient login plus its ``Patient`` row.

    Returns ``(patient, password)``.  The password is only ever handed
    back here; it is not stored anywhere in clear text.
    """
    doctor = None
    if doctor_id:
        doctor = User.objects.filter(pk=doctor_id, role=User.ROLE_DOCTOR).first()
        if doctor is None:
            raise RegistrationError('Assigned doctor not found')

    password = generate_password(10)
    logger.info('creating patient account for %s', email)
    user = _create_account(email, password, role=User.ROLE_PATIENT, full_name=name)

    try:
        with transaction.atomic():
            patient = Patient.objects.create(
                user=user,
                email=email,
                name=name,
                age=age,
                gender=gender or '',
                room=room,
                bed_number=bed_number or '',
                diagnosis=diagnosis or '',
                emergency_contact=emergency_contact or '',
                emergency_phone=emergency_phone or '',
                doctor=doctor,
                registered_by=registered_by,
                password_given=False,
                status=Patient.STATUS_NORMAL,
                is_icu=False,
                admission_date=timezone.now(),
            )
    except DatabaseError as e:
        logger.error('patient record insert failed for %s: %s', email, e)
        _rollback_account(user)
        raise RegistrationError(str(e)) from e

    audit(user=registered_by, action='patient_register', object_type='patient',
          object_id=patient.id, detail={'email': email})
    return patient, password


def register_doctor(registered_by, *, email, full_name, specialization, phone, department=None):
    """Create a doctor login plus its ``DoctorProfile``; returns ``(profile, password)``."""
    password = generate_password(10)
    logger.info('creating doctor account for %s', email)
    user = _create_account(email, password, role=User.ROLE_DOCTOR, full_name=full_name)

    try:
        with transaction.atomic():
            profile = DoctorProfile.objects.create(
                user=user,
                full_name=full_name,
                specialization=specialization,
                phone=phone,
                department=department or '',
            )
    except DatabaseError as e:
        logger.error('doctor profile insert failed for %s: %s', email, e)
        _rollback_account(user)
        raise RegistrationError(str(e)) from e

    audit(user=registered_by, action='doctor_register', object_type='doctor',
          object_id=user.id, detail={'email': email})
    return profile, password


def recent_registrations(receptionist, limit: int = 10):
    return (Patient.objects.filter(registered_by=receptionist)
            .order_by('-created_at')[:limit])


def mark_credentials_given(receptionist, patient_id) -> Patient:
    patient = Patient.objects.filter(pk=patient_id, registered_by=receptionist).first()
    if patient is None:
        raise NotFound('patient not found')
    if not patient.password_given:
        patient.password_given = True
        patient.save(update_fields=['password_given', 'updated_at'])
        audit(user=receptionist, action='credentials_given', object_type='patient', object_id=patient.id)
    return patient


# ---------------------------------------------------------------------
# Forgotten passwords
# ---------------------------------------------------------------------

def request_password_reset(email: str) -> bool:
    """Mail a reset link if ``email`` belongs to an active account.

    Returns whether a message was sent; callers must not reveal it.
    """
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        logger.info('password reset requested for unknown address')
        return False
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    link = f'{settings.FRONTEND_URL}/auth/reset-password?{urlencode({"uid": uid, "token": token})}'
    minutes = settings.PASSWORD_RESET_TIMEOUT // 60
    send_mail(
        'HealthPulse password reset',
        f'Someone asked to reset the password for {user.email}.\n\n'
        f'Open this link within {minutes} minutes to choose a new one:\n{link}\n\n'
        'If this was not you, ignore this message.',
        None,
        [user.email],
    )
    audit(user=user, action='password_reset_request', object_type='user', object_id=user.pk)
    return True


def reset_password(uid: str, token: str, new_password: str):
    """Set ``new_password`` if ``token`` is valid for ``uid``; returns the user or None."""
    try:
        pk = force_str(urlsafe_base64_decode(uid))
        user = User.objects.filter(pk=pk, is_active=True).first()
    except (TypeError, ValueError, OverflowError):
        user = None
    if user is None or not default_token_generator.check_token(user, token):
        return None
    user.set_password(new_password)
    user.save(update_fields=['password'])
    audit(user=user, action='password_reset', object_type='user', object_id=user.pk)
    return user
