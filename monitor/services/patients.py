from django.db.models import Case, Count, IntegerField, Q, Value, When
from rest_framework.exceptions import NotFound, PermissionDenied

from monitor.models import DoctorProfile, Patient, User


def can_access_patient(user, patient: Patient, *, any_receptionist: bool = True) -> bool:
    """Whether ``user`` may read ``patient``'s record and vitals.

    Doctors see only the patients assigned to them.  Receptionists see
    every patient, or with ``any_receptionist=False`` only those they
    registered.  A patient sees only themself.
    """
    if not user or not user.is_authenticated:
        return False
    role = getattr(user, 'role', None)
    if role == User.ROLE_DOCTOR:
        return patient.doctor_id is not None and patient.doctor_id == user.pk
    if role == User.ROLE_RECEPTIONIST:
        return any_receptionist or patient.registered_by_id == user.pk
    if role == User.ROLE_PATIENT:
        return patient.user_id == user.pk
    return False


def get_patient_for(user, patient_id, *, any_receptionist: bool = True) -> Patient:
    patient = Patient.objects.select_related('doctor').filter(pk=patient_id).first()
    if patient is None:
        raise NotFound('patient not found')
    if not can_access_patient(user, patient, any_receptionist=any_receptionist):
        raise PermissionDenied('You do not have access to this patient')
    return patient


_STATUS_ORDER = Case(
    When(status=Patient.STATUS_CRITICAL, then=Value(0)),
    When(status=Patient.STATUS_WARNING, then=Value(1)),
    default=Value(2),
    output_field=IntegerField(),
)


def doctor_patients(doctor):
    """Assigned patients, critical first, then warning, then normal."""
    return (Patient.objects.filter(doctor=doctor)
            .annotate(status_rank=_STATUS_ORDER)
            .order_by('status_rank', 'name'))


def doctor_stats(doctor) -> dict:
    agg = Patient.objects.filter(doctor=doctor).aggregate(
        total=Count('id'),
        critical=Count('id', filter=Q(status=Patient.STATUS_CRITICAL)),
        warning=Count('id', filter=Q(status=Patient.STATUS_WARNING)),
        normal=Count('id', filter=Q(status=Patient.STATUS_NORMAL)),
        icu=Count('id', filter=Q(is_icu=True)),
    )
    return agg


def assigned_doctor_summary(patient: Patient):
    if not patient.doctor_id:
        return None
    profile = DoctorProfile.objects.filter(user_id=patient.doctor_id).first()
    if profile is None:
        return {'id': patient.doctor_id, 'full_name': patient.doctor.get_full_name(),
                'specialization': '', 'phone': ''}
    return {
        'id': patient.doctor_id,
        'full_name': profile.full_name,
        'specialization': profile.specialization,
        'phone': profile.phone,
    }


def list_doctors():
    return (DoctorProfile.objects.select_related('user')
            .filter(user__role=User.ROLE_DOCTOR, user__is_active=True)
            .order_by('full_name'))
