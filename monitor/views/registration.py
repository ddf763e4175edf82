"""
Reception desk endpoints: patient and doctor registration plus the
recent-registrations list, the credentials hand-over flag and the
doctor dropdown.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from monitor.exceptions import RegistrationError
from monitor.permissions import IsReceptionist
from monitor.serializers.monitoring import PatientSerializer
from monitor.serializers.registration import DoctorRegistrationSerializer, PatientRegistrationSerializer
from monitor.services import accounts
from monitor.services.patients import list_doctors


class CanRegisterPatients(IsReceptionist):
    message = 'Only receptionists can register patients'


class CanRegisterDoctors(IsReceptionist):
    message = 'Only receptionists can register doctors'


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanRegisterPatients])
def register_patient(request):
    s = PatientRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        patient, password = accounts.register_patient(request.user, **vd)
    except RegistrationError as e:
        return Response({'ok': False, 'error': str(e)}, status=400)
    return Response({
        'success': True,
        'patient': PatientSerializer(patient).data,
        'credentials': {'email': patient.email, 'password': password},
        'message': 'Patient registered successfully',
    })

register_patient.cls.throttle_scope = 'registration'


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanRegisterDoctors])
def register_doctor(request):
    s = DoctorRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        profile, password = accounts.register_doctor(request.user, **vd)
    except RegistrationError as e:
        return Response({'ok': False, 'error': str(e)}, status=400)
    return Response({
        'success': True,
        'doctor': {
            'id': profile.user_id,
            'email': profile.user.email,
            'full_name': profile.full_name,
            'specialization': profile.specialization,
            'phone': profile.phone,
            'department': profile.department,
        },
        'credentials': {'email': profile.user.email, 'password': password},
        'message': 'Doctor registered successfully',
    })

register_doctor.cls.throttle_scope = 'registration'


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsReceptionist])
def recent_patients(request):
    rows = accounts.recent_registrations(request.user, limit=10)
    return Response(PatientSerializer(rows, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReceptionist])
def credentials_given(request, patient_id):
    patient = accounts.mark_credentials_given(request.user, patient_id)
    return Response({'ok': True, 'id': str(patient.id), 'password_given': patient.password_given})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsReceptionist])
def doctors(request):
    return Response([
        {'user_id': p.user_id, 'full_name': p.full_name, 'specialization': p.specialization}
        for p in list_doctors()
    ])
