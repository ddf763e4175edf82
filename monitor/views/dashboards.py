from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from monitor.models import DoctorProfile, Patient
from monitor.permissions import IsDoctor, IsPatientRole
from monitor.serializers.monitoring import DoctorProfileSerializer, PatientSerializer, VitalsSerializer
from monitor.services import patients as patient_service


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctor])
def doctor_dashboard(request):
    """Assigned patients, most urgent first, with per-status counts."""
    rows = patient_service.doctor_patients(request.user)
    return Response({
        'patients': PatientSerializer(rows, many=True).data,
        'stats': patient_service.doctor_stats(request.user),
    })


@api_view(['GET', 'PATCH', 'PUT'])
@permission_classes([IsAuthenticated, IsDoctor])
def doctor_profile(request):
    profile, _ = DoctorProfile.objects.get_or_create(
        user=request.user, defaults={'full_name': request.user.get_full_name()}
    )
    if request.method == 'GET':
        return Response(DoctorProfileSerializer(profile).data)
    s = DoctorProfileSerializer(profile, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return Response(s.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_me(request):
    patient = Patient.objects.select_related('doctor').filter(user=request.user).first()
    if patient is None:
        raise NotFound('Patient record not found')
    latest = patient.vitals.order_by('-recorded_at').first()
    return Response({
        'patient': PatientSerializer(patient).data,
        'doctor': patient_service.assigned_doctor_summary(patient),
        'latest_vitals': VitalsSerializer(latest).data if latest else None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_detail(request, patient_id):
    patient = patient_service.get_patient_for(request.user, patient_id, any_receptionist=False)
    return Response({
        'patient': PatientSerializer(patient).data,
        'doctor': patient_service.assigned_doctor_summary(patient),
    })
