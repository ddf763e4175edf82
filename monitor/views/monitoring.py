"""
Vitals recording and the doctor's alert queue.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from monitor.models import PatientAlert
from monitor.permissions import IsDoctor, IsStaffRole
from monitor.serializers.monitoring import AlertSerializer, VitalsListQuerySerializer, VitalsSerializer
from monitor.services.alerts import acknowledge_alert, record_vitals, visible_alerts
from monitor.services.patients import get_patient_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def patient_vitals(request, patient_id):
    patient = get_patient_for(request.user, patient_id)

    if request.method == 'POST':
        if not IsStaffRole().has_permission(request, None):
            raise PermissionDenied('Only doctors and receptionists can record vitals')
        s = VitalsSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vitals, evaluation, alert = record_vitals(patient, s.validated_data)
        return Response({
            'ok': True,
            'vitals': VitalsSerializer(vitals).data,
            'status': evaluation.level,
            'findings': [
                {'vital': f.vital, 'value': f.value, 'level': f.level, 'text': f.describe()}
                for f in evaluation.findings
            ],
            'alert': AlertSerializer(alert).data if alert else None,
        }, status=201)

    q = VitalsListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    limit = q.validated_data.get('limit') or 50
    rows = patient.vitals.order_by('-recorded_at')[:limit]
    return Response(VitalsSerializer(rows, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctor])
def alerts(request):
    rows = visible_alerts(request.user)[:20]
    return Response(AlertSerializer(rows, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def alert_acknowledge(request, alert_id):
    alert = _alert_for(request.user, alert_id)
    alert = acknowledge_alert(request.user, alert)
    return Response(AlertSerializer(alert).data)


def _alert_for(doctor, alert_id) -> PatientAlert:
    alert = PatientAlert.objects.select_related('patient').filter(pk=alert_id).first()
    if alert is None:
        raise NotFound('alert not found')
    if alert.patient.doctor_id not in (None, doctor.pk):
        raise PermissionDenied('This alert belongs to another doctor')
    return alert
