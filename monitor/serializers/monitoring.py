from rest_framework import serializers

from monitor.models import Patient, PatientAlert, PatientVitals, DoctorProfile


class VitalsSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    heart_rate = serializers.IntegerField(min_value=0, max_value=300, required=False, allow_null=True)
    blood_pressure_systolic = serializers.IntegerField(min_value=0, max_value=300, required=False, allow_null=True)
    blood_pressure_diastolic = serializers.IntegerField(min_value=0, max_value=250, required=False, allow_null=True)
    oxygen_level = serializers.FloatField(min_value=0, max_value=100, required=False, allow_null=True)
    temperature = serializers.FloatField(min_value=25, max_value=45, required=False, allow_null=True)
    glucose_level = serializers.FloatField(min_value=0, max_value=1000, required=False, allow_null=True)
    respiratory_rate = serializers.IntegerField(min_value=0, max_value=80, required=False, allow_null=True)

    class Meta:
        model = PatientVitals
        fields = [
            'id', 'patient_id', 'heart_rate', 'blood_pressure_systolic', 'blood_pressure_diastolic',
            'oxygen_level', 'temperature', 'glucose_level', 'respiratory_rate', 'recorded_at',
        ]
        read_only_fields = ['id', 'patient_id', 'recorded_at']

    def validate(self, attrs):
        if not any(v is not None for v in attrs.values()):
            raise serializers.ValidationError('At least one vital sign is required')
        return attrs


class VitalsListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=500, required=False)


class PatientSerializer(serializers.ModelSerializer):
    doctor_id = serializers.IntegerField(read_only=True, allow_null=True)
    registered_by = serializers.IntegerField(source='registered_by_id', read_only=True, allow_null=True)
    user_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Patient
        fields = [
            'id', 'user_id', 'email', 'name', 'age', 'gender', 'room', 'bed_number', 'diagnosis',
            'emergency_contact', 'emergency_phone', 'doctor_id', 'registered_by', 'password_given',
            'status', 'is_icu', 'admission_date', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AlertSerializer(serializers.ModelSerializer):
    patient_id = serializers.UUIDField(read_only=True)
    doctor_id = serializers.IntegerField(read_only=True, allow_null=True)
    patient = serializers.SerializerMethodField()

    class Meta:
        model = PatientAlert
        fields = [
            'id', 'patient_id', 'doctor_id', 'alert_type', 'priority', 'message',
            'is_acknowledged', 'acknowledged_at', 'created_at', 'patient',
        ]
        read_only_fields = fields

    def get_patient(self, obj):
        return {'name': obj.patient.name, 'room': obj.patient.room}


class DoctorProfileSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = DoctorProfile
        fields = [
            'user_id', 'full_name', 'specialization', 'profession', 'license_number',
            'phone', 'department', 'created_at', 'updated_at',
        ]
        read_only_fields = ['user_id', 'created_at', 'updated_at']
