import bleach
from rest_framework import serializers


def _clean(v):
    return bleach.clean((v or '').strip(), tags=[], strip=True)


class PatientRegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    age = serializers.IntegerField(min_value=0, max_value=150, required=False)
    room = serializers.CharField(max_length=32, required=False, allow_blank=True)
    gender = serializers.CharField(max_length=16, required=False, allow_blank=True)
    bed_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    diagnosis = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    emergency_contact = serializers.CharField(max_length=255, required=False, allow_blank=True)
    emergency_phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    doctor_id = serializers.IntegerField(required=False, allow_null=True)

    TEXT_FIELDS = ('name', 'room', 'gender', 'bed_number', 'diagnosis', 'emergency_contact', 'emergency_phone')

    def to_internal_value(self, data):
        # the reception form posts "" for an unselected doctor
        if hasattr(data, 'get') and data.get('doctor_id') == '':
            data = data.copy()
            data['doctor_id'] = None
        return super().to_internal_value(data)

    def validate(self, attrs):
        for f in self.TEXT_FIELDS:
            if f in attrs:
                attrs[f] = _clean(attrs[f])
        if not attrs.get('email') or not attrs.get('name') or not attrs.get('age') or not attrs.get('room'):
            raise serializers.ValidationError('Email, name, age, and room are required')
        attrs['email'] = attrs['email'].lower()
        return attrs


class DoctorRegistrationSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    full_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    specialization = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    department = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        for f in ('full_name', 'specialization', 'phone', 'department'):
            if attrs.get(f) is not None:
                attrs[f] = _clean(attrs[f])
        if not attrs.get('email') or not attrs.get('full_name') or not attrs.get('specialization') or not attrs.get('phone'):
            raise serializers.ValidationError('Email, full name, specialization, and phone are required')
        attrs['email'] = attrs['email'].lower()
        return attrs
