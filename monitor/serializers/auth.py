from rest_framework import serializers

class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField()

    def validate_email(self, v):
        v = (v or '').strip().lower()
        if not v:
            raise serializers.ValidationError('Email is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class ChangePasswordSerializer(serializers.Serializer):
    new_password = serializers.CharField(min_length=8, max_length=128)
    confirm_password = serializers.CharField(required=False)

    def validate(self, attrs):
        confirm = attrs.get('confirm_password')
        if confirm is not None and confirm != attrs['new_password']:
            raise serializers.ValidationError('Passwords do not match')
        return attrs


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, v):
        return v.strip().lower()


class PasswordResetConfirmSerializer(ChangePasswordSerializer):
    uid = serializers.CharField()
    token = serializers.CharField()
