from rest_framework import serializers

from clinic.models import Patient, User
from .common import CleanCharField, LenientDateField, iso


class RegisterSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES], default=User.ROLE_PATIENT)
    phone = CleanCharField(max_length=32)
    address = serializers.DictField(required=False)
    dateOfBirth = LenientDateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c[0] for c in User.GENDER_CHOICES], required=False, allow_blank=True)
    bloodGroup = serializers.ChoiceField(
        choices=[c[0] for c in Patient.BLOOD_GROUP_CHOICES], required=False, allow_blank=True
    )

    def validate_name(self, v):
        if not v:
            raise serializers.ValidationError('Name is required')
        return v


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=6)


class UpdatePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField(min_length=6)


class UpdateDetailsSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255, required=False)
    phone = CleanCharField(max_length=32, required=False)
    address = serializers.DictField(required=False)
    dateOfBirth = LenientDateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c[0] for c in User.GENDER_CHOICES], required=False, allow_blank=True)


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES], required=False)
    isActive = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, allow_blank=True)


class UserStatusSerializer(serializers.Serializer):
    isActive = serializers.BooleanField()


def format_user(user: User) -> dict:
    """Safe projection of a user; never includes password or reset fields."""
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'phone': user.phone,
        'address': user.address or {},
        'dateOfBirth': iso(user.date_of_birth),
        'gender': user.gender,
        'isActive': user.is_active,
        'createdAt': iso(user.created_at),
    }
