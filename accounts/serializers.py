from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework_simplejwt.tokens import RefreshToken

from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "email", "full_name", "role"]
        read_only_fields = ["id", "role"]


class LoginEmailPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    full_name = serializers.CharField(required=False, allow_blank=True, max_length=150)

    def validate_email(self, v):
        v = v.strip().lower()
        if User.objects.filter(email__iexact=v).exists():
            raise serializers.ValidationError("Email already registered.")
        return v

    def validate_password(self, v):
        validate_password(v)
        return v

    def create(self, validated_data):
        email = validated_data["email"]
        user = User(username=email, email=email, full_name=validated_data.get("full_name", ""))
        user.set_password(validated_data["password"])
        user.save()
        return user


def issue_tokens(user) -> dict:
    """Access/refresh pair; the access token carries the user's role claim."""
    refresh = RefreshToken.for_user(user)
    refresh["user_role"] = user.role
    access = refresh.access_token
    access["user_role"] = user.role
    access["email"] = user.email or ""
    return {"access": str(access), "refresh": str(refresh)}
