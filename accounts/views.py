from django.contrib.auth import authenticate
from rest_framework import permissions, status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import User
from .serializers import LoginEmailPasswordSerializer, RegisterSerializer, UserSerializer, issue_tokens


class RegisterView(APIView):
    """
    POST /api/auth/register/
    Body: { "email": "...", "password": "...", "full_name": "..." }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        ser = RegisterSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.save()
        return Response({"user": UserSerializer(user).data, **issue_tokens(user)}, status=status.HTTP_201_CREATED)


class LoginEmailPasswordView(APIView):
    """
    POST /api/auth/login/
    Body: { "email": "user@example.com", "password": "secret" }

    Returns JWT access/refresh on success.
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        ser = LoginEmailPasswordSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        email = ser.validated_data["email"].strip().lower()
        password = ser.validated_data["password"]

        user = User.objects.filter(email__iexact=email).first()
        if not user:
            raise ValidationError("Invalid email or password.")

        if not user.is_active:
            raise ValidationError("This account is inactive.")

        auth_user = authenticate(request, username=user.username, password=password)
        if not auth_user:
            raise ValidationError("Invalid email or password.")

        return Response({"user": UserSerializer(auth_user).data, **issue_tokens(auth_user)}, status=status.HTTP_200_OK)


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)
