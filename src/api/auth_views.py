"""
Authentication Views

Endpoints:
- POST /api/auth/login/ - Login with email/password, get JWT
- POST /api/auth/refresh/ - Refresh access token
"""

from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken


class LoginView(APIView):
    """
    Login with email/password to get JWT tokens.

    POST /api/auth/login/
    Body: {"email": "user@example.com", "password": "secret"}

    Returns:
        {"access": "...", "refresh": "...", "can_review": true}
    """

    authentication_classes = []  # Public endpoint

    def post(self, request):
        email = request.data.get("email")
        password = request.data.get("password")

        if not email or not password:
            return Response(
                {"error": "Email and password required"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Django uses username for auth, but we accept email
        try:
            user = User.objects.get(email=email)
        except User.DoesNotExist:
            return Response(
                {"error": "Invalid credentials"},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        user = authenticate(username=user.username, password=password)
        if not user:
            return Response(
                {"error": "Invalid credentials"},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        refresh = RefreshToken.for_user(user)

        return Response({
            "access": str(refresh.access_token),
            "refresh": str(refresh),
            "can_review": user.has_perm("smart_upload.view_uploadsession"),
        })


class RefreshView(APIView):
    """
    Refresh access token.

    POST /api/auth/refresh/
    Body: {"refresh": "..."}

    Returns:
        {"access": "..."}
    """

    authentication_classes = []  # Public endpoint

    def post(self, request):
        refresh_token = request.data.get("refresh")

        if not refresh_token:
            return Response(
                {"error": "Refresh token required"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            refresh = RefreshToken(refresh_token)
            return Response({
                "access": str(refresh.access_token),
            })
        except Exception:
            return Response(
                {"error": "Invalid refresh token"},
                status=status.HTTP_401_UNAUTHORIZED,
            )
