from django.contrib.auth import authenticate
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import accounts
from .errors import AuthRequiredError
from .serializers import LoginSerializer, ProfileUpdateSerializer, RegisterSerializer


class RegisterView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = accounts.register_user(**serializer.validated_data)
        return Response(
            {
                "message": "User created successfully",
                "user": accounts.user_payload(user),
                "token": accounts.issue_token(user),
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        # axes needs the request to record failures and enforce lockout
        user = authenticate(
            request=request,
            email=serializer.validated_data["email"].strip().lower(),
            password=serializer.validated_data["password"],
        )
        if user is None:
            raise AuthRequiredError("Invalid credentials")
        return Response(
            {
                "message": "Login successful",
                "user": accounts.user_payload(user),
                "token": accounts.issue_token(user),
            }
        )


class ProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        return Response(
            {"user": {**accounts.user_payload(user), "created_at": user.created_at}}
        )

    def put(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = accounts.update_profile(request.user, **serializer.validated_data)
        return Response(
            {"message": "Profile updated successfully", "user": accounts.user_payload(user)}
        )
