# fs_core/api/auth.py
from __future__ import annotations

from datetime import timedelta
from typing import Any

from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer


class LoginRequestSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()


class DetailSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False)
    is_staff = serializers.BooleanField()


def _seconds(value: Any) -> int:
    """
    JWT lifetime setting in seconds; accepts timedelta or a number of seconds.
    """
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def _cookie_names() -> tuple[str, str]:
    jwt_cfg = getattr(settings, "SIMPLE_JWT", {}) or {}
    return jwt_cfg.get("AUTH_COOKIE", "fs_access"), jwt_cfg.get("AUTH_COOKIE_REFRESH", "fs_refresh")


def _set_auth_cookies(response: Response, *, access: str, refresh: str) -> None:
    jwt_cfg = getattr(settings, "SIMPLE_JWT", {}) or {}
    access_name, refresh_name = _cookie_names()

    opts = dict(
        httponly=True,
        secure=bool(jwt_cfg.get("AUTH_COOKIE_SECURE", False)),
        samesite=jwt_cfg.get("AUTH_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    response.set_cookie(
        access_name,
        access,
        max_age=_seconds(jwt_cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=10))),
        **opts,
    )
    response.set_cookie(
        refresh_name,
        refresh,
        max_age=_seconds(jwt_cfg.get("REFRESH_TOKEN_LIFETIME", timedelta(days=14))),
        **opts,
    )


class LoginView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(request=LoginRequestSerializer, responses={200: DetailSerializer}, tags=["Auth"])
    def post(self, request):
        serializer = TokenObtainPairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        res = Response({"detail": "login ok"}, status=status.HTTP_200_OK)
        _set_auth_cookies(
            res,
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data["refresh"],
        )
        return res


class RefreshView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(request=None, responses={200: DetailSerializer}, tags=["Auth"])
    def post(self, request):
        _access_name, refresh_name = _cookie_names()
        refresh = request.data.get("refresh") or request.COOKIES.get(refresh_name)

        serializer = TokenRefreshSerializer(data={"refresh": refresh})
        serializer.is_valid(raise_exception=True)

        res = Response({"detail": "refreshed"}, status=status.HTTP_200_OK)
        _set_auth_cookies(
            res,
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data.get("refresh", refresh),
        )
        return res


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: DetailSerializer}, tags=["Auth"])
    def post(self, request):
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        for name in _cookie_names():
            res.delete_cookie(name, path="/")
        return res


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeSerializer}, tags=["Auth"])
    def get(self, request):
        user = request.user
        return Response(
            {
                "id": user.id,
                "username": getattr(user, "username", None),
                "email": getattr(user, "email", None) or None,
                "is_staff": bool(getattr(user, "is_staff", False)),
            },
            status=status.HTTP_200_OK,
        )
