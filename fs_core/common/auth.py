# fs_core/common/auth.py
from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Authenticate using:
      1) Authorization: Bearer <access>
      2) HttpOnly cookie containing the access token
    """

    def authenticate(self, request):
        if self.get_header(request):
            return super().authenticate(request)

        cookie_name = settings.SIMPLE_JWT.get("AUTH_COOKIE", "fs_access")
        raw_token = request.COOKIES.get(cookie_name)
        if not raw_token:
            return None

        validated_token = self.get_validated_token(raw_token)
        return self.get_user(validated_token), validated_token
