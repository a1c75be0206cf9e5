from drf_spectacular.extensions import OpenApiAuthenticationExtension


class CookieOrHeaderJWTAuthenticationScheme(OpenApiAuthenticationExtension):
    target_class = "fs_core.common.auth.CookieOrHeaderJWTAuthentication"
    name = "BearerOrCookieJWT"

    def get_security_definition(self, auto_schema):
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": (
                "Send the access token via `Authorization: Bearer <token>` "
                "or via the HttpOnly cookie (fs_access)."
            ),
        }
