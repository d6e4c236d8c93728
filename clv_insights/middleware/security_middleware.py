"""Security middleware: Basic Auth gate, anti-crawl headers, cache control."""
import base64
import binascii
import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from clv_insights.config import get_settings

# Paths exempt from Basic Auth
OPEN_PATHS = ("/health", "/robots.txt")


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        settings = get_settings()
        path = request.url.path

        if settings.dash_user and settings.dash_pass:
            if not any(path.startswith(p) for p in OPEN_PATHS):
                if not self._check_basic_auth(request, settings):
                    return Response(
                        content="Unauthorized",
                        status_code=401,
                        headers={"WWW-Authenticate": 'Basic realm="CLV Insights"'},
                    )

        response: Response = await call_next(request)

        response.headers["X-Robots-Tag"] = "noindex, nofollow"

        content_type = response.headers.get("content-type", "")
        if "text/csv" in content_type:
            # Exports carry customer PII
            response.headers["Cache-Control"] = "private, no-store"
        elif "application/json" in content_type:
            response.headers["Cache-Control"] = "private, no-cache"

        return response

    @staticmethod
    def _check_basic_auth(request: Request, settings) -> bool:
        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Basic "):
            return False
        try:
            decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
            user, password = decoded.split(":", 1)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return False
        user_ok = secrets.compare_digest(user, settings.dash_user)
        pass_ok = secrets.compare_digest(password, settings.dash_pass)
        return user_ok and pass_ok
