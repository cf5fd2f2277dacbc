"""
Security response headers applied to every response.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


@dataclass(frozen=True)
class SecurityHeadersConfig:
    csp_default_src: str = "'self'"
    csp_script_src: str = "'self' 'unsafe-inline'"
    csp_style_src: str = "'self' 'unsafe-inline'"
    csp_img_src: str = "'self' data: https:"
    csp_connect_src: str = "'self'"
    csp_font_src: str = "'self'"
    csp_frame_src: str = "'none'"

    # Only meaningful behind HTTPS.
    enable_hsts: bool = False
    hsts_max_age: int = 31536000
    hsts_include_subdomains: bool = True
    hsts_preload: bool = False

    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    permissions_policy: str = "geolocation=(), microphone=(), camera=()"

    @classmethod
    def production(cls) -> "SecurityHeadersConfig":
        return replace(cls(), enable_hsts=True, hsts_preload=True)

    def content_security_policy(self) -> str:
        directives = [
            ("default-src", self.csp_default_src),
            ("script-src", self.csp_script_src),
            ("style-src", self.csp_style_src),
            ("img-src", self.csp_img_src),
            ("connect-src", self.csp_connect_src),
            ("font-src", self.csp_font_src),
            ("frame-src", self.csp_frame_src),
        ]
        return "; ".join(f"{name} {value}" for name, value in directives if value)

    def strict_transport_security(self) -> str:
        value = f"max-age={self.hsts_max_age}"
        if self.hsts_include_subdomains:
            value += "; includeSubDomains"
        if self.hsts_preload:
            value += "; preload"
        return value

    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Security-Policy": self.content_security_policy(),
            "X-XSS-Protection": "0",
        }
        if self.enable_hsts:
            headers["Strict-Transport-Security"] = self.strict_transport_security()
        if self.x_frame_options:
            headers["X-Frame-Options"] = self.x_frame_options
        if self.x_content_type_options:
            headers["X-Content-Type-Options"] = self.x_content_type_options
        if self.referrer_policy:
            headers["Referrer-Policy"] = self.referrer_policy
        if self.permissions_policy:
            headers["Permissions-Policy"] = self.permissions_policy
        return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, config: SecurityHeadersConfig | None = None):
        super().__init__(app)
        self._headers = (config or SecurityHeadersConfig()).headers()

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        return response
