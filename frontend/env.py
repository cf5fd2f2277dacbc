"""
Environment configuration for the Super Dashboard frontend.

Values are read once when the module is imported; ``env_config`` is
immutable afterwards.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_API_BASE_URL = "http://localhost:8080"
DEFAULT_ENV = "development"


@dataclass(frozen=True)
class FrontendEnv:
    use_mock_data: bool
    api_base_url: str
    env: str
    is_dev: bool
    is_prod: bool

    def as_dict(self) -> dict:
        return {
            "useMockData": self.use_mock_data,
            "apiBaseUrl": self.api_base_url,
            "env": self.env,
            "isDev": self.is_dev,
            "isProd": self.is_prod,
        }


def load_frontend_env(environ: Optional[Mapping[str, str]] = None) -> FrontendEnv:
    """
    Derive the frontend configuration from ``environ`` (default: os.environ).

    An explicit NEXT_PUBLIC_USE_MOCK_DATA wins: only "true" enables mock
    data. When it is unset, mock data is used only in development.
    """
    environ = os.environ if environ is None else environ
    env = environ.get("NODE_ENV") or DEFAULT_ENV
    is_dev = env == "development"

    raw_mock = environ.get("NEXT_PUBLIC_USE_MOCK_DATA")
    if raw_mock is None:
        use_mock_data = is_dev
    else:
        use_mock_data = raw_mock.strip().lower() == "true"

    return FrontendEnv(
        use_mock_data=use_mock_data,
        api_base_url=environ.get("NEXT_PUBLIC_API_BASE_URL") or DEFAULT_API_BASE_URL,
        env=env,
        is_dev=is_dev,
        is_prod=env == "production",
    )


env_config = load_frontend_env()
