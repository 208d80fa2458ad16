from __future__ import annotations

import enum
import sys
from typing import Any

import requests

from .authorize import AuthorizationFlow
from .credentials import Credentials, CredentialStore
from .errors import ApiError, TokenExchangeFatal, TokenRefreshFailed

STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"


class TokenState(enum.Enum):
    UNSET = "unset"
    CACHED = "cached"
    VALID = "valid"
    REAUTHORIZING = "reauthorizing"


class TokenManager:
    """Owns the Strava token pair: loads it, refreshes it, and re-runs consent when asked."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        store: CredentialStore,
        flow: AuthorizationFlow,
        *,
        seed_refresh_token: str | None = None,
        auth_timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.store = store
        self.flow = flow
        self.seed_refresh_token = seed_refresh_token
        self.auth_timeout = auth_timeout
        self.session = session or requests.Session()
        self.state = TokenState.UNSET
        self.credentials: Credentials | None = None

    def get_access_token(self, force_refresh: bool = False) -> str:
        cached = self.credentials
        if self.state is TokenState.VALID and not force_refresh and cached and cached.access_token:
            return cached.access_token

        if self.credentials is None:
            self.credentials = self.store.load()
            if self.credentials is None and self.seed_refresh_token:
                self.credentials = Credentials(refresh_token=self.seed_refresh_token)
            if self.credentials is not None:
                self.state = TokenState.CACHED

        if self.credentials is None:
            return self.reauthorize()

        payload = self._exchange(
            {"grant_type": "refresh_token", "refresh_token": self.credentials.refresh_token},
            TokenRefreshFailed,
        )
        return self._accept(payload)

    def reauthorize(self) -> str:
        previous = self.state
        self.state = TokenState.REAUTHORIZING
        try:
            code = self.flow.obtain_authorization_code(timeout=self.auth_timeout)
            payload = self._exchange({"grant_type": "authorization_code", "code": code}, TokenExchangeFatal)
        except Exception:
            self.state = previous
            raise
        return self._accept(payload)

    def _exchange(self, grant: dict[str, str], error_cls: type[ApiError]) -> dict[str, Any]:
        data = {"client_id": self.client_id, "client_secret": self.client_secret, **grant}
        try:
            response = self.session.post(STRAVA_TOKEN_URL, data=data, timeout=60)
        except requests.RequestException as exc:
            raise ApiError(None, f"Token request failed: {exc}") from exc

        if response.status_code >= 400:
            print(f"Error fetching token: {response.status_code} - {response.text}", file=sys.stderr)
            raise error_cls(
                response.status_code,
                f"Strava rejected the {grant['grant_type']} grant (HTTP {response.status_code})",
                response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, "Token response was not valid JSON", response.text) from exc
        if not isinstance(payload, dict):
            raise ApiError(response.status_code, "Token response must be a JSON object", response.text)
        for key in ("access_token", "refresh_token"):
            if not isinstance(payload.get(key), str) or not payload[key]:
                raise ApiError(response.status_code, f"Token response is missing {key}", response.text)
        return payload

    def _accept(self, payload: dict[str, Any]) -> str:
        expires_at = payload.get("expires_at")
        self.credentials = Credentials(
            refresh_token=payload["refresh_token"],
            access_token=payload["access_token"],
            expires_at=int(expires_at) if isinstance(expires_at, (int, float)) else None,
        )
        self.store.save(self.credentials)
        self.state = TokenState.VALID
        return payload["access_token"]
