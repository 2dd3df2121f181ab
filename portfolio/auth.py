"""
Identity provider abstraction: Supabase auth REST API plus an in-memory
implementation for development and tests.
"""

from __future__ import annotations

import hmac
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

REQUEST_TIMEOUT = 30  # seconds
ADMIN_ROLE = "admin"


class AuthError(Exception):
    """Base class for identity provider failures."""


class InvalidCredentialsError(AuthError):
    """Raised when email/password sign-in is rejected."""


class AuthBackendError(AuthError):
    """Raised when the identity provider cannot be reached or misbehaves."""


@dataclass
class AdminUser:
    id: str
    email: str
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: float
    user: AdminUser

    def as_cookie_payload(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


class IdentityProvider(Protocol):
    """Operations the session guard and admin routes need from auth."""

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def get_user(self, access_token: str) -> Optional[AdminUser]:
        ...

    def refresh(self, refresh_token: str) -> Optional[AuthSession]:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def create_user(
        self, email: str, password: str, role: str = ADMIN_ROLE
    ) -> AdminUser:
        ...


@dataclass
class InMemoryIdentityProvider:
    """Test double for the identity provider."""

    token_ttl_seconds: int = 3600
    users: Dict[str, tuple[AdminUser, str]] = field(default_factory=dict)
    access_tokens: Dict[str, tuple[str, float]] = field(default_factory=dict)
    refresh_tokens: Dict[str, str] = field(default_factory=dict)

    def _issue(self, user: AdminUser) -> AuthSession:
        access = uuid.uuid4().hex
        refresh = uuid.uuid4().hex
        expires_at = time.time() + self.token_ttl_seconds
        self.access_tokens[access] = (user.email, expires_at)
        self.refresh_tokens[refresh] = user.email
        return AuthSession(
            access_token=access,
            refresh_token=refresh,
            expires_at=expires_at,
            user=user,
        )

    def sign_in(self, email: str, password: str) -> AuthSession:
        entry = self.users.get(email.lower())
        if not entry or not hmac.compare_digest(entry[1], password):
            raise InvalidCredentialsError("Invalid login credentials")
        return self._issue(entry[0])

    def get_user(self, access_token: str) -> Optional[AdminUser]:
        entry = self.access_tokens.get(access_token)
        if not entry:
            return None
        email, expires_at = entry
        if expires_at <= time.time():
            return None
        return self.users[email][0]

    def refresh(self, refresh_token: str) -> Optional[AuthSession]:
        # Refresh tokens are single use, as in Supabase.
        email = self.refresh_tokens.pop(refresh_token, None)
        if not email or email not in self.users:
            return None
        return self._issue(self.users[email][0])

    def sign_out(self, access_token: str) -> None:
        entry = self.access_tokens.pop(access_token, None)
        if not entry:
            return
        email = entry[0]
        for token, owner in list(self.refresh_tokens.items()):
            if owner == email:
                del self.refresh_tokens[token]

    def create_user(
        self, email: str, password: str, role: str = ADMIN_ROLE
    ) -> AdminUser:
        key = email.lower()
        if key in self.users:
            raise AuthError(f"User already registered: {email}")
        user = AdminUser(id=uuid.uuid4().hex, email=email, role=role)
        self.users[key] = (user, password)
        return user

    def expire(self, access_token: str) -> None:
        """Force an access token past its expiry (useful in tests)."""
        entry = self.access_tokens.get(access_token)
        if entry:
            self.access_tokens[access_token] = (entry[0], time.time() - 1)

    def reset(self) -> None:
        """Clear all users and tokens (useful in tests)."""
        self.users.clear()
        self.access_tokens.clear()
        self.refresh_tokens.clear()


def _user_from_payload(payload: dict) -> AdminUser:
    # user_metadata is writable by the user; only app_metadata carries the role.
    app_metadata = payload.get("app_metadata") or {}
    return AdminUser(
        id=payload.get("id", ""),
        email=payload.get("email", ""),
        role=app_metadata.get("role"),
    )


@dataclass
class SupabaseAuthClient:
    """
    Client for the Supabase auth (GoTrue) REST API.

    ``api_key`` is the anon key for user-facing calls; ``service_role_key`` is
    only needed for :meth:`create_user`.
    """

    base_url: str
    api_key: str
    service_role_key: Optional[str] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/auth/v1{path}"

    def _headers(self, bearer: Optional[str] = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _session_from_payload(self, payload: dict) -> AuthSession:
        expires_at = payload.get("expires_at")
        if expires_at is None:
            expires_at = time.time() + float(payload.get("expires_in", 3600))
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expires_at=float(expires_at),
            user=_user_from_payload(payload.get("user") or {}),
        )

    def _post(self, path: str, **kwargs) -> requests.Response:
        try:
            return requests.post(self._url(path), timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            raise AuthBackendError(f"Auth request to {path} failed: {exc}") from exc

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._post(
            "/token?grant_type=password",
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        if response.status_code in (400, 401):
            raise InvalidCredentialsError("Invalid login credentials")
        if not response.ok:
            raise AuthBackendError(f"Sign-in failed with status {response.status_code}")
        return self._session_from_payload(response.json())

    def get_user(self, access_token: str) -> Optional[AdminUser]:
        try:
            response = requests.get(
                self._url("/user"),
                headers=self._headers(access_token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise AuthBackendError(f"Auth request to /user failed: {exc}") from exc
        if response.status_code in (401, 403):
            return None
        if not response.ok:
            raise AuthBackendError(f"User lookup failed with status {response.status_code}")
        return _user_from_payload(response.json())

    def refresh(self, refresh_token: str) -> Optional[AuthSession]:
        response = self._post(
            "/token?grant_type=refresh_token",
            headers=self._headers(),
            json={"refresh_token": refresh_token},
        )
        if response.status_code in (400, 401):
            return None
        if not response.ok:
            raise AuthBackendError(f"Refresh failed with status {response.status_code}")
        return self._session_from_payload(response.json())

    def sign_out(self, access_token: str) -> None:
        response = self._post("/logout", headers=self._headers(access_token))
        # An already revoked token is still a successful sign-out.
        if not response.ok and response.status_code not in (401, 403, 404):
            raise AuthBackendError(f"Sign-out failed with status {response.status_code}")

    def create_user(
        self, email: str, password: str, role: str = ADMIN_ROLE
    ) -> AdminUser:
        if not self.service_role_key:
            raise AuthError("SUPABASE_SERVICE_ROLE_KEY is required to create users")
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }
        response = self._post(
            "/admin/users",
            headers=headers,
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "app_metadata": {"role": role},
            },
        )
        if not response.ok:
            try:
                message = response.json().get("msg") or response.text
            except ValueError:
                message = response.text
            raise AuthError(f"Creating user failed ({response.status_code}): {message}")
        return _user_from_payload(response.json())
