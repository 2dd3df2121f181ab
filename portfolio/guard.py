"""
Session guard for the admin pages.

Admin sessions live in the signed session cookie as a pair of identity
provider tokens. Every request under the admin prefix resolves that pair to a
user, refreshing and rotating the tokens when the access token has lapsed,
and is redirected when it is on the wrong side of the login page.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import Request
from fastapi.responses import RedirectResponse

from portfolio.auth import AdminUser, AuthError, AuthSession, IdentityProvider

logger = logging.getLogger(__name__)

SESSION_KEY = "auth"
LOGIN_PATH = "/admin"
DASHBOARD_PATH = "/admin/dashboard"


def resolve_redirect(
    path: str,
    *,
    authenticated: bool,
    login_path: str = LOGIN_PATH,
    dashboard_path: str = DASHBOARD_PATH,
) -> Optional[str]:
    """Return where a request for ``path`` must go instead, if anywhere."""
    if path.startswith(dashboard_path) and not authenticated:
        return login_path
    normalized = path.rstrip("/") or "/"
    if normalized == login_path.rstrip("/") and authenticated:
        return dashboard_path
    return None


def store_session(request: Request, session: AuthSession) -> None:
    request.session[SESSION_KEY] = session.as_cookie_payload()


def clear_session(request: Request) -> None:
    request.session.pop(SESSION_KEY, None)


def resolve_session_user(
    request: Request, identity: IdentityProvider
) -> Optional[AdminUser]:
    """
    Resolve the signed-in user from the session cookie.

    Absence of a session is the normal logged-out state; identity provider
    errors are logged and treated the same way.
    """
    tokens = request.session.get(SESSION_KEY) or {}
    access_token = tokens.get("access_token")
    refresh_token = tokens.get("refresh_token")
    if not access_token:
        return None

    try:
        user = None
        if float(tokens.get("expires_at") or 0) > time.time():
            user = identity.get_user(access_token)
        if user is not None:
            return user
        if not refresh_token:
            clear_session(request)
            return None
        refreshed = identity.refresh(refresh_token)
    except AuthError:
        logger.warning("Session lookup failed; treating as signed out", exc_info=True)
        return None

    if refreshed is None:
        clear_session(request)
        return None
    store_session(request, refreshed)
    logger.info("Refreshed admin session for %s", refreshed.user.email)
    return refreshed.user


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        return token or None
    return None


async def guard_admin_request(
    request: Request,
    call_next,
    *,
    identity: IdentityProvider,
):
    path = request.url.path
    if path != LOGIN_PATH and not path.startswith(LOGIN_PATH + "/"):
        return await call_next(request)

    user = resolve_session_user(request, identity)
    request.state.admin_user = user
    target = resolve_redirect(path, authenticated=user is not None)
    if target:
        return RedirectResponse(target, status_code=303)
    return await call_next(request)
