import os
import unittest

os.environ.setdefault("PORTFOLIO_USE_IN_MEMORY_BACKENDS", "1")

from fastapi.testclient import TestClient

from portfolio.app import create_app
from portfolio.config import get_settings
from portfolio.dependencies import get_identity_provider, get_project_store
from portfolio.guard import DASHBOARD_PATH, LOGIN_PATH, resolve_redirect


class ResolveRedirectTests(unittest.TestCase):
    def test_dashboard_requires_session(self):
        self.assertEqual(resolve_redirect("/admin/dashboard", authenticated=False), LOGIN_PATH)
        self.assertEqual(
            resolve_redirect("/admin/dashboard/projects/abc", authenticated=False), LOGIN_PATH
        )
        self.assertIsNone(resolve_redirect("/admin/dashboard", authenticated=True))

    def test_login_page_bounces_signed_in_users(self):
        self.assertEqual(resolve_redirect("/admin", authenticated=True), DASHBOARD_PATH)
        self.assertEqual(resolve_redirect("/admin/", authenticated=True), DASHBOARD_PATH)
        self.assertIsNone(resolve_redirect("/admin", authenticated=False))

    def test_other_paths_pass_through(self):
        for path in ("/", "/api/projects", "/admin/login", "/admin/logout"):
            self.assertIsNone(resolve_redirect(path, authenticated=False))
            self.assertIsNone(resolve_redirect(path, authenticated=True))

    def test_custom_paths(self):
        self.assertEqual(
            resolve_redirect(
                "/backoffice/home",
                authenticated=False,
                login_path="/backoffice",
                dashboard_path="/backoffice/home",
            ),
            "/backoffice",
        )


class SessionGuardTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        get_settings.cache_clear()
        cls.app = create_app()

    def setUp(self):
        self.identity = get_identity_provider()
        self.identity.reset()
        get_project_store().reset()
        self.identity.create_user("admin@example.com", "s3cret")
        self.client = TestClient(self.app)

    def _login(self):
        response = self.client.post(
            "/admin/login",
            data={"email": "admin@example.com", "password": "s3cret"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], DASHBOARD_PATH)

    def test_dashboard_without_session_redirects_to_login(self):
        response = self.client.get("/admin/dashboard", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], LOGIN_PATH)

    def test_login_page_with_session_redirects_to_dashboard(self):
        self._login()
        response = self.client.get("/admin", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], DASHBOARD_PATH)

    def test_public_pages_are_not_guarded(self):
        response = self.client.get("/", follow_redirects=False)
        self.assertEqual(response.status_code, 200)

    def test_expired_access_token_is_refreshed_and_rotated(self):
        self._login()
        (old_access,) = list(self.identity.access_tokens)
        (old_refresh,) = list(self.identity.refresh_tokens)
        self.identity.expire(old_access)

        response = self.client.get("/admin/dashboard", follow_redirects=False)
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(old_refresh, self.identity.refresh_tokens)
        self.assertEqual(len(self.identity.refresh_tokens), 1)

        # The rotated tokens keep working on the next request.
        response = self.client.get("/admin/dashboard", follow_redirects=False)
        self.assertEqual(response.status_code, 200)

    def test_unrefreshable_session_is_cleared(self):
        self._login()
        (old_access,) = list(self.identity.access_tokens)
        self.identity.expire(old_access)
        self.identity.refresh_tokens.clear()

        response = self.client.get("/admin/dashboard", follow_redirects=False)
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], LOGIN_PATH)
        session = self.client.get("/api/auth/session").json()
        self.assertFalse(session["authenticated"])

    def test_logout_ends_session(self):
        self._login()
        response = self.client.post("/admin/logout", follow_redirects=False)
        self.assertEqual(response.headers["location"], LOGIN_PATH)
        response = self.client.get("/admin/dashboard", follow_redirects=False)
        self.assertEqual(response.status_code, 303)


if __name__ == "__main__":
    unittest.main()
