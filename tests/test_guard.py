from __future__ import annotations

import unittest

import tests  # noqa: F401

from salesreport.guard import resolve_redirect
from salesreport.models import Role
from salesreport.security import SessionUser


def _user(role: Role) -> SessionUser:
    return SessionUser(employee_id=1, email="user@test.com", name="User", role=role)


class ResolveRedirectTests(unittest.TestCase):
    def test_root_goes_to_dashboard_or_login(self) -> None:
        self.assertEqual(resolve_redirect("/", _user(Role.SALES)), "/dashboard")
        self.assertEqual(resolve_redirect("/", None), "/login")

    def test_login_page_redirects_signed_in_user(self) -> None:
        self.assertEqual(resolve_redirect("/login", _user(Role.MANAGER)), "/dashboard")
        self.assertIsNone(resolve_redirect("/login", None))

    def test_protected_pages_require_session(self) -> None:
        for path in ("/dashboard", "/daily-reports", "/daily-reports/3/edit", "/customers", "/employees"):
            with self.subTest(path=path):
                self.assertEqual(resolve_redirect(path, None), "/login")

    def test_employee_pages_are_admin_only(self) -> None:
        self.assertEqual(resolve_redirect("/employees", _user(Role.SALES)), "/dashboard")
        self.assertEqual(resolve_redirect("/employees/4/edit", _user(Role.MANAGER)), "/dashboard")
        self.assertIsNone(resolve_redirect("/employees", _user(Role.ADMIN)))

    def test_prefix_match_respects_path_segments(self) -> None:
        self.assertIsNone(resolve_redirect("/employees-archive", None))
        self.assertIsNone(resolve_redirect("/customersx", None))

    def test_api_and_static_paths_are_not_page_guarded(self) -> None:
        self.assertIsNone(resolve_redirect("/api/employees", None))
        self.assertIsNone(resolve_redirect("/api/employees", _user(Role.SALES)))
        self.assertIsNone(resolve_redirect("/static/app.css", None))
        self.assertIsNone(resolve_redirect("/health", None))

    def test_signed_in_user_passes_protected_pages(self) -> None:
        self.assertIsNone(resolve_redirect("/daily-reports/12", _user(Role.SALES)))
        self.assertIsNone(resolve_redirect("/dashboard", _user(Role.ADMIN)))


if __name__ == "__main__":
    unittest.main()
