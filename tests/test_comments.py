from __future__ import annotations

import unittest
from datetime import date

from sqlalchemy import select

from tests.support import DatabaseTestCase, auth_headers

from salesreport.models import AuditLog, Comment, Role


class CommentApiTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.manager = self.add_employee("Yamada", role=Role.MANAGER)
        self.other_manager = self.add_employee("Kato", role=Role.MANAGER)
        self.admin = self.add_employee("Admin", role=Role.ADMIN)
        self.sales = self.add_employee("Sato", manager=self.manager)
        customer = self.add_customer("ABC商事", self.sales)
        self.report = self.add_report(self.sales, date(2026, 10, 14), customer)

    def _comment(self, employee, content: str = "確認しました"):
        return self.client.post(
            f"/api/daily-reports/{self.report.id}/comments",
            json={"comment_content": content},
            headers=auth_headers(employee),
        )

    def test_manager_and_admin_can_comment(self) -> None:
        for employee in (self.manager, self.admin):
            with self.subTest(name=employee.name):
                response = self._comment(employee)
                self.assertEqual(response.status_code, 201)
                body = response.json()
                self.assertEqual(body["commenter_id"], employee.id)
                self.assertEqual(body["report_id"], self.report.id)

    def test_sales_cannot_comment_on_own_report(self) -> None:
        response = self._comment(self.sales)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_manager_outside_scope_cannot_comment(self) -> None:
        response = self._comment(self.other_manager)
        self.assertEqual(response.status_code, 403)
        self.assertIsNone(self.db.scalar(select(Comment.id)))

    def test_comment_content_is_bounded(self) -> None:
        self.assertEqual(self._comment(self.manager, "").status_code, 422)
        self.assertEqual(self._comment(self.manager, "x" * 501).status_code, 422)
        self.assertEqual(self._comment(self.manager, "x" * 500).status_code, 201)

    def test_comment_on_missing_report(self) -> None:
        response = self.client.post(
            "/api/daily-reports/9999/comments",
            json={"comment_content": "hello"},
            headers=auth_headers(self.manager),
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "REPORT_NOT_FOUND")

    def test_only_commenter_can_delete(self) -> None:
        comment_id = self.add_comment(self.report, self.manager).id

        denied = self.client.delete(f"/api/comments/{comment_id}", headers=auth_headers(self.admin))
        self.assertEqual(denied.status_code, 403)

        deleted = self.client.delete(f"/api/comments/{comment_id}", headers=auth_headers(self.manager))
        self.assertEqual(deleted.status_code, 204)
        self.db.expire_all()
        self.assertIsNone(self.db.get(Comment, comment_id))
        audit = self.db.scalar(select(AuditLog).where(AuditLog.action == "COMMENT_DELETED"))
        self.assertEqual(audit.details, {"report_id": self.report.id})

    def test_delete_missing_comment(self) -> None:
        response = self.client.delete("/api/comments/9999", headers=auth_headers(self.manager))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "COMMENT_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
