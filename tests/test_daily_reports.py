from __future__ import annotations

import unittest
from datetime import date, time
from unittest.mock import patch

from sqlalchemy import func, select

from tests.support import DatabaseTestCase, auth_headers

from salesreport.models import Comment, DailyReport, Role, VisitRecord


class DailyReportApiTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.manager = self.add_employee("Yamada", role=Role.MANAGER)
        self.sato = self.add_employee("Sato", manager=self.manager)
        self.suzuki = self.add_employee("Suzuki", manager=self.manager)
        self.outsider = self.add_employee("Tanaka")
        self.other_manager = self.add_employee("Kato", role=Role.MANAGER)
        self.admin = self.add_employee("Admin", role=Role.ADMIN)
        self.abc = self.add_customer("ABC商事", self.sato)
        self.xyz = self.add_customer("XYZ産業", self.sato)

    def _payload(self, report_date: str = "2026-10-14", **overrides: object) -> dict[str, object]:
        payload: dict[str, object] = {
            "report_date": report_date,
            "problem": "新規開拓が進まない",
            "plan": "提案書を作成する",
            "visits": [
                {"customer_id": self.abc.id, "visit_time": "10:00", "visit_content": "新製品の提案"},
            ],
        }
        payload.update(overrides)
        return payload

    def test_create_view_comment_and_list_flow(self) -> None:
        created = self.client.post(
            "/api/daily-reports",
            json=self._payload(
                visits=[
                    {"customer_id": self.xyz.id, "visit_time": "14:30", "visit_content": "契約更新の打ち合わせ"},
                    {"customer_id": self.abc.id, "visit_time": "10:00", "visit_content": "新製品の提案"},
                ]
            ),
            headers=auth_headers(self.sato),
        )
        self.assertEqual(created.status_code, 201)
        report = created.json()
        self.assertEqual(report["employee_name"], "Sato")
        self.assertEqual([visit["visit_time"] for visit in report["visits"]], ["10:00", "14:30"])
        self.assertTrue(report["can_edit"])
        self.assertFalse(report["can_comment"])

        as_manager = self.client.get(f"/api/daily-reports/{report['report_id']}", headers=auth_headers(self.manager))
        self.assertEqual(as_manager.status_code, 200)
        self.assertFalse(as_manager.json()["can_edit"])
        self.assertTrue(as_manager.json()["can_comment"])

        comment = self.client.post(
            f"/api/daily-reports/{report['report_id']}/comments",
            json={"comment_content": "来週相談しましょう"},
            headers=auth_headers(self.manager),
        )
        self.assertEqual(comment.status_code, 201)

        listing = self.client.get("/api/daily-reports", headers=auth_headers(self.sato))
        summary = listing.json()["data"][0]
        self.assertEqual(summary["visit_count"], 2)
        self.assertEqual(summary["comment_count"], 1)

        detail = self.client.get(f"/api/daily-reports/{report['report_id']}", headers=auth_headers(self.sato))
        self.assertEqual(detail.json()["comments"][0]["commenter_name"], "Yamada")

    def test_one_report_per_employee_per_day(self) -> None:
        headers = auth_headers(self.sato)
        self.assertEqual(self.client.post("/api/daily-reports", json=self._payload(), headers=headers).status_code, 201)

        duplicate = self.client.post("/api/daily-reports", json=self._payload(), headers=headers)
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json()["error"]["code"], "REPORT_ALREADY_EXISTS")

        other_author = self.client.post("/api/daily-reports", json=self._payload(), headers=auth_headers(self.suzuki))
        self.assertEqual(other_author.status_code, 201)

    def test_date_conflict_caught_at_commit(self) -> None:
        self.add_report(self.sato, date(2026, 10, 13), self.abc)
        report_id = self.add_report(self.sato, date(2026, 10, 14), self.abc).id
        headers = auth_headers(self.sato)

        with patch("salesreport.services.daily_reports._date_taken", return_value=False):
            created = self.client.post("/api/daily-reports", json=self._payload(), headers=headers)
            updated = self.client.put(
                f"/api/daily-reports/{report_id}",
                json=self._payload(report_date="2026-10-13"),
                headers=headers,
            )

        for response in (created, updated):
            self.assertEqual(response.status_code, 409)
            self.assertEqual(response.json()["error"]["code"], "REPORT_ALREADY_EXISTS")
        self.db.expire_all()
        self.assertEqual(self.db.get(DailyReport, report_id).report_date, date(2026, 10, 14))
        self.assertEqual(self.db.scalar(select(func.count(DailyReport.id))), 2)

    def test_validation_errors(self) -> None:
        headers = auth_headers(self.sato)
        cases = {
            "no visits": self._payload(visits=[]),
            "bad date": self._payload(report_date="2026-02-30"),
            "bad time": self._payload(
                visits=[{"customer_id": self.abc.id, "visit_time": "24:00", "visit_content": "x"}]
            ),
            "long problem": self._payload(problem="x" * 1001),
            "empty content": self._payload(
                visits=[{"customer_id": self.abc.id, "visit_time": "09:00", "visit_content": ""}]
            ),
        }
        for label, payload in cases.items():
            with self.subTest(case=label):
                response = self.client.post("/api/daily-reports", json=payload, headers=headers)
                self.assertEqual(response.status_code, 422)
                self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_unknown_customer_is_rejected(self) -> None:
        response = self.client.post(
            "/api/daily-reports",
            json=self._payload(visits=[{"customer_id": 999, "visit_time": "09:00", "visit_content": "x"}]),
            headers=auth_headers(self.sato),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.db.scalar(select(func.count(DailyReport.id))), 0)

    def test_admin_cannot_create_reports(self) -> None:
        response = self.client.post("/api/daily-reports", json=self._payload(), headers=auth_headers(self.admin))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "PERMISSION_DENIED")

    def test_manager_can_file_own_report(self) -> None:
        response = self.client.post("/api/daily-reports", json=self._payload(), headers=auth_headers(self.manager))
        self.assertEqual(response.status_code, 201)

    def test_update_reconciles_visit_records(self) -> None:
        report = self.add_report(self.sato, date(2026, 10, 14), self.abc, visit_time=time(9, 0))
        second = VisitRecord(
            daily_report_id=report.id,
            customer_id=self.xyz.id,
            visit_time=time(13, 0),
            visit_content="見積提出",
        )
        self.db.add(second)
        self.db.commit()
        second_id = second.id
        kept_id = report.visit_records[0].id

        response = self.client.put(
            f"/api/daily-reports/{report.id}",
            json=self._payload(
                visits=[
                    {"visit_id": kept_id, "customer_id": self.abc.id, "visit_time": "09:30", "visit_content": "更新済み"},
                    {"customer_id": self.xyz.id, "visit_time": "16:00", "visit_content": "追加訪問"},
                ]
            ),
            headers=auth_headers(self.sato),
        )

        self.assertEqual(response.status_code, 200)
        visits = response.json()["visits"]
        self.assertEqual([visit["visit_time"] for visit in visits], ["09:30", "16:00"])
        self.assertEqual(visits[0]["visit_id"], kept_id)
        self.assertEqual(visits[0]["visit_content"], "更新済み")
        self.db.expire_all()
        self.assertIsNone(self.db.get(VisitRecord, second_id))

    def test_update_rejects_foreign_visit_id(self) -> None:
        mine = self.add_report(self.sato, date(2026, 10, 14), self.abc)
        theirs = self.add_report(self.suzuki, date(2026, 10, 14), self.abc)
        foreign_id = theirs.visit_records[0].id

        response = self.client.put(
            f"/api/daily-reports/{mine.id}",
            json=self._payload(
                visits=[{"visit_id": foreign_id, "customer_id": self.abc.id, "visit_time": "10:00", "visit_content": "x"}]
            ),
            headers=auth_headers(self.sato),
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["details"][0]["field"], "visits.0.visit_id")
        self.db.expire_all()
        self.assertIsNotNone(self.db.get(VisitRecord, foreign_id))

    def test_update_to_taken_date_conflicts(self) -> None:
        self.add_report(self.sato, date(2026, 10, 13), self.abc)
        report = self.add_report(self.sato, date(2026, 10, 14), self.abc)

        response = self.client.put(
            f"/api/daily-reports/{report.id}",
            json=self._payload(report_date="2026-10-13"),
            headers=auth_headers(self.sato),
        )
        self.assertEqual(response.status_code, 409)

    def test_only_author_can_edit_or_delete(self) -> None:
        report = self.add_report(self.sato, date(2026, 10, 14), self.abc)
        for employee in (self.manager, self.admin, self.suzuki):
            with self.subTest(name=employee.name):
                headers = auth_headers(employee)
                updated = self.client.put(f"/api/daily-reports/{report.id}", json=self._payload(), headers=headers)
                self.assertEqual(updated.status_code, 403)
                deleted = self.client.delete(f"/api/daily-reports/{report.id}", headers=headers)
                self.assertEqual(deleted.status_code, 403)

    def test_delete_cascades_to_visits_and_comments(self) -> None:
        report = self.add_report(self.sato, date(2026, 10, 14), self.abc)
        self.add_comment(report, self.manager)
        report_id = report.id

        response = self.client.delete(f"/api/daily-reports/{report_id}", headers=auth_headers(self.sato))

        self.assertEqual(response.status_code, 204)
        self.db.expire_all()
        self.assertIsNone(self.db.get(DailyReport, report_id))
        self.assertEqual(self.db.scalar(select(func.count(VisitRecord.id))), 0)
        self.assertEqual(self.db.scalar(select(func.count(Comment.id))), 0)

    def test_view_permissions(self) -> None:
        report = self.add_report(self.sato, date(2026, 10, 14), self.abc)
        expectations = {
            "Sato": 200,
            "Yamada": 200,
            "Admin": 200,
            "Suzuki": 403,
            "Tanaka": 403,
            "Kato": 403,
        }
        employees = (self.sato, self.manager, self.admin, self.suzuki, self.outsider, self.other_manager)
        for employee in employees:
            with self.subTest(name=employee.name):
                response = self.client.get(f"/api/daily-reports/{report.id}", headers=auth_headers(employee))
                self.assertEqual(response.status_code, expectations[employee.name])

    def test_list_scopes_by_role(self) -> None:
        self.add_report(self.sato, date(2026, 10, 13), self.abc)
        self.add_report(self.sato, date(2026, 10, 14), self.abc)
        self.add_report(self.suzuki, date(2026, 10, 14), self.abc)
        self.add_report(self.outsider, date(2026, 10, 14), self.abc)

        def authors(employee, **params) -> list[str]:
            response = self.client.get("/api/daily-reports", params=params, headers=auth_headers(employee))
            self.assertEqual(response.status_code, 200)
            return [item["employee_name"] for item in response.json()["data"]]

        self.assertEqual(authors(self.sato), ["Sato", "Sato"])
        self.assertEqual(authors(self.sato, employee_id=self.suzuki.id), ["Sato", "Sato"])
        self.assertEqual(sorted(authors(self.manager)), ["Sato", "Sato", "Suzuki"])
        self.assertEqual(authors(self.manager, employee_id=self.suzuki.id), ["Suzuki"])
        self.assertEqual(len(authors(self.admin)), 4)
        self.assertEqual(authors(self.admin, employee_id=self.outsider.id), ["Tanaka"])
        self.assertEqual(authors(self.sato, date_from="2026-10-14"), ["Sato"])

    def test_list_is_newest_first(self) -> None:
        self.add_report(self.sato, date(2026, 10, 12), self.abc)
        self.add_report(self.sato, date(2026, 10, 14), self.abc)
        self.add_report(self.sato, date(2026, 10, 13), self.abc)

        response = self.client.get("/api/daily-reports", headers=auth_headers(self.sato))

        dates = [item["report_date"] for item in response.json()["data"]]
        self.assertEqual(dates, ["2026-10-14", "2026-10-13", "2026-10-12"])

    def test_manager_filter_outside_scope_is_denied(self) -> None:
        response = self.client.get(
            "/api/daily-reports",
            params={"employee_id": self.outsider.id},
            headers=auth_headers(self.manager),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "PERMISSION_DENIED")

    def test_missing_and_malformed_report_ids(self) -> None:
        headers = auth_headers(self.sato)
        self.assertEqual(self.client.get("/api/daily-reports/9999", headers=headers).status_code, 404)
        self.assertEqual(self.client.get("/api/daily-reports/x1", headers=headers).status_code, 400)


if __name__ == "__main__":
    unittest.main()
