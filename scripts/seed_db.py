#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import date, time, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from salesreport.db import SessionLocal
from salesreport.models import Comment, Customer, DailyReport, Employee, Role, VisitRecord
from salesreport.security import hash_password

SALES_PASSWORD = "Test1234!"
ADMIN_PASSWORD = "Admin1234!"


def seed(db: Session, *, today: date | None = None) -> dict[str, Any]:
    """Load the demo organisation: one manager, two sales reps, one admin and their records."""
    existing = db.scalar(select(func.count(Employee.id))) or 0
    if existing:
        return {"seeded": False, "reason": "EMPLOYEES_ALREADY_PRESENT", "employee_count": existing}

    member_hash = hash_password(SALES_PASSWORD)
    manager = Employee(
        name="山田太郎",
        email="manager@test.com",
        department="営業部",
        position="営業課長",
        role=Role.MANAGER,
        password_hash=member_hash,
    )
    sato = Employee(
        name="佐藤花子",
        email="sales@test.com",
        department="営業部",
        position="営業担当",
        role=Role.SALES,
        password_hash=member_hash,
        manager=manager,
    )
    suzuki = Employee(
        name="鈴木一郎",
        email="suzuki@test.com",
        department="営業部",
        position="営業担当",
        role=Role.SALES,
        password_hash=member_hash,
        manager=manager,
    )
    admin = Employee(
        name="管理者",
        email="admin@test.com",
        department="管理部",
        position="管理者",
        role=Role.ADMIN,
        password_hash=hash_password(ADMIN_PASSWORD),
    )
    db.add_all([manager, sato, suzuki, admin])

    abc = Customer(
        name="株式会社ABC商事",
        address="東京都千代田区丸の内1-1-1",
        phone="03-1234-5678",
        email="contact@abc-corp.co.jp",
        assigned_employee=sato,
    )
    xyz = Customer(
        name="株式会社XYZ産業",
        address="大阪府大阪市北区梅田2-2-2",
        phone="06-9876-5432",
        email="info@xyz-industry.co.jp",
        assigned_employee=sato,
    )
    test_service = Customer(
        name="有限会社テストサービス",
        address="神奈川県横浜市西区みなとみらい3-3-3",
        phone="045-1111-2222",
        email="support@test-service.co.jp",
        assigned_employee=suzuki,
    )
    db.add_all([abc, xyz, test_service])

    yesterday = (today or date.today()) - timedelta(days=1)
    sato_report = DailyReport(
        employee=sato,
        report_date=yesterday,
        problem="新規顧客の開拓が思うように進んでいません。アプローチ方法について相談したいです。",
        plan="明日はABC商事様への提案書作成と、新規顧客へのテレアポを予定しています。",
        visit_records=[
            VisitRecord(
                customer=abc,
                visit_time=time(10, 0),
                visit_content="新製品の提案を行いました。好感触で、来週再度訪問することになりました。",
            ),
            VisitRecord(
                customer=xyz,
                visit_time=time(14, 30),
                visit_content="契約更新の打ち合わせ。価格について再検討が必要との回答を得ました。",
            ),
        ],
        comments=[
            Comment(
                commenter=manager,
                body="新規開拓については、既存顧客からの紹介を活用するのも良いでしょう。来週ミーティングで詳しく相談しましょう。",
            ),
        ],
    )
    suzuki_report = DailyReport(
        employee=suzuki,
        report_date=yesterday,
        problem="特になし",
        plan="テストサービス様への訪問と、見積書の作成を行います。",
        visit_records=[
            VisitRecord(
                customer=test_service,
                visit_time=time(11, 0),
                visit_content="システム導入の進捗確認。順調に進んでおり、来月には稼働予定です。",
            ),
        ],
        comments=[
            Comment(
                commenter=manager,
                body="お疲れ様です。順調に進んでいるようですね。引き続きよろしくお願いします。",
            ),
        ],
    )
    db.add_all([sato_report, suzuki_report])
    db.commit()

    return {
        "seeded": True,
        "employees": 4,
        "customers": 3,
        "daily_reports": 2,
        "visit_records": 3,
        "comments": 2,
        "report_date": yesterday.isoformat(),
    }


def main() -> int:
    with SessionLocal() as db:
        summary = seed(db)
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
