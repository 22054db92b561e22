#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from salesreport.services.schema_guard import EXPECTED_ALEMBIC_HEAD, verify_runtime_schema
from salesreport.settings import get_settings

PACKAGE_DIR = ROOT_DIR / "salesreport"
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"
REQUIRED_TEMPLATES = (
    "base.html",
    "login.html",
    "dashboard.html",
    "daily_reports.html",
    "daily_report_detail.html",
    "daily_report_edit.html",
    "customers.html",
    "customer_edit.html",
    "employees.html",
    "employee_edit.html",
    "forbidden.html",
    "not_found.html",
)
REQUIRED_STATIC = ("app.css", "forms.js")


@dataclass(slots=True)
class CheckResult:
    name: str
    status: str
    details: dict[str, Any]


def _script_directory() -> ScriptDirectory:
    return ScriptDirectory.from_config(Config(str(ROOT_DIR / "alembic.ini")))


def _check_migrations() -> CheckResult:
    script = _script_directory()
    # alembic_version.version_num is VARCHAR(32).
    too_long = [item.revision for item in script.walk_revisions() if len(item.revision) > 32]
    heads = sorted(script.get_heads())
    problems: list[str] = []
    if too_long:
        problems.append("REVISION_ID_TOO_LONG")
    if len(heads) != 1:
        problems.append("MULTIPLE_HEADS")
    if EXPECTED_ALEMBIC_HEAD not in heads:
        problems.append("GUARD_HEAD_OUTDATED")
    return CheckResult(
        name="migrations",
        status="fail" if problems else "ok",
        details={
            "problems": problems,
            "heads": heads,
            "guard_expected_head": EXPECTED_ALEMBIC_HEAD,
            "too_long": too_long,
        },
    )


def _check_page_assets() -> CheckResult:
    missing = [f"templates/{name}" for name in REQUIRED_TEMPLATES if not (TEMPLATES_DIR / name).exists()]
    missing += [f"static/{name}" for name in REQUIRED_STATIC if not (STATIC_DIR / name).exists()]
    return CheckResult(
        name="page_assets",
        status="ok" if not missing else "fail",
        details={"missing": missing},
    )


def _check_settings() -> CheckResult:
    try:
        settings = get_settings()
    except ValidationError as exc:
        return CheckResult(
            name="settings",
            status="fail",
            details={"errors": [".".join(str(part) for part in error["loc"]) for error in exc.errors()]},
        )
    return CheckResult(
        name="settings",
        status="ok",
        details={"app_env": settings.app_env, "base_public_url": settings.base_public_url},
    )


def _check_database() -> CheckResult:
    try:
        database_url = get_settings().database_url
    except ValidationError:
        return CheckResult(name="database", status="warn", details={"reason": "SETTINGS_INVALID"})

    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as connection:
            employee_count = connection.execute(text("SELECT COUNT(*) FROM employees")).scalar_one()
        schema_result = verify_runtime_schema(engine)
    except SQLAlchemyError as exc:
        return CheckResult(
            name="database",
            status="fail",
            details={"reason": "DATABASE_UNREACHABLE", "error": exc.__class__.__name__},
        )
    finally:
        engine.dispose()

    return CheckResult(
        name="database",
        status="ok" if schema_result.ok else "fail",
        details={"employee_count": employee_count, "schema_guard": schema_result.to_dict()},
    )


def main() -> int:
    checks = [
        _check_migrations(),
        _check_page_assets(),
        _check_settings(),
        _check_database(),
    ]
    failed_checks = [check for check in checks if check.status == "fail"]
    summary = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "ok": not failed_checks,
        "checks": [{"name": check.name, "status": check.status, "details": check.details} for check in checks],
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0 if not failed_checks else 1


if __name__ == "__main__":
    raise SystemExit(main())
