import asyncio
import os
import sys
import uuid
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import text

# --- Path Setup ---
# This file is assumed to be in <project_root>/scripts/check_integrity.py
CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

load_dotenv(PROJECT_ROOT / ".env")

from academyos_billing.database.engine import build_engine, build_session_factory  # noqa: E402
from academyos_billing.models.tenancy import TenantContext  # noqa: E402
from academyos_billing.services.student_service import StudentService  # noqa: E402
from academyos_billing.services.ledger_service import LedgerService  # noqa: E402


async def check_integrity(organization_id: uuid.UUID):
    db_url = os.getenv("DATABASE_URL_PROD")
    if not db_url:
        print("Error: DATABASE_URL_PROD not set.")
        return False

    if db_url.startswith("postgresql://") and "+asyncpg" not in db_url:
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://")

    print("Connecting to database...")
    engine = build_engine(db_url)
    async_session = build_session_factory(engine)
    ctx = TenantContext(organization_id=organization_id)
    passed = True

    async with async_session() as session:
        print("--- Checking charge/refund ledger invariant ---")
        ledger_service = LedgerService(db=session, student_service=StudentService(db=session))
        report = await ledger_service.audit_charges(ctx)
        print(f"Charges checked: {report.checked_charges}")
        for violation in report.violations:
            print(
                f"  charge {violation.charge_id} ({violation.status.value}): "
                f"ledger {violation.ledger_amount} / {violation.ledger_academic_hours} h, "
                f"expected {violation.expected_amount} / {violation.expected_academic_hours} h"
            )
        passed = passed and not report.violations

        print("--- Checking paid minutes and payment links ---")
        # 1. Sessions paid beyond their duration (only possible if the CHECK was bypassed)
        over_paid = (await session.execute(text("""
            SELECT count(*) FROM individual_lesson_sessions
            WHERE organization_id = :org AND (paid_minutes < 0 OR paid_minutes > duration)
        """), {"org": organization_id})).scalar()

        # 2. Payments allocated beyond their amount
        over_allocated = (await session.execute(text("""
            SELECT count(*) FROM (
                SELECT p.id FROM payments p
                JOIN payment_tuition_link l ON l.payment_id = p.id
                WHERE p.organization_id = :org
                GROUP BY p.id, p.amount
                HAVING sum(l.amount) > p.amount
            ) AS over_allocated
        """), {"org": organization_id})).scalar()

        print(f"Sessions outside 0..duration: {over_paid}")
        print(f"Over-allocated payments: {over_allocated}")
        passed = passed and over_paid == 0 and over_allocated == 0

    if passed:
        print("✅ PASS: Integrity Verified.")
    else:
        print("❌ FAIL: Integrity Issues Found.")

    await engine.dispose()
    return passed

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/check_integrity.py <organization-id>")
        sys.exit(2)
    ok = asyncio.run(check_integrity(uuid.UUID(sys.argv[1])))
    sys.exit(0 if ok else 1)
