'''

'''
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.exceptions import InvalidAmount, PaymentNotFound, SessionNotFound
from ..common.logger import log
from ..core.pricing import to_cents
from ..database import models as db_models
from ..database.db_enums import (
    TransactionTypeEnum, ChargeStatusEnum, CREDIT_TRANSACTION_TYPES, DEBIT_TRANSACTION_TYPES
)
from ..database.engine import get_db_session, atomic
from ..models import ledger as ledger_models
from ..models.tenancy import TenantContext
from .student_service import StudentService

ZERO = Decimal("0")


def validate_entry(transaction_type: TransactionTypeEnum, amount: Decimal, academic_hours: Decimal) -> None:
    """
    Sign rules for a single ledger entry. Raises InvalidAmount.
    Credits may only add, debits may only subtract, adjustments go either way.
    """
    if amount == ZERO and academic_hours == ZERO:
        raise InvalidAmount("A ledger entry must move money or academic hours.")
    if transaction_type in CREDIT_TRANSACTION_TYPES and (amount < ZERO or academic_hours < ZERO):
        raise InvalidAmount(f"'{transaction_type.value}' entries cannot be negative.")
    if transaction_type in DEBIT_TRANSACTION_TYPES and (amount > ZERO or academic_hours > ZERO):
        raise InvalidAmount(f"'{transaction_type.value}' entries cannot be positive.")


class LedgerService:
    """
    Append-only balance ledger. Rows are inserted, never updated or deleted;
    the balance is the sum of a student's rows, computed on every read.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ):
        self.db = db
        self.student_service = student_service

    async def _check_references(
        self,
        ctx: TenantContext,
        student_id: UUID,
        payment_id: Optional[UUID],
        lesson_session_id: Optional[UUID]
    ) -> None:
        """
        A referenced payment or session must exist in the organization and
        belong to the student the entry is posted for.
        """
        if payment_id is not None:
            stmt = select(db_models.Payments.student_id).filter(
                db_models.Payments.id == payment_id,
                db_models.Payments.organization_id == ctx.organization_id
            )
            owner = (await self.db.execute(stmt)).scalars().first()
            if owner is None:
                log.warning(f"Ledger entry refers to unknown payment {payment_id}.")
                raise PaymentNotFound(f"Payment {payment_id} not found.")
            if owner != student_id:
                log.warning(f"Refused ledger entry for student {student_id} referencing payment {payment_id} of student {owner}.")
                raise InvalidAmount("The payment belongs to another student.")

        if lesson_session_id is not None:
            stmt = select(db_models.IndividualLessons.student_id).join(
                db_models.IndividualLessonSessions,
                db_models.IndividualLessonSessions.individual_lesson_id == db_models.IndividualLessons.id
            ).filter(
                db_models.IndividualLessonSessions.id == lesson_session_id,
                db_models.IndividualLessonSessions.organization_id == ctx.organization_id
            )
            owner = (await self.db.execute(stmt)).scalars().first()
            if owner is None:
                log.warning(f"Ledger entry refers to unknown lesson session {lesson_session_id}.")
                raise SessionNotFound(f"Lesson session {lesson_session_id} not found.")
            if owner != student_id:
                log.warning(f"Refused ledger entry for student {student_id} referencing session {lesson_session_id} of student {owner}.")
                raise InvalidAmount("The lesson session belongs to another student.")

    async def post(
        self,
        ctx: TenantContext,
        student_id: UUID,
        amount: Decimal,
        academic_hours: Decimal,
        transaction_type: TransactionTypeEnum,
        description: Optional[str] = None,
        payment_id: Optional[UUID] = None,
        lesson_session_id: Optional[UUID] = None,
        tuition_charge_id: Optional[UUID] = None
    ) -> UUID:
        """
        Appends exactly one entry and returns its id.
        Callers that already hold the student lock may call this inside their
        own `atomic` block; the lock is simply re-acquired.
        """
        transaction_type = TransactionTypeEnum(transaction_type)
        amount = to_cents(amount)
        academic_hours = to_cents(academic_hours)
        validate_entry(transaction_type, amount, academic_hours)

        await self.student_service.lock_student(ctx, student_id)
        await self._check_references(ctx, student_id, payment_id, lesson_session_id)

        async with atomic(self.db, "post ledger entry"):
            entry = db_models.BalanceTransactions(
                organization_id=ctx.organization_id,
                student_id=student_id,
                amount=amount,
                academic_hours=academic_hours,
                transaction_type=transaction_type.value,
                description=description,
                payment_id=payment_id,
                lesson_session_id=lesson_session_id,
                tuition_charge_id=tuition_charge_id,
                created_by=ctx.actor_id
            )
            self.db.add(entry)
            await self.db.flush()

        log.info(
            f"Posted {transaction_type.value} entry {entry.id} for student {student_id}: "
            f"{amount} / {academic_hours} h."
        )
        return entry.id

    async def post_manual_entry(
        self,
        ctx: TenantContext,
        student_id: UUID,
        data: ledger_models.ManualEntryCreate
    ) -> ledger_models.BalanceTransactionRead:
        log.info(f"Actor {ctx.actor_id} posting manual {data.transaction_type.value} entry for student {student_id}.")
        transaction_id = await self.post(
            ctx,
            student_id,
            data.amount,
            data.academic_hours,
            data.transaction_type,
            description=data.description,
            payment_id=data.payment_id,
            lesson_session_id=data.lesson_session_id
        )
        entry = await self.db.get(db_models.BalanceTransactions, transaction_id)
        return ledger_models.BalanceTransactionRead.model_validate(entry)

    async def get_balance(self, ctx: TenantContext, student_id: UUID) -> ledger_models.BalanceRead:
        """Sum-reduction over the student's entries. Zero when there are none."""
        student = await self.student_service.get_student_orm(ctx, student_id)

        stmt = select(
            func.coalesce(func.sum(db_models.BalanceTransactions.amount), 0),
            func.coalesce(func.sum(db_models.BalanceTransactions.academic_hours), 0)
        ).filter(
            db_models.BalanceTransactions.organization_id == ctx.organization_id,
            db_models.BalanceTransactions.student_id == student_id
        )
        amount, academic_hours = (await self.db.execute(stmt)).one()

        return ledger_models.BalanceRead(
            student_id=student.id,
            academic_hours=to_cents(academic_hours),
            amount=to_cents(amount),
            currency=student.currency
        )

    async def list_transactions(
        self,
        ctx: TenantContext,
        student_id: UUID,
        limit: Optional[int] = None,
        transaction_type: Optional[TransactionTypeEnum] = None
    ) -> list[ledger_models.BalanceTransactionRead]:
        """The student's history, newest first."""
        await self.student_service.get_student_orm(ctx, student_id)

        stmt = select(db_models.BalanceTransactions).filter(
            db_models.BalanceTransactions.organization_id == ctx.organization_id,
            db_models.BalanceTransactions.student_id == student_id
        )
        if transaction_type is not None:
            stmt = stmt.filter(db_models.BalanceTransactions.transaction_type == TransactionTypeEnum(transaction_type).value)
        stmt = stmt.order_by(db_models.BalanceTransactions.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return [ledger_models.BalanceTransactionRead.model_validate(t) for t in result.scalars().all()]

    async def net_for_charge(self, ctx: TenantContext, charge_id: UUID) -> tuple[Decimal, Decimal]:
        """Net (amount, academic_hours) of every entry that references the charge."""
        stmt = select(
            func.coalesce(func.sum(db_models.BalanceTransactions.amount), 0),
            func.coalesce(func.sum(db_models.BalanceTransactions.academic_hours), 0)
        ).filter(
            db_models.BalanceTransactions.organization_id == ctx.organization_id,
            db_models.BalanceTransactions.tuition_charge_id == charge_id
        )
        amount, academic_hours = (await self.db.execute(stmt)).one()
        return to_cents(amount), to_cents(academic_hours)

    async def audit_charges(self, ctx: TenantContext) -> ledger_models.LedgerAuditReport:
        """
        Checks every charge of the organization against its ledger entries:
        an active charge must net to -amount, a cancelled or refunded one to zero.
        """
        log.info(f"Running charge audit for organization {ctx.organization_id}.")

        totals = select(
            db_models.BalanceTransactions.tuition_charge_id.label("charge_id"),
            func.sum(db_models.BalanceTransactions.amount).label("amount"),
            func.sum(db_models.BalanceTransactions.academic_hours).label("academic_hours")
        ).filter(
            db_models.BalanceTransactions.organization_id == ctx.organization_id,
            db_models.BalanceTransactions.tuition_charge_id.is_not(None)
        ).group_by(db_models.BalanceTransactions.tuition_charge_id).subquery()

        stmt = select(
            db_models.TuitionCharges,
            func.coalesce(totals.c.amount, 0),
            func.coalesce(totals.c.academic_hours, 0)
        ).outerjoin(
            totals, totals.c.charge_id == db_models.TuitionCharges.id
        ).filter(
            db_models.TuitionCharges.organization_id == ctx.organization_id
        ).order_by(db_models.TuitionCharges.charge_date)

        rows = (await self.db.execute(stmt)).all()
        violations = []
        for charge, net_amount, net_hours in rows:
            if charge.status == ChargeStatusEnum.ACTIVE.value:
                expected_amount, expected_hours = -to_cents(charge.amount), -to_cents(charge.academic_hours)
            else:
                expected_amount, expected_hours = ZERO, ZERO

            net_amount, net_hours = to_cents(net_amount), to_cents(net_hours)
            if net_amount != expected_amount or net_hours != expected_hours:
                log.warning(f"Charge {charge.id} ({charge.status}) nets to {net_amount} / {net_hours} h, expected {expected_amount} / {expected_hours} h.")
                violations.append(ledger_models.ChargeAuditRead(
                    charge_id=charge.id,
                    student_id=charge.student_id,
                    status=charge.status,
                    expected_amount=expected_amount,
                    expected_academic_hours=expected_hours,
                    ledger_amount=net_amount,
                    ledger_academic_hours=net_hours
                ))

        return ledger_models.LedgerAuditReport(checked_charges=len(rows), violations=violations)
