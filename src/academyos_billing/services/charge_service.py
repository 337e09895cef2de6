'''

'''
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.exceptions import ChargeNotFound, InvalidAmount, InsufficientData
from ..common.logger import log
from ..core.pricing import to_cents
from ..database import models as db_models
from ..database.db_enums import TransactionTypeEnum, ChargeStatusEnum
from ..database.engine import get_db_session, atomic
from ..models import charges as charge_models
from ..models.tenancy import TenantContext
from .ledger_service import LedgerService
from .payment_service import PaymentService
from .pricing_service import PricingService
from .student_service import StudentService

REFUND_DESCRIPTION_PREFIX = "Отмена списания: "


class ChargeService:
    """
    Issues and cancels tuition charges.

    Issuing writes the charge, its optional payment link and the matching
    ledger debit as one unit. Cancelling never deletes the charge: its
    status flips and an offsetting refund is appended to the ledger.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ):
        self.db = db
        self.student_service = student_service
        self.ledger_service = ledger_service
        self.payment_service = payment_service
        self.pricing_service = pricing_service

    async def get_charge_orm(self, ctx: TenantContext, charge_id: UUID) -> db_models.TuitionCharges:
        stmt = select(db_models.TuitionCharges).options(
            selectinload(db_models.TuitionCharges.payment_links)
        ).filter(
            db_models.TuitionCharges.id == charge_id,
            db_models.TuitionCharges.organization_id == ctx.organization_id
        ).execution_options(populate_existing=True)
        charge = (await self.db.execute(stmt)).scalars().first()
        if not charge:
            log.warning(f"Tuition charge {charge_id} not found in organization {ctx.organization_id}.")
            raise ChargeNotFound(f"Tuition charge {charge_id} not found.")
        return charge

    async def _find_refund_entry(self, ctx: TenantContext, charge_id: UUID) -> Optional[UUID]:
        stmt = select(db_models.BalanceTransactions.id).filter(
            db_models.BalanceTransactions.organization_id == ctx.organization_id,
            db_models.BalanceTransactions.tuition_charge_id == charge_id,
            db_models.BalanceTransactions.transaction_type == TransactionTypeEnum.REFUND.value
        ).order_by(db_models.BalanceTransactions.created_at).limit(1)
        return (await self.db.execute(stmt)).scalars().first()

    async def charge(
        self,
        ctx: TenantContext,
        data: charge_models.TuitionChargeCreate
    ) -> charge_models.ChargeIssueResult:
        """
        Bills a learning unit.

        1. Lock the student.
        2. Insert the charge as active.
        3. Link it to the payment, if one was given.
        4. Post the lesson_charge debit referencing the charge (and payment).
        5. Count the use of the discount bindings that priced it.
        """
        log.info(f"Actor {ctx.actor_id} issuing charge of {data.amount} / {data.academic_hours} h for student {data.student_id}.")

        if data.student_id is None or data.learning_unit_id is None:
            log.warning("Refused charge without student or learning unit.")
            raise InsufficientData("student_id and learning_unit_id are required to issue a charge.")

        amount = to_cents(data.amount)
        academic_hours = to_cents(data.academic_hours)
        if amount < 0 or academic_hours < 0:
            log.warning(f"Refused negative charge for student {data.student_id}: {amount} / {academic_hours} h.")
            raise InvalidAmount("Charge amount and academic hours cannot be negative.")
        if amount == 0 and academic_hours == 0:
            log.warning(f"Refused empty charge for student {data.student_id}.")
            raise InvalidAmount("A charge must bill money or academic hours.")

        # 1. Lock
        student = await self.student_service.lock_student(ctx, data.student_id)

        payment = None
        if data.payment_id is not None:
            payment = await self.payment_service.get_payment_orm(ctx, data.payment_id)

        async with atomic(self.db, "issue tuition charge"):
            # 2. Charge
            charge = db_models.TuitionCharges(
                organization_id=ctx.organization_id,
                student_id=student.id,
                learning_unit_type=data.learning_unit_type.value,
                learning_unit_id=data.learning_unit_id,
                amount=amount,
                currency=student.currency,
                academic_hours=academic_hours,
                charge_date=data.charge_date or date.today(),
                status=ChargeStatusEnum.ACTIVE.value,
                description=data.description,
                created_by=ctx.actor_id
            )
            self.db.add(charge)
            await self.db.flush()

            # 3. Payment link
            if payment is not None and amount > 0:
                await self.payment_service.link_to_charge(ctx, payment, charge, amount)

            # 4. Ledger debit
            transaction_id = await self.ledger_service.post(
                ctx,
                student.id,
                -amount,
                -academic_hours,
                TransactionTypeEnum.LESSON_CHARGE,
                description=data.description,
                payment_id=data.payment_id,
                tuition_charge_id=charge.id
            )

            # 5. Discount usage
            if data.discount_binding_ids:
                await self.pricing_service.record_usage(ctx, student.id, data.discount_binding_ids)

        log.info(f"Issued charge {charge.id} (ledger entry {transaction_id}) for student {student.id}.")
        charge = await self.get_charge_orm(ctx, charge.id)
        return charge_models.ChargeIssueResult(
            charge=charge_models.TuitionChargeRead.model_validate(charge),
            transaction_id=transaction_id,
            balance=await self.ledger_service.get_balance(ctx, student.id)
        )

    async def cancel(self, ctx: TenantContext, charge_id: UUID) -> charge_models.ChargeCancelResult:
        """
        Cancels an active charge and refunds it. A charge that is no longer
        active is left untouched and the refund it already received is
        reported, so calling this twice refunds once.
        """
        log.info(f"Actor {ctx.actor_id} cancelling tuition charge {charge_id}.")
        charge = await self.get_charge_orm(ctx, charge_id)
        await self.student_service.lock_student(ctx, charge.student_id)

        # re-read under the lock; a concurrent cancel may have won
        charge = await self.get_charge_orm(ctx, charge_id)
        if charge.status != ChargeStatusEnum.ACTIVE.value:
            log.info(f"Charge {charge_id} is already {charge.status}; nothing to refund.")
            return charge_models.ChargeCancelResult(
                charge=charge_models.TuitionChargeRead.model_validate(charge),
                refund_transaction_id=await self._find_refund_entry(ctx, charge_id),
                already_cancelled=True,
                balance=await self.ledger_service.get_balance(ctx, charge.student_id)
            )

        async with atomic(self.db, "cancel tuition charge"):
            charge.status = ChargeStatusEnum.CANCELLED.value
            await self.db.flush()

            refund_id = await self.ledger_service.post(
                ctx,
                charge.student_id,
                Decimal(charge.amount),
                Decimal(charge.academic_hours),
                TransactionTypeEnum.REFUND,
                description=f"{REFUND_DESCRIPTION_PREFIX}{charge.description or ''}",
                tuition_charge_id=charge.id
            )

        log.info(f"Cancelled charge {charge_id}; refund entry {refund_id}.")
        charge = await self.get_charge_orm(ctx, charge_id)
        return charge_models.ChargeCancelResult(
            charge=charge_models.TuitionChargeRead.model_validate(charge),
            refund_transaction_id=refund_id,
            already_cancelled=False,
            balance=await self.ledger_service.get_balance(ctx, charge.student_id)
        )

    async def get_charge(self, ctx: TenantContext, charge_id: UUID) -> charge_models.TuitionChargeRead:
        charge = await self.get_charge_orm(ctx, charge_id)
        return charge_models.TuitionChargeRead.model_validate(charge)

    async def list_charges(
        self,
        ctx: TenantContext,
        student_id: UUID,
        status: Optional[ChargeStatusEnum] = None
    ) -> list[charge_models.TuitionChargeRead]:
        await self.student_service.get_student_orm(ctx, student_id)
        stmt = select(db_models.TuitionCharges).options(
            selectinload(db_models.TuitionCharges.payment_links)
        ).filter(
            db_models.TuitionCharges.organization_id == ctx.organization_id,
            db_models.TuitionCharges.student_id == student_id
        )
        if status is not None:
            stmt = stmt.filter(db_models.TuitionCharges.status == ChargeStatusEnum(status).value)
        stmt = stmt.order_by(db_models.TuitionCharges.charge_date.desc(), db_models.TuitionCharges.created_at.desc())

        result = await self.db.execute(stmt)
        return [charge_models.TuitionChargeRead.model_validate(c) for c in result.scalars().all()]
