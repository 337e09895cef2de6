'''

'''
from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.exceptions import InvalidAmount, PaymentNotFound, ChargeNotFound
from ..common.logger import log
from ..core.pricing import to_cents
from ..database import models as db_models
from ..database.db_enums import TransactionTypeEnum, ChargeStatusEnum
from ..database.engine import get_db_session, atomic
from ..models import payments as payment_models
from ..models.tenancy import TenantContext
from .ledger_service import LedgerService
from .student_service import StudentService


class PaymentService:
    """
    Records payments and splits them across tuition charges.
    A payment may be spread over several charges, but its links never add
    up to more than the payment itself.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ):
        self.db = db
        self.student_service = student_service
        self.ledger_service = ledger_service

    async def get_payment_orm(self, ctx: TenantContext, payment_id: UUID) -> db_models.Payments:
        stmt = select(db_models.Payments).options(
            selectinload(db_models.Payments.tuition_links)
        ).filter(
            db_models.Payments.id == payment_id,
            db_models.Payments.organization_id == ctx.organization_id
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        payment = result.scalars().first()
        if not payment:
            log.warning(f"Payment {payment_id} not found in organization {ctx.organization_id}.")
            raise PaymentNotFound(f"Payment {payment_id} not found.")
        return payment

    async def allocated_amount(self, payment_id: UUID) -> Decimal:
        stmt = select(func.coalesce(func.sum(db_models.PaymentTuitionLinks.amount), 0)).filter(
            db_models.PaymentTuitionLinks.payment_id == payment_id
        )
        return to_cents((await self.db.execute(stmt)).scalar_one())

    async def link_to_charge(
        self,
        ctx: TenantContext,
        payment: db_models.Payments,
        charge: db_models.TuitionCharges,
        amount: Decimal
    ) -> db_models.PaymentTuitionLinks:
        """
        Inserts a PaymentTuitionLink after checking ownership and the
        unallocated remainder of the payment. Caller holds the student lock.
        """
        amount = to_cents(amount)
        if amount <= 0:
            raise InvalidAmount("An allocation must be greater than zero.")
        if payment.student_id != charge.student_id:
            log.warning(f"Refused to link payment {payment.id} to charge {charge.id} of another student.")
            raise InvalidAmount("A payment can only cover charges of the same student.")

        unallocated = to_cents(payment.amount) - await self.allocated_amount(payment.id)
        if amount > unallocated:
            log.warning(f"Refused to allocate {amount} from payment {payment.id}; only {unallocated} left.")
            raise InvalidAmount(f"Payment {payment.id} has only {unallocated} left to allocate.")

        link = db_models.PaymentTuitionLinks(
            organization_id=ctx.organization_id,
            payment_id=payment.id,
            tuition_charge_id=charge.id,
            amount=amount
        )
        self.db.add(link)
        await self.db.flush()
        return link

    async def record_payment(self, ctx: TenantContext, data: payment_models.PaymentCreate) -> payment_models.PaymentRead:
        """
        Stores the payment and credits the ledger with it, as one unit.
        """
        log.info(f"Actor {ctx.actor_id} recording payment of {data.amount} for student {data.student_id}.")
        amount = to_cents(data.amount)
        academic_hours = to_cents(data.academic_hours)
        if amount < 0 or academic_hours < 0:
            raise InvalidAmount("Payments cannot be negative.")
        if amount == 0 and academic_hours == 0:
            raise InvalidAmount("A payment must carry money or academic hours.")

        await self.student_service.lock_student(ctx, data.student_id)

        async with atomic(self.db, "record payment"):
            # 1. The payment row
            payment = db_models.Payments(
                organization_id=ctx.organization_id,
                student_id=data.student_id,
                amount=amount,
                academic_hours=academic_hours,
                method=data.method.value,
                payment_date=data.payment_date or date.today(),
                description=data.description,
                created_by=ctx.actor_id
            )
            self.db.add(payment)
            await self.db.flush()

            # 2. The matching ledger credit
            await self.ledger_service.post(
                ctx,
                data.student_id,
                amount,
                academic_hours,
                TransactionTypeEnum.PAYMENT,
                description=data.description or f"Оплата ({data.method.value})",
                payment_id=payment.id
            )

        payment = await self.get_payment_orm(ctx, payment.id)
        return payment_models.PaymentRead.model_validate(payment)

    async def allocate(
        self,
        ctx: TenantContext,
        payment_id: UUID,
        data: payment_models.PaymentAllocationCreate
    ) -> payment_models.PaymentRead:
        log.info(f"Actor {ctx.actor_id} allocating {data.amount} of payment {payment_id} to charge {data.tuition_charge_id}.")
        payment = await self.get_payment_orm(ctx, payment_id)
        await self.student_service.lock_student(ctx, payment.student_id)

        stmt = select(db_models.TuitionCharges).filter(
            db_models.TuitionCharges.id == data.tuition_charge_id,
            db_models.TuitionCharges.organization_id == ctx.organization_id
        )
        charge = (await self.db.execute(stmt)).scalars().first()
        if not charge:
            raise ChargeNotFound(f"Tuition charge {data.tuition_charge_id} not found.")
        if charge.status != ChargeStatusEnum.ACTIVE.value:
            raise InvalidAmount(f"Tuition charge {charge.id} is {charge.status} and cannot receive payments.")

        async with atomic(self.db, "allocate payment"):
            await self.link_to_charge(ctx, payment, charge, data.amount)

        payment = await self.get_payment_orm(ctx, payment_id)
        return payment_models.PaymentRead.model_validate(payment)

    async def get_payment(self, ctx: TenantContext, payment_id: UUID) -> payment_models.PaymentRead:
        payment = await self.get_payment_orm(ctx, payment_id)
        return payment_models.PaymentRead.model_validate(payment)

    async def list_payments(self, ctx: TenantContext, student_id: UUID) -> list[payment_models.PaymentRead]:
        await self.student_service.get_student_orm(ctx, student_id)
        stmt = select(db_models.Payments).options(
            selectinload(db_models.Payments.tuition_links)
        ).filter(
            db_models.Payments.organization_id == ctx.organization_id,
            db_models.Payments.student_id == student_id
        ).order_by(db_models.Payments.payment_date.desc(), db_models.Payments.created_at.desc())
        result = await self.db.execute(stmt)
        return [payment_models.PaymentRead.model_validate(p) for p in result.scalars().all()]
