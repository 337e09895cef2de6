import pytest
import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from academyos_billing.common.exceptions import (
    InvalidAmount, InsufficientData, ChargeNotFound, PaymentNotFound, PartialWriteError, StudentNotFound
)
from academyos_billing.database import models as db_models
from academyos_billing.database.db_enums import (
    TransactionTypeEnum, ChargeStatusEnum, LearningUnitTypeEnum, PaymentMethodEnum
)
from academyos_billing.models import charges as charge_models
from academyos_billing.models import payments as payment_models
from academyos_billing.services.charge_service import ChargeService
from academyos_billing.services.ledger_service import LedgerService
from academyos_billing.services.payment_service import PaymentService
from tests.constants import TEST_LESSON_ID
from tests.database import factories


def individual_charge(student_id, amount="3000", hours="1.5", **kwargs) -> charge_models.TuitionChargeCreate:
    return charge_models.TuitionChargeCreate(
        student_id=student_id,
        learning_unit_type=LearningUnitTypeEnum.INDIVIDUAL,
        learning_unit_id=TEST_LESSON_ID,
        amount=Decimal(amount),
        academic_hours=Decimal(hours),
        charge_date=datetime.date(2025, 9, 1),
        description=kwargs.pop("description", "Индивидуальное занятие"),
        **kwargs
    )


@pytest.mark.anyio
class TestIssueCharge:

    async def test_charge_debits_balance(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        """Issuing 3000 RUB / 1.5 h moves the balance by exactly -3000 / -1.5."""
        print("\n--- Testing charge issue ---")
        await ledger_service.post(ctx, test_student_orm.id, Decimal("10000"), Decimal("6"), TransactionTypeEnum.CREDIT)
        before = await ledger_service.get_balance(ctx, test_student_orm.id)

        result = await charge_service.charge(ctx, individual_charge(test_student_orm.id))

        after = await ledger_service.get_balance(ctx, test_student_orm.id)
        assert after.amount - before.amount == Decimal("-3000")
        assert after.academic_hours - before.academic_hours == Decimal("-1.5")
        assert result.balance == after
        assert result.charge.status == ChargeStatusEnum.ACTIVE
        assert result.charge.currency == "RUB"

    async def test_charge_entry_references_charge(
        self,
        charge_service: ChargeService,
        db_session,
        test_student_orm: db_models.Students,
        ctx
    ):
        result = await charge_service.charge(ctx, individual_charge(test_student_orm.id))

        entry = await db_session.get(db_models.BalanceTransactions, result.transaction_id)
        assert entry.transaction_type == TransactionTypeEnum.LESSON_CHARGE.value
        assert entry.tuition_charge_id == result.charge.id
        assert entry.amount == Decimal("-3000")
        assert entry.academic_hours == Decimal("-1.5")

    @pytest.mark.parametrize("amount, hours", [("-1", "1"), ("100", "-0.5"), ("0", "0")])
    async def test_invalid_amounts(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        ctx,
        amount,
        hours
    ):
        with pytest.raises(InvalidAmount):
            await charge_service.charge(ctx, individual_charge(test_student_orm.id, amount=amount, hours=hours))

    async def test_missing_learning_unit(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        ctx
    ):
        data = individual_charge(test_student_orm.id)
        data.learning_unit_id = None
        with pytest.raises(InsufficientData) as e:
            await charge_service.charge(ctx, data)
        assert e.value.status_code == 400

    async def test_unknown_student(self, charge_service: ChargeService, ctx):
        with pytest.raises(StudentNotFound):
            await charge_service.charge(ctx, individual_charge(uuid4()))

    async def test_ledger_failure_leaves_no_partial_write(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        db_session,
        test_student_orm: db_models.Students,
        ctx,
        monkeypatch
    ):
        """If the debit cannot be written, the charge row must not survive either."""
        async def failing_post(*args, **kwargs):
            raise SQLAlchemyError("ledger table unavailable")

        monkeypatch.setattr(charge_service.ledger_service, "post", failing_post)

        with pytest.raises(PartialWriteError) as e:
            await charge_service.charge(ctx, individual_charge(test_student_orm.id))
        assert e.value.status_code == 503

        monkeypatch.undo()
        charges = (await db_session.execute(select(func.count()).select_from(db_models.TuitionCharges))).scalar_one()
        assert charges == 0
        assert (await ledger_service.get_balance(ctx, test_student_orm.id)).amount == Decimal("0")


@pytest.mark.anyio
class TestChargeWithPayment:

    async def _record_payment(self, payment_service: PaymentService, ctx, student_id, amount="5000"):
        return await payment_service.record_payment(ctx, payment_models.PaymentCreate(
            student_id=student_id, amount=Decimal(amount), method=PaymentMethodEnum.CARD
        ))

    async def test_charge_links_payment(
        self,
        charge_service: ChargeService,
        payment_service: PaymentService,
        test_student_orm: db_models.Students,
        ctx
    ):
        payment = await self._record_payment(payment_service, ctx, test_student_orm.id)

        result = await charge_service.charge(ctx, individual_charge(test_student_orm.id, payment_id=payment.id))

        assert len(result.charge.payment_links) == 1
        assert result.charge.payment_links[0].amount == Decimal("3000")
        # payment 5000 minus charge 3000
        assert result.balance.amount == Decimal("2000")

        payment_after = await payment_service.get_payment(ctx, payment.id)
        assert payment_after.unallocated_amount == Decimal("2000")

    async def test_charge_exceeding_payment_is_rejected_atomically(
        self,
        charge_service: ChargeService,
        payment_service: PaymentService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        payment = await self._record_payment(payment_service, ctx, test_student_orm.id, amount="1000")

        with pytest.raises(InvalidAmount):
            await charge_service.charge(ctx, individual_charge(test_student_orm.id, payment_id=payment.id))

        assert await charge_service.list_charges(ctx, test_student_orm.id) == []
        assert (await ledger_service.get_balance(ctx, test_student_orm.id)).amount == Decimal("1000")

    async def test_payment_of_other_student_is_rejected(
        self,
        charge_service: ChargeService,
        payment_service: PaymentService,
        test_student_orm: db_models.Students,
        other_student_orm: db_models.Students,
        ctx
    ):
        payment = await self._record_payment(payment_service, ctx, other_student_orm.id)

        with pytest.raises(InvalidAmount):
            await charge_service.charge(ctx, individual_charge(test_student_orm.id, payment_id=payment.id))

    async def test_unknown_payment(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        ctx
    ):
        with pytest.raises(PaymentNotFound):
            await charge_service.charge(ctx, individual_charge(test_student_orm.id, payment_id=uuid4()))


@pytest.mark.anyio
class TestChargeDiscountUsage:

    async def test_charge_counts_binding_use(
        self,
        charge_service: ChargeService,
        db_session,
        test_student_orm: db_models.Students,
        ctx
    ):
        rule = factories.DiscountRuleFactory()
        binding = factories.StudentDiscountFactory(student_id=test_student_orm.id, discount_surcharge_id=rule.id, max_uses=1)
        await db_session.flush()

        await charge_service.charge(ctx, individual_charge(test_student_orm.id, amount="2700", discount_binding_ids=[binding.id]))
        await db_session.refresh(binding)
        assert binding.times_used == 1

        # the cap is reached; the second charge is refused as a whole
        with pytest.raises(InvalidAmount):
            await charge_service.charge(ctx, individual_charge(test_student_orm.id, amount="2700", discount_binding_ids=[binding.id]))
        assert len(await charge_service.list_charges(ctx, test_student_orm.id)) == 1


@pytest.mark.anyio
class TestCancelCharge:

    async def test_cancel_restores_balance_exactly(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        print("\n--- Testing cancel ---")
        await ledger_service.post(ctx, test_student_orm.id, Decimal("4000"), Decimal("2"), TransactionTypeEnum.CREDIT)
        before = await ledger_service.get_balance(ctx, test_student_orm.id)
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id))

        cancelled = await charge_service.cancel(ctx, issued.charge.id)

        assert cancelled.already_cancelled is False
        assert cancelled.charge.status == ChargeStatusEnum.CANCELLED
        assert cancelled.balance == before

    async def test_refund_entry(
        self,
        charge_service: ChargeService,
        db_session,
        test_student_orm: db_models.Students,
        ctx
    ):
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id, description="Математика, сентябрь"))
        cancelled = await charge_service.cancel(ctx, issued.charge.id)

        refund = await db_session.get(db_models.BalanceTransactions, cancelled.refund_transaction_id)
        assert refund.transaction_type == TransactionTypeEnum.REFUND.value
        assert refund.amount == Decimal("3000")
        assert refund.academic_hours == Decimal("1.5")
        assert refund.description == "Отмена списания: Математика, сентябрь"
        assert refund.tuition_charge_id == issued.charge.id

    async def test_charge_entries_net_to_minus_amount_then_zero(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id, amount="1250.75", hours="0.75"))
        assert await ledger_service.net_for_charge(ctx, issued.charge.id) == (Decimal("-1250.75"), Decimal("-0.75"))

        await charge_service.cancel(ctx, issued.charge.id)
        assert await ledger_service.net_for_charge(ctx, issued.charge.id) == (Decimal("0"), Decimal("0"))

    async def test_cancel_twice_refunds_once(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id))

        first = await charge_service.cancel(ctx, issued.charge.id)
        second = await charge_service.cancel(ctx, issued.charge.id)

        assert second.already_cancelled is True
        assert second.refund_transaction_id == first.refund_transaction_id
        assert second.balance == first.balance
        refunds = await ledger_service.list_transactions(ctx, test_student_orm.id, transaction_type=TransactionTypeEnum.REFUND)
        assert len(refunds) == 1

    async def test_cancel_keeps_charge_for_audit(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        ctx
    ):
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id))
        await charge_service.cancel(ctx, issued.charge.id)

        cancelled = await charge_service.list_charges(ctx, test_student_orm.id, status=ChargeStatusEnum.CANCELLED)
        active = await charge_service.list_charges(ctx, test_student_orm.id, status=ChargeStatusEnum.ACTIVE)
        assert [c.id for c in cancelled] == [issued.charge.id]
        assert active == []

    async def test_cancel_unknown_charge(self, charge_service: ChargeService, ctx):
        with pytest.raises(ChargeNotFound) as e:
            await charge_service.cancel(ctx, uuid4())
        assert e.value.status_code == 404

    async def test_cancel_charge_of_other_org(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        ctx,
        other_ctx
    ):
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id))
        with pytest.raises(ChargeNotFound):
            await charge_service.cancel(other_ctx, issued.charge.id)


@pytest.mark.anyio
class TestChargeAudit:

    async def test_audit_passes_for_issued_and_cancelled_charges(
        self,
        charge_service: ChargeService,
        ledger_service: LedgerService,
        test_student_orm: db_models.Students,
        ctx
    ):
        kept = await charge_service.charge(ctx, individual_charge(test_student_orm.id))
        dropped = await charge_service.charge(ctx, individual_charge(test_student_orm.id, amount="1500"))
        await charge_service.cancel(ctx, dropped.charge.id)

        report = await ledger_service.audit_charges(ctx)

        assert report.checked_charges == 2
        assert report.violations == []
        assert kept.charge.id != dropped.charge.id

    async def test_audit_flags_charge_without_matching_entries(
        self,
        ledger_service: LedgerService,
        db_session,
        test_student_orm: db_models.Students,
        ctx
    ):
        orphan = db_models.TuitionCharges(
            organization_id=ctx.organization_id,
            student_id=test_student_orm.id,
            learning_unit_type=LearningUnitTypeEnum.GROUP.value,
            learning_unit_id=uuid4(),
            amount=Decimal("900"),
            academic_hours=Decimal("1"),
            charge_date=datetime.date(2025, 9, 1),
            status=ChargeStatusEnum.ACTIVE.value
        )
        db_session.add(orphan)
        await db_session.flush()

        report = await ledger_service.audit_charges(ctx)

        assert len(report.violations) == 1
        violation = report.violations[0]
        assert violation.charge_id == orphan.id
        assert violation.expected_amount == Decimal("-900")
        assert violation.ledger_amount == Decimal("0")


@pytest.mark.anyio
class TestCancelLocking:

    async def test_charge_is_reread_after_student_lock(
        self,
        charge_service: ChargeService,
        test_student_orm: db_models.Students,
        monkeypatch,
        ctx
    ):
        """The status that decides whether to refund is read while holding the student lock."""
        issued = await charge_service.charge(ctx, individual_charge(test_student_orm.id))
        calls = []
        lock_student = charge_service.student_service.lock_student
        get_charge_orm = charge_service.get_charge_orm

        async def recording_lock(*args, **kwargs):
            calls.append("lock")
            return await lock_student(*args, **kwargs)

        async def recording_read(*args, **kwargs):
            calls.append("read")
            return await get_charge_orm(*args, **kwargs)

        monkeypatch.setattr(charge_service.student_service, "lock_student", recording_lock)
        monkeypatch.setattr(charge_service, "get_charge_orm", recording_read)

        await charge_service.cancel(ctx, issued.charge.id)

        assert calls[:3] == ["read", "lock", "read"]
