'''

'''
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.exceptions import DiscountNotFound, InvalidAmount
from ..common.logger import log
from ..core.pricing import PricingRule, apply_rules, order_rules
from ..database import models as db_models
from ..database.db_enums import DiscountTypeEnum
from ..database.engine import get_db_session, atomic
from ..models import pricing as pricing_models
from ..models.tenancy import TenantContext
from .student_service import StudentService


class PricingService:
    """
    Discount/surcharge catalogue plus the price calculator that folds a
    student's applicable rules over a base price.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ):
        self.db = db
        self.student_service = student_service

    # --- 1. Catalogue ---

    async def get_rule_orm(self, ctx: TenantContext, rule_id: UUID) -> db_models.DiscountsSurcharges:
        stmt = select(db_models.DiscountsSurcharges).filter(
            db_models.DiscountsSurcharges.id == rule_id,
            db_models.DiscountsSurcharges.organization_id == ctx.organization_id
        )
        rule = (await self.db.execute(stmt)).scalars().first()
        if not rule:
            log.warning(f"Discount/surcharge {rule_id} not found in organization {ctx.organization_id}.")
            raise DiscountNotFound(f"Discount/surcharge {rule_id} not found.")
        return rule

    async def create_rule(self, ctx: TenantContext, data: pricing_models.DiscountRuleCreate) -> pricing_models.DiscountRuleRead:
        log.info(f"Actor {ctx.actor_id} creating {data.type.value} '{data.name}'.")
        rule = db_models.DiscountsSurcharges(
            organization_id=ctx.organization_id,
            name=data.name,
            type=data.type.value,
            value_type=data.value_type.value,
            value=data.value,
            description=data.description,
            is_permanent=data.is_permanent,
            auto_apply=data.auto_apply,
            apply_priority=data.apply_priority,
            is_active=data.is_active
        )
        self.db.add(rule)
        await self.db.flush()
        await self.db.refresh(rule)
        return pricing_models.DiscountRuleRead.model_validate(rule)

    async def update_rule(
        self,
        ctx: TenantContext,
        rule_id: UUID,
        data: pricing_models.DiscountRuleUpdate
    ) -> pricing_models.DiscountRuleRead:
        rule = await self.get_rule_orm(ctx, rule_id)
        # description is the only nullable field; a null elsewhere means "leave as is"
        changes = {
            field: value for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "description"
        }
        log.info(f"Actor {ctx.actor_id} updating discount/surcharge {rule_id}: {sorted(changes)}")
        for field, value in changes.items():
            setattr(rule, field, value)
        await self.db.flush()
        await self.db.refresh(rule)
        return pricing_models.DiscountRuleRead.model_validate(rule)

    async def list_rules(
        self,
        ctx: TenantContext,
        rule_type: Optional[DiscountTypeEnum] = None,
        include_inactive: bool = False
    ) -> list[pricing_models.DiscountRuleRead]:
        stmt = select(db_models.DiscountsSurcharges).filter(
            db_models.DiscountsSurcharges.organization_id == ctx.organization_id
        )
        if rule_type is not None:
            stmt = stmt.filter(db_models.DiscountsSurcharges.type == DiscountTypeEnum(rule_type).value)
        if not include_inactive:
            stmt = stmt.filter(db_models.DiscountsSurcharges.is_active.is_(True))
        stmt = stmt.order_by(db_models.DiscountsSurcharges.apply_priority, db_models.DiscountsSurcharges.name)

        result = await self.db.execute(stmt)
        return [pricing_models.DiscountRuleRead.model_validate(r) for r in result.scalars().all()]

    # --- 2. Student bindings ---

    async def _get_binding_orm(self, ctx: TenantContext, binding_id: UUID) -> db_models.StudentDiscountsSurcharges:
        stmt = select(db_models.StudentDiscountsSurcharges).options(
            selectinload(db_models.StudentDiscountsSurcharges.discount_surcharge)
        ).filter(
            db_models.StudentDiscountsSurcharges.id == binding_id,
            db_models.StudentDiscountsSurcharges.organization_id == ctx.organization_id
        ).execution_options(populate_existing=True)
        binding = (await self.db.execute(stmt)).scalars().first()
        if not binding:
            log.warning(f"Student discount binding {binding_id} not found in organization {ctx.organization_id}.")
            raise DiscountNotFound(f"Student discount binding {binding_id} not found.")
        return binding

    async def assign_to_student(
        self,
        ctx: TenantContext,
        student_id: UUID,
        data: pricing_models.StudentDiscountCreate
    ) -> pricing_models.StudentDiscountRead:
        await self.student_service.get_student_orm(ctx, student_id)
        rule = await self.get_rule_orm(ctx, data.discount_surcharge_id)
        log.info(f"Actor {ctx.actor_id} assigning '{rule.name}' to student {student_id}.")

        binding = db_models.StudentDiscountsSurcharges(
            organization_id=ctx.organization_id,
            student_id=student_id,
            discount_surcharge_id=rule.id,
            is_permanent=data.is_permanent,
            times_used=0,
            max_uses=data.max_uses,
            valid_from=data.valid_from,
            valid_until=data.valid_until,
            notes=data.notes,
            created_by=ctx.actor_id
        )
        self.db.add(binding)
        await self.db.flush()

        binding = await self._get_binding_orm(ctx, binding.id)
        return pricing_models.StudentDiscountRead.model_validate(binding)

    async def list_student_bindings(self, ctx: TenantContext, student_id: UUID) -> list[pricing_models.StudentDiscountRead]:
        await self.student_service.get_student_orm(ctx, student_id)
        stmt = select(db_models.StudentDiscountsSurcharges).options(
            selectinload(db_models.StudentDiscountsSurcharges.discount_surcharge)
        ).filter(
            db_models.StudentDiscountsSurcharges.organization_id == ctx.organization_id,
            db_models.StudentDiscountsSurcharges.student_id == student_id
        ).order_by(db_models.StudentDiscountsSurcharges.created_at)
        result = await self.db.execute(stmt)
        return [pricing_models.StudentDiscountRead.model_validate(b) for b in result.scalars().all()]

    async def unassign(self, ctx: TenantContext, binding_id: UUID) -> None:
        """Bindings are configuration, not history: unassigning deletes the row."""
        binding = await self._get_binding_orm(ctx, binding_id)
        log.info(f"Actor {ctx.actor_id} removing binding {binding_id} from student {binding.student_id}.")
        await self.db.delete(binding)
        await self.db.flush()

    async def record_usage(self, ctx: TenantContext, student_id: UUID, binding_ids: list[UUID]) -> None:
        """
        Counts one use of each binding. Called by the charge issuer inside
        its own atomic block, with the student already locked.
        """
        for binding_id in binding_ids:
            binding = await self._get_binding_orm(ctx, binding_id)
            if binding.student_id != student_id:
                log.warning(f"Binding {binding_id} does not belong to student {student_id}.")
                raise DiscountNotFound(f"Student discount binding {binding_id} not found for this student.")
            if binding.max_uses is not None and binding.times_used >= binding.max_uses:
                raise InvalidAmount(f"Discount binding {binding_id} has already been used {binding.times_used} times.")
            binding.times_used += 1
        await self.db.flush()

    # --- 3. Price calculation ---

    async def get_applicable_rules(
        self,
        ctx: TenantContext,
        student_id: UUID,
        discount_ids: Optional[list[UUID]] = None,
        on_date: Optional[date] = None
    ) -> list[PricingRule]:
        """
        The student's rules that can price a charge today: binding inside its
        validity window and under its usage cap, rule active. Sorted by
        apply_priority.
        """
        on_date = on_date or date.today()
        binding = db_models.StudentDiscountsSurcharges
        rule = db_models.DiscountsSurcharges

        stmt = select(rule).join(
            binding, binding.discount_surcharge_id == rule.id
        ).filter(
            binding.organization_id == ctx.organization_id,
            binding.student_id == student_id,
            rule.is_active.is_(True),
            or_(binding.valid_from.is_(None), binding.valid_from <= on_date),
            or_(binding.valid_until.is_(None), binding.valid_until >= on_date),
            or_(binding.max_uses.is_(None), binding.times_used < binding.max_uses)
        )
        if discount_ids is not None:
            stmt = stmt.filter(rule.id.in_(discount_ids))

        rules = (await self.db.execute(stmt)).scalars().unique().all()
        return order_rules(PricingRule.model_validate(r) for r in rules)

    async def calculate(
        self,
        ctx: TenantContext,
        request: pricing_models.PriceCalculationRequest
    ) -> pricing_models.PriceCalculation:
        if request.base_price < Decimal("0"):
            raise InvalidAmount("The base price cannot be negative.")

        await self.student_service.get_student_orm(ctx, request.student_id)
        rules = await self.get_applicable_rules(ctx, request.student_id, request.discount_ids, request.on_date)

        calculation = apply_rules(request.base_price, rules)
        log.info(
            f"Priced {calculation.base_price} -> {calculation.final_price} for student "
            f"{request.student_id} using {len(rules)} rule(s)."
        )
        return calculation
