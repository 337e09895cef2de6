'''

'''
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.exceptions import StudentNotFound, InsufficientData
from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import StudentStatusEnum
from ..database.engine import get_db_session
from ..models.students import StudentCreate, StudentRead
from ..models.tenancy import TenantContext


class StudentService:
    """
    Owns the student registry. Every balance-mutating service goes through
    `lock_student` so that writes for one student are applied one at a time.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def get_student_orm(self, ctx: TenantContext, student_id: Optional[UUID]) -> db_models.Students:
        """Internal fetch scoped to the tenant. Raises StudentNotFound."""
        if student_id is None:
            raise InsufficientData("student_id is required.")

        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id,
            db_models.Students.organization_id == ctx.organization_id
        )
        result = await self.db.execute(stmt)
        student = result.scalars().first()
        if not student:
            log.warning(f"Student {student_id} not found in organization {ctx.organization_id}.")
            raise StudentNotFound(f"Student {student_id} not found.")
        return student

    async def lock_student(self, ctx: TenantContext, student_id: Optional[UUID]) -> db_models.Students:
        """
        Loads the student with a row lock (SELECT ... FOR UPDATE).
        The lock is held until the surrounding transaction ends.
        """
        if student_id is None:
            raise InsufficientData("student_id is required.")

        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id,
            db_models.Students.organization_id == ctx.organization_id
        ).with_for_update()
        result = await self.db.execute(stmt)
        student = result.scalars().first()
        if not student:
            log.warning(f"Cannot lock student {student_id}: not found in organization {ctx.organization_id}.")
            raise StudentNotFound(f"Student {student_id} not found.")
        return student

    async def enroll_student(self, ctx: TenantContext, data: StudentCreate) -> StudentRead:
        log.info(f"Actor {ctx.actor_id} enrolling student '{data.first_name}' in organization {ctx.organization_id}.")
        student = db_models.Students(
            organization_id=ctx.organization_id,
            first_name=data.first_name,
            last_name=data.last_name,
            currency=data.currency or settings.DEFAULT_CURRENCY,
            status=StudentStatusEnum.ACTIVE.value
        )
        self.db.add(student)
        await self.db.flush()
        await self.db.refresh(student)
        return StudentRead.model_validate(student)

    async def get_student(self, ctx: TenantContext, student_id: UUID) -> StudentRead:
        student = await self.get_student_orm(ctx, student_id)
        return StudentRead.model_validate(student)

    async def list_students(self, ctx: TenantContext, include_archived: bool = False) -> list[StudentRead]:
        stmt = select(db_models.Students).filter(
            db_models.Students.organization_id == ctx.organization_id
        )
        if not include_archived:
            stmt = stmt.filter(db_models.Students.status == StudentStatusEnum.ACTIVE.value)
        stmt = stmt.order_by(db_models.Students.first_name, db_models.Students.last_name)

        result = await self.db.execute(stmt)
        return [StudentRead.model_validate(s) for s in result.scalars().all()]

    async def archive_student(self, ctx: TenantContext, student_id: UUID) -> StudentRead:
        """Students are never deleted; their ledger stays readable after archiving."""
        log.info(f"Actor {ctx.actor_id} archiving student {student_id}.")
        student = await self.lock_student(ctx, student_id)
        student.status = StudentStatusEnum.ARCHIVED.value
        await self.db.flush()
        return StudentRead.model_validate(student)
