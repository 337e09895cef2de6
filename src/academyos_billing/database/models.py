from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Enum, ForeignKeyConstraint, Index, Integer, Numeric, PrimaryKeyConstraint, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    pass



class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='students_pkey'),
        Index('idx_students_organization', 'organization_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[Optional[str]] = mapped_column(Text)
    currency: Mapped[str] = mapped_column(Text, default='RUB')
    status: Mapped[str] = mapped_column(Enum('active', 'archived', name='student_status_enum'), default='active')
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    balance_transactions: Mapped[list['BalanceTransactions']] = relationship('BalanceTransactions', back_populates='student')
    tuition_charges: Mapped[list['TuitionCharges']] = relationship('TuitionCharges', back_populates='student')
    payments: Mapped[list['Payments']] = relationship('Payments', back_populates='student')
    individual_lessons: Mapped[list['IndividualLessons']] = relationship('IndividualLessons', back_populates='student')
    discount_bindings: Mapped[list['StudentDiscountsSurcharges']] = relationship('StudentDiscountsSurcharges', back_populates='student')


class Payments(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], name='payments_student_id_fkey'),
        PrimaryKeyConstraint('id', name='payments_pkey'),
        CheckConstraint('amount >= 0 AND academic_hours >= 0', name='payments_non_negative'),
        Index('idx_payments_student', 'organization_id', 'student_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    academic_hours: Mapped[decimal.Decimal] = mapped_column(Numeric(8, 2), default=decimal.Decimal('0'))
    method: Mapped[str] = mapped_column(Enum('cash', 'card', 'transfer', 'online', name='payment_method_enum'), default='cash')
    payment_date: Mapped[datetime.date] = mapped_column(Date)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='payments')
    tuition_links: Mapped[list['PaymentTuitionLinks']] = relationship('PaymentTuitionLinks', back_populates='payment')


class TuitionCharges(Base):
    __tablename__ = 'tuition_charges'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], name='tuition_charges_student_id_fkey'),
        PrimaryKeyConstraint('id', name='tuition_charges_pkey'),
        CheckConstraint('amount >= 0 AND academic_hours >= 0', name='tuition_charges_non_negative'),
        Index('idx_tuition_charges_student', 'organization_id', 'student_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    learning_unit_type: Mapped[str] = mapped_column(Enum('group', 'individual', name='learning_unit_type_enum'))
    learning_unit_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(Text, default='RUB')
    academic_hours: Mapped[decimal.Decimal] = mapped_column(Numeric(8, 2))
    charge_date: Mapped[datetime.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Enum('active', 'cancelled', 'refunded', name='charge_status_enum'), default='active')
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow, onupdate=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='tuition_charges')
    payment_links: Mapped[list['PaymentTuitionLinks']] = relationship('PaymentTuitionLinks', back_populates='tuition_charge')


class PaymentTuitionLinks(Base):
    __tablename__ = 'payment_tuition_link'
    __table_args__ = (
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='payment_tuition_link_payment_id_fkey'),
        ForeignKeyConstraint(['tuition_charge_id'], ['tuition_charges.id'], name='payment_tuition_link_tuition_charge_id_fkey'),
        PrimaryKeyConstraint('id', name='payment_tuition_link_pkey'),
        CheckConstraint('amount > 0', name='payment_tuition_link_positive'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    payment_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    tuition_charge_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    payment: Mapped['Payments'] = relationship('Payments', back_populates='tuition_links')
    tuition_charge: Mapped['TuitionCharges'] = relationship('TuitionCharges', back_populates='payment_links')


class IndividualLessons(Base):
    __tablename__ = 'individual_lessons'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], name='individual_lessons_student_id_fkey'),
        PrimaryKeyConstraint('id', name='individual_lessons_pkey'),
        CheckConstraint('default_duration > 0', name='individual_lessons_duration_positive'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    subject: Mapped[str] = mapped_column(Text)
    teacher_name: Mapped[Optional[str]] = mapped_column(Text)
    default_duration: Mapped[int] = mapped_column(Integer, default=60)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='individual_lessons')
    sessions: Mapped[list['IndividualLessonSessions']] = relationship(
        'IndividualLessonSessions',
        back_populates='individual_lesson',
        order_by='IndividualLessonSessions.lesson_date'
    )


class IndividualLessonSessions(Base):
    __tablename__ = 'individual_lesson_sessions'
    __table_args__ = (
        ForeignKeyConstraint(['individual_lesson_id'], ['individual_lessons.id'], ondelete='CASCADE', name='individual_lesson_sessions_lesson_id_fkey'),
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='individual_lesson_sessions_payment_id_fkey'),
        PrimaryKeyConstraint('id', name='individual_lesson_sessions_pkey'),
        UniqueConstraint('individual_lesson_id', 'lesson_date', name='individual_lesson_sessions_lesson_date_key'),
        CheckConstraint('duration > 0', name='individual_lesson_sessions_duration_positive'),
        CheckConstraint('paid_minutes >= 0 AND paid_minutes <= duration', name='individual_lesson_sessions_paid_minutes_range'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    individual_lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    lesson_date: Mapped[datetime.date] = mapped_column(Date)
    duration: Mapped[int] = mapped_column(Integer, default=60)
    paid_minutes: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(Enum('scheduled', 'completed', 'cancelled', 'free', 'rescheduled', name='session_status_enum'), default='scheduled')
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow, onupdate=_utcnow)

    individual_lesson: Mapped['IndividualLessons'] = relationship('IndividualLessons', back_populates='sessions')


class BalanceTransactions(Base):
    __tablename__ = 'balance_transactions'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], name='balance_transactions_student_id_fkey'),
        ForeignKeyConstraint(['payment_id'], ['payments.id'], name='balance_transactions_payment_id_fkey'),
        ForeignKeyConstraint(['lesson_session_id'], ['individual_lesson_sessions.id'], name='balance_transactions_lesson_session_id_fkey'),
        ForeignKeyConstraint(['tuition_charge_id'], ['tuition_charges.id'], name='balance_transactions_tuition_charge_id_fkey'),
        PrimaryKeyConstraint('id', name='balance_transactions_pkey'),
        Index('idx_balance_transactions_student', 'organization_id', 'student_id'),
        Index('idx_balance_transactions_charge', 'tuition_charge_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    academic_hours: Mapped[decimal.Decimal] = mapped_column(Numeric(8, 2))
    transaction_type: Mapped[str] = mapped_column(Enum('payment', 'lesson_charge', 'refund', 'bonus', 'adjustment', 'debit', 'credit', 'transfer_in', name='transaction_type_enum'))
    description: Mapped[Optional[str]] = mapped_column(Text)
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    lesson_session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    tuition_charge_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='balance_transactions')


class DiscountsSurcharges(Base):
    __tablename__ = 'discounts_surcharges'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='discounts_surcharges_pkey'),
        CheckConstraint('value >= 0', name='discounts_surcharges_value_non_negative'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(Enum('discount', 'surcharge', name='discount_type_enum'))
    value_type: Mapped[str] = mapped_column(Enum('fixed', 'percent', name='discount_value_type_enum'))
    value: Mapped[decimal.Decimal] = mapped_column(Numeric(12, 2))
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_permanent: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_apply: Mapped[bool] = mapped_column(Boolean, default=False)
    apply_priority: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow, onupdate=_utcnow)

    student_bindings: Mapped[list['StudentDiscountsSurcharges']] = relationship('StudentDiscountsSurcharges', back_populates='discount_surcharge')


class StudentDiscountsSurcharges(Base):
    __tablename__ = 'student_discounts_surcharges'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], name='student_discounts_surcharges_student_id_fkey'),
        ForeignKeyConstraint(['discount_surcharge_id'], ['discounts_surcharges.id'], ondelete='CASCADE', name='student_discounts_surcharges_discount_surcharge_id_fkey'),
        PrimaryKeyConstraint('id', name='student_discounts_surcharges_pkey'),
        CheckConstraint('times_used >= 0', name='student_discounts_surcharges_times_used_non_negative'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    discount_surcharge_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    is_permanent: Mapped[bool] = mapped_column(Boolean, default=False)
    times_used: Mapped[int] = mapped_column(Integer, default=0)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    valid_from: Mapped[Optional[datetime.date]] = mapped_column(Date)
    valid_until: Mapped[Optional[datetime.date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=_utcnow)

    student: Mapped['Students'] = relationship('Students', back_populates='discount_bindings')
    discount_surcharge: Mapped['DiscountsSurcharges'] = relationship('DiscountsSurcharges', back_populates='student_bindings')
