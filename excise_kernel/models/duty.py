"""
Module: excise_kernel.models.duty
Responsibility: ORM persistence for duty rate schedules, monthly duty ledger
    rows and treasury challans.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One rate row per (category, subcategory, effective_from).
    - One ledger row per (month_year, category, subcategory).
    - Challan numbers are unique.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from excise_kernel.db.base import TrackedBase, UUIDString


class DutyRateModel(TrackedBase):
    """Per-unit duty rate effective over a date range."""

    __tablename__ = "duty_rates"

    __table_args__ = (
        UniqueConstraint(
            "category", "subcategory", "effective_from", name="uq_duty_rate_range"
        ),
        Index("idx_duty_rate_lookup", "category", "subcategory", "is_active"),
    )

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    subcategory: Mapped[str] = mapped_column(String(50), nullable=False)
    rate_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    unit: Mapped[str] = mapped_column(String(10), nullable=False, default="BL")

    def __repr__(self) -> str:
        return f"<DutyRate {self.category}/{self.subcategory} = {self.rate_per_unit}>"


class DutyLedgerModel(TrackedBase):
    """Monthly duty accrual and payment position for one category/subcategory."""

    __tablename__ = "duty_ledger"

    __table_args__ = (
        UniqueConstraint(
            "month_year", "category", "subcategory", name="uq_duty_ledger_month"
        ),
    )

    month_year: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    subcategory: Mapped[str] = mapped_column(String(50), nullable=False)
    total_units_issued: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    applied_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    duty_accrued: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_payments: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    closing_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<DutyLedger {self.month_year} {self.subcategory} {self.status}>"


class TreasuryChallanModel(TrackedBase):
    """Treasury payment against a duty ledger row."""

    __tablename__ = "treasury_challans"

    challan_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    challan_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    duty_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("duty_ledger.id"), nullable=True
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<TreasuryChallan {self.challan_number} {self.amount_paid}>"
