"""
Module: excise_kernel.models.production_fee
Responsibility: ORM persistence for the daily production fee account.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entry_date is unique: one fee row per day.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Date, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from excise_kernel.db.base import TrackedBase


class ProductionFeeModel(TrackedBase):
    """Fees on bottled BL debited against challan deposits."""

    __tablename__ = "production_fee_ledger"

    entry_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)

    # Bottles per combination key ("750_50")
    production: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    total_production_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    fees_debited: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    challan_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    challan_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_credited: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    closing_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    production_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ProductionFee {self.entry_date} closing={self.closing_balance}>"
