"""
Module: excise_kernel.models.master_ledger
Responsibility: ORM persistence for the Reg-78 master spirit ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entry_date is unique: one master entry per day.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from excise_kernel.db.base import TrackedBase


class MasterLedgerModel(TrackedBase):
    """Reg-78 daily rollup of all source registers."""

    __tablename__ = "reg78_master_ledger"

    entry_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)

    opening_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    opening_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    receipt_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    receipt_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    issue_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    issue_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    wastage_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    closing_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    closing_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    actual_closing_bl: Mapped[Decimal | None] = mapped_column(nullable=True)
    # Variance is a percentage
    variance: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reconciled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    receipt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    production_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vat_event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<MasterLedger {self.entry_date} closing={self.closing_bl} BL>"
