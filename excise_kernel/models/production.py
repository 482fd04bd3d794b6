"""
Module: excise_kernel.models.production
Responsibility: ORM persistence for Reg-A bottling production and Reg-B
    country-liquor issue entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (batch_id, session_no) is unique for Reg-A entries.
    - Reg-B bottle counts are stored per section as JSON objects keyed by
      combination ("750_50"); totals are stored as computed.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from excise_kernel.db.base import TrackedBase, UUIDString


class BottlingProductionModel(TrackedBase):
    """Reg-A row: one bottling session of a batch."""

    __tablename__ = "rega_productions"

    __table_args__ = (
        UniqueConstraint("batch_id", "session_no", name="uq_rega_batch_session"),
        Index("idx_rega_production_date", "production_date"),
        Index("idx_rega_status", "status"),
    )

    batch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    session_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNED")
    production_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    bottles_750: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bottles_600: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bottles_500: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bottles_375: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bottles_300: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bottles_180: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_strength: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    mfm_total_bl: Mapped[Decimal | None] = mapped_column(nullable=True)
    mfm_total_al: Mapped[Decimal | None] = mapped_column(nullable=True)
    mfm_density: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    mfm_strength: Mapped[Decimal | None] = mapped_column(nullable=True)

    spirit_bottled_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    spirit_bottled_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    difference_found_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    production_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    production_increase_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    allowable_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    chargeable_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    percentage_wastage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_chargeable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    finalized_by_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BottlingProduction {self.batch_id}#{self.session_no} {self.status}>"


class CountryLiquorIssueModel(TrackedBase):
    """Reg-B row: daily bottle inventory across the 24 size/strength combinations."""

    __tablename__ = "regb_issues"

    __table_args__ = (
        Index("idx_regb_entry_date", "entry_date"),
    )

    entry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    source_production_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    opening: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    receipt: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    issue: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    wastage: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

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
    production_fees: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CountryLiquorIssue {self.entry_date} issue={self.issue_bl} BL>"
