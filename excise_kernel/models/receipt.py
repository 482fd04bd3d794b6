"""
Module: excise_kernel.models.receipt
Responsibility: ORM persistence for Reg-76 spirit receipts and Reg-74 vat
    events.  Derived figures are stored verbatim as computed by the engines.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from excise_kernel.db.base import TrackedBase


class SpiritReceiptModel(TrackedBase):
    """Reg-76 row: tanker delivery with weighbridge readings and transit wastage."""

    __tablename__ = "reg76_receipts"

    __table_args__ = (
        Index("idx_reg76_receipt_date", "receipt_date"),
        Index("idx_reg76_permit", "permit_no"),
    )

    receipt_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    permit_no: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    exporting_distillery: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    invoice_no: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    vehicle_no: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    nature_of_spirit: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    storage_vat: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    dispatch_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    arrival_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    advised_bl: Mapped[Decimal | None] = mapped_column(nullable=True)
    advised_al: Mapped[Decimal | None] = mapped_column(nullable=True)
    advised_strength: Mapped[Decimal | None] = mapped_column(nullable=True)
    advised_mass_kg: Mapped[Decimal | None] = mapped_column(nullable=True)
    laden_weight_kg: Mapped[Decimal | None] = mapped_column(nullable=True)
    unladen_weight_kg: Mapped[Decimal | None] = mapped_column(nullable=True)
    # Densities carry 4 places (gm/cc)
    avg_density: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    avg_temperature: Mapped[Decimal | None] = mapped_column(nullable=True)
    received_strength: Mapped[Decimal | None] = mapped_column(nullable=True)

    received_mass_kg: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    received_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    received_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    transit_wastage_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    transit_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    allowable_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    chargeable_wastage_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    percentage_wastage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_chargeable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    transit_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    amendment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SpiritReceipt {self.permit_no} {self.receipt_date} {self.received_bl} BL>"


class VatEventModel(TrackedBase):
    """Reg-74 row: one vat operation (adjustment, production issue, ...)."""

    __tablename__ = "reg74_vat_events"

    __table_args__ = (
        Index("idx_reg74_event_datetime", "event_datetime"),
        Index("idx_reg74_batch", "batch_id"),
    )

    vat_code: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    event_datetime: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    adjustment_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    wastage_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    qty_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    qty_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    mfm_bl: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    mfm_al: Mapped[Decimal | None] = mapped_column(nullable=True)
    mfm_strength: Mapped[Decimal | None] = mapped_column(nullable=True)
    mfm_density: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    dead_stock_al: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<VatEvent {self.vat_code} {self.event_type} {self.event_datetime}>"
