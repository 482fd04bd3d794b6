"""
SqlRegisterRepository -- SQLAlchemy implementation of RegisterRepository.

Responsibility:
    Maps immutable register records to ORM rows and back.  Column names
    equal record field names, so one pair of generic converters serves
    every register.

Architecture position:
    Services -- persistence boundary.  Works within a caller-owned
    ``Session``: flushes, never commits or rolls back.

Invariants enforced:
    - Uniqueness rules of ``RegisterRepository`` are checked with a query
      before insert; a constraint violation raised by a concurrent writer
      on flush is translated to DuplicateEntryError as well.
    - Enums are stored by value; Reg-B sections as JSON objects.
    - Returns records, never ORM instances.

Failure modes:
    - DuplicateEntryError: Uniqueness violated.  After a flush-time
      violation the caller must roll the session back.
    - EntryNotFoundError: ``update_*`` on an id with no row.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from excise_kernel.db.base import Base
from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    DutyLedgerEntry,
    DutyRateSchedule,
    MasterLedgerEntry,
    ProductionFeeEntry,
    SpiritReceiptEntry,
    TreasuryChallan,
    VatEvent,
)
from excise_kernel.exceptions import DuplicateEntryError, EntryNotFoundError
from excise_kernel.logging_config import get_logger
from excise_kernel.models import (
    BottlingProductionModel,
    CountryLiquorIssueModel,
    DutyLedgerModel,
    DutyRateModel,
    MasterLedgerModel,
    ProductionFeeModel,
    SpiritReceiptModel,
    TreasuryChallanModel,
    VatEventModel,
)
from excise_services.repository import RegisterRepository, in_date_range

logger = get_logger("services.sql_repository")


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return dict(value)
    return value


def to_model(model_cls: type[Base], record: Any) -> Base:
    """Build an ORM row from a record."""
    return model_cls(**{f.name: _column_value(getattr(record, f.name)) for f in fields(record)})


def to_record(record_cls: type, row: Base) -> Any:
    """Build a record from an ORM row; record construction coerces types."""
    return record_cls(**{f.name: getattr(row, f.name) for f in fields(record_cls)})


class SqlRegisterRepository(RegisterRepository):
    """
    Repository over a caller-owned SQLAlchemy session.

    Contract:
        Does NOT call ``session.commit()``; the caller controls
        transaction boundaries.
    """

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _flush(self, entry_type: str, key: str) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning("repository_integrity_conflict", extra={
                "entry_type": entry_type,
                "key": key,
            })
            raise DuplicateEntryError(entry_type, key) from exc

    def _ensure_unique(self, model_cls, entry_type: str, record, **criteria: Any) -> None:
        stmt = select(model_cls.id).where(
            *(getattr(model_cls, name) == value for name, value in criteria.items())
        )
        for row_id in self.session.execute(stmt).scalars():
            if row_id != record.id:
                raise DuplicateEntryError(
                    entry_type, "/".join(str(v) for v in criteria.values())
                )

    def _add(self, model_cls, entry_type: str, record):
        if self.session.get(model_cls, record.id) is not None:
            raise DuplicateEntryError(entry_type, str(record.id))
        self.session.add(to_model(model_cls, record))
        self._flush(entry_type, str(record.id))
        return record

    def _update(self, model_cls, entry_type: str, record):
        row = self.session.get(model_cls, record.id)
        if row is None:
            raise EntryNotFoundError(entry_type, str(record.id))
        for f in fields(record):
            setattr(row, f.name, _column_value(getattr(record, f.name)))
        self._flush(entry_type, str(record.id))
        return record

    def _get(self, model_cls, record_cls, entry_id):
        row = self.session.get(model_cls, entry_id)
        return to_record(record_cls, row) if row is not None else None

    def _list(self, stmt, record_cls) -> list:
        return [to_record(record_cls, row) for row in self.session.execute(stmt).scalars()]

    @staticmethod
    def _date_filter(stmt, column, start, end):
        if start is not None:
            stmt = stmt.where(column >= start)
        if end is not None:
            stmt = stmt.where(column <= end)
        return stmt

    # ------------------------------------------------------------------
    # Reg-76
    # ------------------------------------------------------------------

    def add_receipt(self, entry):
        return self._add(SpiritReceiptModel, "receipt", entry)

    def update_receipt(self, entry):
        return self._update(SpiritReceiptModel, "receipt", entry)

    def get_receipt(self, entry_id):
        return self._get(SpiritReceiptModel, SpiritReceiptEntry, entry_id)

    def list_receipts(self, start=None, end=None):
        stmt = self._date_filter(
            select(SpiritReceiptModel), SpiritReceiptModel.receipt_date, start, end
        ).order_by(SpiritReceiptModel.receipt_date)
        return self._list(stmt, SpiritReceiptEntry)

    # ------------------------------------------------------------------
    # Reg-74
    # ------------------------------------------------------------------

    def add_vat_event(self, event):
        return self._add(VatEventModel, "vat_event", event)

    def list_vat_events(self, start=None, end=None, event_type=None, batch_id=None):
        stmt = select(VatEventModel).order_by(VatEventModel.event_datetime)
        if event_type is not None:
            stmt = stmt.where(VatEventModel.event_type == _column_value(event_type))
        if batch_id is not None:
            stmt = stmt.where(VatEventModel.batch_id == batch_id)
        # Date bounds apply to the calendar date of the event timestamp
        return [
            event for event in self._list(stmt, VatEvent)
            if in_date_range(event.event_date, start, end)
        ]

    # ------------------------------------------------------------------
    # Reg-A
    # ------------------------------------------------------------------

    def add_production(self, entry):
        self._ensure_unique(
            BottlingProductionModel, "production", entry,
            batch_id=entry.batch_id, session_no=entry.session_no,
        )
        return self._add(BottlingProductionModel, "production", entry)

    def update_production(self, entry):
        self._ensure_unique(
            BottlingProductionModel, "production", entry,
            batch_id=entry.batch_id, session_no=entry.session_no,
        )
        return self._update(BottlingProductionModel, "production", entry)

    def get_production(self, entry_id):
        return self._get(BottlingProductionModel, BottlingProductionEntry, entry_id)

    def list_productions(self, start=None, end=None, status=None):
        stmt = self._date_filter(
            select(BottlingProductionModel),
            BottlingProductionModel.production_date, start, end,
        ).order_by(
            BottlingProductionModel.production_date,
            BottlingProductionModel.batch_id,
            BottlingProductionModel.session_no,
        )
        if status is not None:
            stmt = stmt.where(BottlingProductionModel.status == _column_value(status))
        return self._list(stmt, BottlingProductionEntry)

    # ------------------------------------------------------------------
    # Reg-B
    # ------------------------------------------------------------------

    def add_issue(self, entry):
        return self._add(CountryLiquorIssueModel, "issue", entry)

    def update_issue(self, entry):
        return self._update(CountryLiquorIssueModel, "issue", entry)

    def get_issue(self, entry_id):
        return self._get(CountryLiquorIssueModel, CountryLiquorIssueEntry, entry_id)

    def list_issues(self, start=None, end=None):
        stmt = self._date_filter(
            select(CountryLiquorIssueModel), CountryLiquorIssueModel.entry_date, start, end
        ).order_by(CountryLiquorIssueModel.entry_date)
        return self._list(stmt, CountryLiquorIssueEntry)

    # ------------------------------------------------------------------
    # Duty
    # ------------------------------------------------------------------

    def add_duty_rate(self, rate):
        self._ensure_unique(
            DutyRateModel, "duty_rate", rate,
            category=rate.category,
            subcategory=rate.subcategory,
            effective_from=rate.effective_from,
        )
        return self._add(DutyRateModel, "duty_rate", rate)

    def list_duty_rates(self, category=None):
        stmt = select(DutyRateModel).order_by(
            DutyRateModel.category, DutyRateModel.subcategory, DutyRateModel.effective_from
        )
        if category is not None:
            stmt = stmt.where(DutyRateModel.category == category)
        return self._list(stmt, DutyRateSchedule)

    def add_duty_entry(self, entry):
        self._ensure_unique(
            DutyLedgerModel, "duty_entry", entry,
            month_year=entry.month_year,
            category=entry.category,
            subcategory=entry.subcategory,
        )
        return self._add(DutyLedgerModel, "duty_entry", entry)

    def update_duty_entry(self, entry):
        return self._update(DutyLedgerModel, "duty_entry", entry)

    def get_duty_entry(self, entry_id):
        return self._get(DutyLedgerModel, DutyLedgerEntry, entry_id)

    def find_duty_entry(self, month_year, category, subcategory):
        row = self.session.execute(
            select(DutyLedgerModel).where(
                DutyLedgerModel.month_year == month_year,
                DutyLedgerModel.category == category,
                DutyLedgerModel.subcategory == subcategory,
            )
        ).scalar_one_or_none()
        return to_record(DutyLedgerEntry, row) if row is not None else None

    def list_duty_entries(self, month_year=None):
        stmt = select(DutyLedgerModel).order_by(
            DutyLedgerModel.month_year, DutyLedgerModel.category, DutyLedgerModel.subcategory
        )
        if month_year is not None:
            stmt = stmt.where(DutyLedgerModel.month_year == month_year)
        return self._list(stmt, DutyLedgerEntry)

    def add_challan(self, challan):
        self._ensure_unique(
            TreasuryChallanModel, "challan", challan,
            challan_number=challan.challan_number,
        )
        return self._add(TreasuryChallanModel, "challan", challan)

    def list_challans(self, duty_entry_id=None):
        stmt = select(TreasuryChallanModel).order_by(
            TreasuryChallanModel.challan_date, TreasuryChallanModel.challan_number
        )
        if duty_entry_id is not None:
            stmt = stmt.where(TreasuryChallanModel.duty_entry_id == duty_entry_id)
        return self._list(stmt, TreasuryChallan)

    # ------------------------------------------------------------------
    # Reg-78
    # ------------------------------------------------------------------

    def add_master_entry(self, entry):
        self._ensure_unique(
            MasterLedgerModel, "master_entry", entry, entry_date=entry.entry_date
        )
        return self._add(MasterLedgerModel, "master_entry", entry)

    def update_master_entry(self, entry):
        self._ensure_unique(
            MasterLedgerModel, "master_entry", entry, entry_date=entry.entry_date
        )
        return self._update(MasterLedgerModel, "master_entry", entry)

    def get_master_entry(self, entry_id):
        return self._get(MasterLedgerModel, MasterLedgerEntry, entry_id)

    def get_master_entry_by_date(self, entry_date):
        row = self.session.execute(
            select(MasterLedgerModel).where(MasterLedgerModel.entry_date == entry_date)
        ).scalar_one_or_none()
        return to_record(MasterLedgerEntry, row) if row is not None else None

    def list_master_entries(self, start=None, end=None):
        stmt = self._date_filter(
            select(MasterLedgerModel), MasterLedgerModel.entry_date, start, end
        ).order_by(MasterLedgerModel.entry_date)
        return self._list(stmt, MasterLedgerEntry)

    # ------------------------------------------------------------------
    # Production fees
    # ------------------------------------------------------------------

    def add_fee_entry(self, entry):
        self._ensure_unique(
            ProductionFeeModel, "fee_entry", entry, entry_date=entry.entry_date
        )
        return self._add(ProductionFeeModel, "fee_entry", entry)

    def update_fee_entry(self, entry):
        self._ensure_unique(
            ProductionFeeModel, "fee_entry", entry, entry_date=entry.entry_date
        )
        return self._update(ProductionFeeModel, "fee_entry", entry)

    def get_fee_entry_by_date(self, entry_date):
        row = self.session.execute(
            select(ProductionFeeModel).where(ProductionFeeModel.entry_date == entry_date)
        ).scalar_one_or_none()
        return to_record(ProductionFeeEntry, row) if row is not None else None

    def list_fee_entries(self, start=None, end=None):
        stmt = self._date_filter(
            select(ProductionFeeModel), ProductionFeeModel.entry_date, start, end
        ).order_by(ProductionFeeModel.entry_date)
        return self._list(stmt, ProductionFeeEntry)
