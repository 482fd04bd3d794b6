"""
RegisterRepository -- persistence interface for the excise registers.

Responsibility:
    Declares the storage operations the services need (add, get, update
    and date-range listing for every register) and provides an in-memory
    implementation used by tests and by callers embedding the kernel
    without a database.

Architecture position:
    Services -- persistence boundary.  Services depend on the abstract
    ``RegisterRepository``; ``SqlRegisterRepository`` (sql_repository.py)
    is the SQLAlchemy implementation.

Invariants enforced:
    - Master ledger entries are unique by entry_date.
    - Production fee entries are unique by entry_date.
    - Challan numbers are unique.
    - Productions are unique by (batch_id, session_no).
    - Duty ledger rows are unique by (month_year, category, subcategory).
    - Duty rates are unique by (category, subcategory, effective_from).
    - Records are immutable; ``update_*`` replaces the stored record.

Failure modes:
    - DuplicateEntryError: A uniqueness rule is violated on add or update.
    - EntryNotFoundError: ``update_*`` on an id that was never added.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Hashable, Iterable, TypeVar
from uuid import UUID

from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    DutyLedgerEntry,
    DutyRateSchedule,
    MasterLedgerEntry,
    ProductionFeeEntry,
    ProductionStatus,
    SpiritReceiptEntry,
    TreasuryChallan,
    VatEvent,
    VatEventType,
)
from excise_kernel.exceptions import DuplicateEntryError, EntryNotFoundError

R = TypeVar("R")


def in_date_range(value: date | None, start: date | None, end: date | None) -> bool:
    """Inclusive range check; an undated record matches only an open range."""
    if start is None and end is None:
        return True
    if value is None:
        return False
    if start is not None and value < start:
        return False
    return end is None or value <= end


class RegisterRepository(ABC):
    """Storage for register records.  Implementations never commit."""

    # Reg-76
    @abstractmethod
    def add_receipt(self, entry: SpiritReceiptEntry) -> SpiritReceiptEntry: ...

    @abstractmethod
    def update_receipt(self, entry: SpiritReceiptEntry) -> SpiritReceiptEntry: ...

    @abstractmethod
    def get_receipt(self, entry_id: UUID) -> SpiritReceiptEntry | None: ...

    @abstractmethod
    def list_receipts(
        self, start: date | None = None, end: date | None = None
    ) -> list[SpiritReceiptEntry]: ...

    # Reg-74
    @abstractmethod
    def add_vat_event(self, event: VatEvent) -> VatEvent: ...

    @abstractmethod
    def list_vat_events(
        self,
        start: date | None = None,
        end: date | None = None,
        event_type: VatEventType | None = None,
        batch_id: str | None = None,
    ) -> list[VatEvent]: ...

    # Reg-A
    @abstractmethod
    def add_production(self, entry: BottlingProductionEntry) -> BottlingProductionEntry: ...

    @abstractmethod
    def update_production(self, entry: BottlingProductionEntry) -> BottlingProductionEntry: ...

    @abstractmethod
    def get_production(self, entry_id: UUID) -> BottlingProductionEntry | None: ...

    @abstractmethod
    def list_productions(
        self,
        start: date | None = None,
        end: date | None = None,
        status: ProductionStatus | None = None,
    ) -> list[BottlingProductionEntry]: ...

    # Reg-B
    @abstractmethod
    def add_issue(self, entry: CountryLiquorIssueEntry) -> CountryLiquorIssueEntry: ...

    @abstractmethod
    def update_issue(self, entry: CountryLiquorIssueEntry) -> CountryLiquorIssueEntry: ...

    @abstractmethod
    def get_issue(self, entry_id: UUID) -> CountryLiquorIssueEntry | None: ...

    @abstractmethod
    def list_issues(
        self, start: date | None = None, end: date | None = None
    ) -> list[CountryLiquorIssueEntry]: ...

    # Duty
    @abstractmethod
    def add_duty_rate(self, rate: DutyRateSchedule) -> DutyRateSchedule: ...

    @abstractmethod
    def list_duty_rates(self, category: str | None = None) -> list[DutyRateSchedule]: ...

    @abstractmethod
    def add_duty_entry(self, entry: DutyLedgerEntry) -> DutyLedgerEntry: ...

    @abstractmethod
    def update_duty_entry(self, entry: DutyLedgerEntry) -> DutyLedgerEntry: ...

    @abstractmethod
    def get_duty_entry(self, entry_id: UUID) -> DutyLedgerEntry | None: ...

    @abstractmethod
    def find_duty_entry(
        self, month_year: date, category: str, subcategory: str
    ) -> DutyLedgerEntry | None: ...

    @abstractmethod
    def list_duty_entries(self, month_year: date | None = None) -> list[DutyLedgerEntry]: ...

    @abstractmethod
    def add_challan(self, challan: TreasuryChallan) -> TreasuryChallan: ...

    @abstractmethod
    def list_challans(self, duty_entry_id: UUID | None = None) -> list[TreasuryChallan]: ...

    # Reg-78
    @abstractmethod
    def add_master_entry(self, entry: MasterLedgerEntry) -> MasterLedgerEntry: ...

    @abstractmethod
    def update_master_entry(self, entry: MasterLedgerEntry) -> MasterLedgerEntry: ...

    @abstractmethod
    def get_master_entry(self, entry_id: UUID) -> MasterLedgerEntry | None: ...

    @abstractmethod
    def get_master_entry_by_date(self, entry_date: date) -> MasterLedgerEntry | None: ...

    @abstractmethod
    def list_master_entries(
        self, start: date | None = None, end: date | None = None
    ) -> list[MasterLedgerEntry]: ...

    # Production fees
    @abstractmethod
    def add_fee_entry(self, entry: ProductionFeeEntry) -> ProductionFeeEntry: ...

    @abstractmethod
    def update_fee_entry(self, entry: ProductionFeeEntry) -> ProductionFeeEntry: ...

    @abstractmethod
    def get_fee_entry_by_date(self, entry_date: date) -> ProductionFeeEntry | None: ...

    @abstractmethod
    def list_fee_entries(
        self, start: date | None = None, end: date | None = None
    ) -> list[ProductionFeeEntry]: ...


class _Table:
    """Id-keyed store with an optional unique key."""

    def __init__(self, entry_type: str, unique_key: Callable[[R], Hashable] | None = None):
        self.entry_type = entry_type
        self._unique_key = unique_key
        self._rows: dict[UUID, object] = {}

    def _check_unique(self, record) -> None:
        if self._unique_key is None:
            return
        key = self._unique_key(record)
        for row_id, row in self._rows.items():
            if row_id != record.id and self._unique_key(row) == key:
                raise DuplicateEntryError(self.entry_type, str(key))

    def add(self, record):
        if record.id in self._rows:
            raise DuplicateEntryError(self.entry_type, str(record.id))
        self._check_unique(record)
        self._rows[record.id] = record
        return record

    def update(self, record):
        if record.id not in self._rows:
            raise EntryNotFoundError(self.entry_type, str(record.id))
        self._check_unique(record)
        self._rows[record.id] = record
        return record

    def get(self, entry_id: UUID):
        return self._rows.get(entry_id)

    def select(self, predicate: Callable[[R], bool], sort_key: Callable[[R], object]) -> list:
        return sorted((r for r in self._rows.values() if predicate(r)), key=sort_key)

    def values(self) -> Iterable:
        return self._rows.values()


def _date_sort(value: date | None) -> date:
    return value or date.min


class InMemoryRegisterRepository(RegisterRepository):
    """Dict-backed repository.  Not thread-safe."""

    def __init__(self) -> None:
        self._receipts = _Table("receipt")
        self._vat_events = _Table("vat_event")
        self._productions = _Table(
            "production", lambda e: (e.batch_id, e.session_no)
        )
        self._issues = _Table("issue")
        self._duty_rates = _Table(
            "duty_rate", lambda r: (r.category, r.subcategory, r.effective_from)
        )
        self._duty_entries = _Table(
            "duty_entry", lambda e: (e.month_year, e.category, e.subcategory)
        )
        self._challans = _Table("challan", lambda c: c.challan_number)
        self._master = _Table("master_entry", lambda e: e.entry_date)
        self._fees = _Table("fee_entry", lambda e: e.entry_date)

    # Reg-76
    def add_receipt(self, entry):
        return self._receipts.add(entry)

    def update_receipt(self, entry):
        return self._receipts.update(entry)

    def get_receipt(self, entry_id):
        return self._receipts.get(entry_id)

    def list_receipts(self, start=None, end=None):
        return self._receipts.select(
            lambda e: in_date_range(e.receipt_date, start, end),
            lambda e: _date_sort(e.receipt_date),
        )

    # Reg-74
    def add_vat_event(self, event):
        return self._vat_events.add(event)

    def list_vat_events(self, start=None, end=None, event_type=None, batch_id=None):
        return self._vat_events.select(
            lambda e: (
                in_date_range(e.event_date, start, end)
                and (event_type is None or e.event_type == event_type)
                and (batch_id is None or e.batch_id == batch_id)
            ),
            lambda e: e.event_datetime.timestamp() if e.event_datetime else float("-inf"),
        )

    # Reg-A
    def add_production(self, entry):
        return self._productions.add(entry)

    def update_production(self, entry):
        return self._productions.update(entry)

    def get_production(self, entry_id):
        return self._productions.get(entry_id)

    def list_productions(self, start=None, end=None, status=None):
        return self._productions.select(
            lambda e: (
                in_date_range(e.production_date, start, end)
                and (status is None or e.status == status)
            ),
            lambda e: (_date_sort(e.production_date), e.batch_id, e.session_no),
        )

    # Reg-B
    def add_issue(self, entry):
        return self._issues.add(entry)

    def update_issue(self, entry):
        return self._issues.update(entry)

    def get_issue(self, entry_id):
        return self._issues.get(entry_id)

    def list_issues(self, start=None, end=None):
        return self._issues.select(
            lambda e: in_date_range(e.entry_date, start, end),
            lambda e: _date_sort(e.entry_date),
        )

    # Duty
    def add_duty_rate(self, rate):
        return self._duty_rates.add(rate)

    def list_duty_rates(self, category=None):
        return self._duty_rates.select(
            lambda r: category is None or r.category == category,
            lambda r: (r.category, r.subcategory, r.effective_from),
        )

    def add_duty_entry(self, entry):
        return self._duty_entries.add(entry)

    def update_duty_entry(self, entry):
        return self._duty_entries.update(entry)

    def get_duty_entry(self, entry_id):
        return self._duty_entries.get(entry_id)

    def find_duty_entry(self, month_year, category, subcategory):
        for entry in self._duty_entries.values():
            if (entry.month_year, entry.category, entry.subcategory) == (
                month_year, category, subcategory
            ):
                return entry
        return None

    def list_duty_entries(self, month_year=None):
        return self._duty_entries.select(
            lambda e: month_year is None or e.month_year == month_year,
            lambda e: (e.month_year, e.category, e.subcategory),
        )

    def add_challan(self, challan):
        return self._challans.add(challan)

    def list_challans(self, duty_entry_id=None):
        return self._challans.select(
            lambda c: duty_entry_id is None or c.duty_entry_id == duty_entry_id,
            lambda c: (_date_sort(c.challan_date), c.challan_number),
        )

    # Reg-78
    def add_master_entry(self, entry):
        return self._master.add(entry)

    def update_master_entry(self, entry):
        return self._master.update(entry)

    def get_master_entry(self, entry_id):
        return self._master.get(entry_id)

    def get_master_entry_by_date(self, entry_date):
        for entry in self._master.values():
            if entry.entry_date == entry_date:
                return entry
        return None

    def list_master_entries(self, start=None, end=None):
        return self._master.select(
            lambda e: in_date_range(e.entry_date, start, end),
            lambda e: e.entry_date,
        )

    # Production fees
    def add_fee_entry(self, entry):
        return self._fees.add(entry)

    def update_fee_entry(self, entry):
        return self._fees.update(entry)

    def get_fee_entry_by_date(self, entry_date):
        for entry in self._fees.values():
            if entry.entry_date == entry_date:
                return entry
        return None

    def list_fee_entries(self, start=None, end=None):
        return self._fees.select(
            lambda e: in_date_range(e.entry_date, start, end),
            lambda e: e.entry_date,
        )
