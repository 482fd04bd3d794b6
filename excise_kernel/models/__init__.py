"""SQLAlchemy ORM models for the excise registers."""

from excise_kernel.models.duty import DutyLedgerModel, DutyRateModel, TreasuryChallanModel
from excise_kernel.models.master_ledger import MasterLedgerModel
from excise_kernel.models.production import BottlingProductionModel, CountryLiquorIssueModel
from excise_kernel.models.production_fee import ProductionFeeModel
from excise_kernel.models.receipt import SpiritReceiptModel, VatEventModel

__all__ = [
    "BottlingProductionModel",
    "CountryLiquorIssueModel",
    "DutyLedgerModel",
    "DutyRateModel",
    "MasterLedgerModel",
    "ProductionFeeModel",
    "SpiritReceiptModel",
    "TreasuryChallanModel",
    "VatEventModel",
]
