"""
Excise Kernel

Regulatory bookkeeping core for a distillery's excise registers:
- Spirit receipts (Reg-76) and vat events (Reg-74)
- Blending and bottling production (Reg-A)
- Country-liquor issues (Reg-B)
- Excise duty accrual and treasury payments
- Master spirit ledger reconciliation (Reg-78)
"""

__version__ = "0.1.0"
