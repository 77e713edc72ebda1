"""
Ledger Modules

Read-side modules built on top of ``ledger_kernel``:
- reporting: trial balance, profit and loss, balance sheet and cash flow
"""
