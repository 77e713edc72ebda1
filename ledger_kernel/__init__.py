"""
Ledger Kernel

Multi-tenant double-entry ledger core:
- Balanced, append-only journal entries with sequential numbering
- Monthly account balance cache and per-account running-balance ledger
- Accounting period control with year-end close
- Journal-versus-ledger reconciliation and rebuild
"""

__version__ = "0.1.0"
