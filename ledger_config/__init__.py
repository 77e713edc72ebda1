"""
ledger_config -- environment settings and YAML templates.

Holds everything that is data rather than code: the process settings read
from ``LEDGER_*`` environment variables, the bundled chart-of-accounts
template and the statement classification table.
"""

from ledger_config.loader import (
    DEFAULT_CHART_PATH,
    DEFAULT_CLASSIFICATION_PATH,
    default_chart_of_accounts,
    load_chart_template,
    load_classification_table,
)
from ledger_config.settings import LedgerSettings, bootstrap

__all__ = [
    "DEFAULT_CHART_PATH",
    "DEFAULT_CLASSIFICATION_PATH",
    "LedgerSettings",
    "bootstrap",
    "default_chart_of_accounts",
    "load_chart_template",
    "load_classification_table",
]
