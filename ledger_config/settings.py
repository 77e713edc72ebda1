"""
Process settings (``ledger_config.settings``).

Responsibility
--------------
Reads the handful of environment variables the ledger honours and turns
them into one frozen ``LedgerSettings`` value.  ``bootstrap()`` applies
them: logging, engine, and the reporting configuration.

Failure modes
-------------
* Unknown log level -> ``ValueError`` naming the value.
* YAML paths that do not exist -> ``FileNotFoundError`` when loaded.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Self

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class LedgerSettings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    sql_echo: bool = False
    chart_template: Path | None = None
    classification_table: Path | None = None

    def __post_init__(self):
        level = self.log_level.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """
        Build settings from ``LEDGER_*`` variables.

        ``LEDGER_DATABASE_URL`` wins over ``DATABASE_URL``; both fall back to
        an in-memory SQLite database.
        """
        env = os.environ if environ is None else environ
        chart = env.get("LEDGER_CHART_TEMPLATE")
        table = env.get("LEDGER_CLASSIFICATION_TABLE")
        return cls(
            database_url=env.get("LEDGER_DATABASE_URL") or env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
            log_level=env.get("LEDGER_LOG_LEVEL", "INFO"),
            sql_echo=env.get("LEDGER_SQL_ECHO", "").strip().lower() in _TRUE,
            chart_template=Path(chart) if chart else None,
            classification_table=Path(table) if table else None,
        )

    def reporting_config(self):
        """ReportingConfig from ``classification_table``, or the defaults."""
        from ledger_config.loader import load_classification_table
        from ledger_modules.reporting.config import ReportingConfig

        if self.classification_table is None:
            return ReportingConfig.with_defaults()
        return ReportingConfig.from_dict(load_classification_table(self.classification_table))

    def chart_of_accounts(self):
        """AccountSpecs from ``chart_template``, or the bundled chart."""
        from ledger_config.loader import default_chart_of_accounts, load_chart_template

        if self.chart_template is None:
            return default_chart_of_accounts()
        return load_chart_template(self.chart_template)


def bootstrap(settings: LedgerSettings | None = None):
    """
    Configure logging and the module-level engine from ``settings``.

    Returns:
        The initialised SQLAlchemy Engine.
    """
    from ledger_kernel.db.engine import init_engine_from_url
    from ledger_kernel.logging_config import configure_logging

    settings = settings or LedgerSettings.from_env()
    configure_logging(level=settings.log_level)
    return init_engine_from_url(settings.database_url, echo=settings.sql_echo)
