"""
Tests for ledger_config: environment settings, chart templates and
classification tables.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from ledger_config.loader import (
    default_chart_of_accounts,
    load_chart_template,
    load_classification_table,
    load_yaml_file,
)
from ledger_config.settings import DEFAULT_DATABASE_URL, LedgerSettings
from ledger_kernel.services.account_service import ChartOfAccountsService
from ledger_modules.reporting.config import CodeRange, ReportingConfig


def _write(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestLedgerSettings:
    def test_defaults(self):
        settings = LedgerSettings.from_env({})
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"
        assert settings.sql_echo is False
        assert settings.chart_template is None

    def test_ledger_url_wins_over_database_url(self):
        settings = LedgerSettings.from_env(
            {"LEDGER_DATABASE_URL": "postgresql://a/ledger", "DATABASE_URL": "postgresql://b/other"}
        )
        assert settings.database_url == "postgresql://a/ledger"

    def test_database_url_fallback(self):
        settings = LedgerSettings.from_env({"DATABASE_URL": "postgresql://b/other"})
        assert settings.database_url == "postgresql://b/other"

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_sql_echo_truthy(self, value):
        assert LedgerSettings.from_env({"LEDGER_SQL_ECHO": value}).sql_echo is True

    def test_log_level_normalised(self):
        assert LedgerSettings.from_env({"LEDGER_LOG_LEVEL": "debug"}).log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            LedgerSettings(log_level="CHATTY")

    def test_paths_parsed(self):
        settings = LedgerSettings.from_env(
            {"LEDGER_CHART_TEMPLATE": "/etc/ledger/chart.yaml"}
        )
        assert settings.chart_template == Path("/etc/ledger/chart.yaml")

    def test_reporting_config_defaults_without_table(self):
        config = LedgerSettings().reporting_config()
        assert config.retained_earnings_code == "3200"

    def test_reporting_config_from_table(self, tmp_path):
        table = _write(tmp_path / "classification.yaml", {"entity_name": "Kedai Runcit Sdn Bhd"})
        config = LedgerSettings(classification_table=table).reporting_config()
        assert config.entity_name == "Kedai Runcit Sdn Bhd"


class TestDefaultChart:
    def test_bundled_chart_loads(self):
        specs = default_chart_of_accounts()
        codes = [spec.code for spec in specs]
        assert len(specs) == 31
        assert {"1000", "2000", "3000", "4000", "5000"} <= set(codes)
        assert {"3200", "3300"} <= set(codes)

    def test_bundled_chart_is_topologically_valid(self):
        ordered = ChartOfAccountsService.order_topologically(default_chart_of_accounts())
        seen = set()
        for spec in ordered:
            assert spec.parent_code is None or spec.parent_code in seen
            seen.add(spec.code)

    def test_contra_asset_declares_credit_normal(self):
        by_code = {spec.code: spec for spec in default_chart_of_accounts()}
        assert by_code["1590"].normal_balance == "credit"
        assert by_code["1590"].sub_type == "fixed_asset"


class TestChartTemplateParsing:
    def test_minimal_template(self, tmp_path):
        path = _write(
            tmp_path / "chart.yaml",
            {
                "accounts": [
                    {"code": 1000, "name": "Assets", "account_type": "asset", "is_header": True},
                    {
                        "code": 1010,
                        "name": "Cash",
                        "account_type": "asset",
                        "parent_code": 1000,
                        "opening_balance": "250.00",
                    },
                ]
            },
        )
        specs = load_chart_template(path)
        assert [s.code for s in specs] == ["1000", "1010"]
        assert specs[1].parent_code == "1000"
        assert specs[1].opening_balance == Decimal("250.00")

    def test_unknown_key_rejected(self, tmp_path):
        path = _write(
            tmp_path / "chart.yaml",
            {"accounts": [{"code": "1000", "name": "Assets", "account_type": "asset", "colour": "red"}]},
        )
        with pytest.raises(ValueError, match=r"accounts\[0\] \(1000\): unknown keys"):
            load_chart_template(path)

    def test_missing_required_key_rejected(self, tmp_path):
        path = _write(tmp_path / "chart.yaml", {"accounts": [{"code": "1000", "name": "Assets"}]})
        with pytest.raises(ValueError, match="missing required keys"):
            load_chart_template(path)

    def test_invalid_account_type_rejected(self, tmp_path):
        path = _write(
            tmp_path / "chart.yaml",
            {"accounts": [{"code": "1000", "name": "Assets", "account_type": "treasure"}]},
        )
        with pytest.raises(ValueError, match="invalid account_type"):
            load_chart_template(path)

    def test_unquoted_float_amount_rejected(self, tmp_path):
        path = _write(
            tmp_path / "chart.yaml",
            {"accounts": [{"code": "1010", "name": "Cash", "account_type": "asset", "opening_balance": 10.5}]},
        )
        with pytest.raises(ValueError):
            load_chart_template(path)

    def test_empty_accounts_rejected(self, tmp_path):
        path = _write(tmp_path / "chart.yaml", {"accounts": []})
        with pytest.raises(ValueError, match="non-empty list"):
            load_chart_template(path)

    def test_non_mapping_document_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_chart_template(tmp_path / "nope.yaml")


class TestClassificationTable:
    def test_ranges_parsed(self, tmp_path):
        path = _write(
            tmp_path / "classification.yaml",
            {
                "retained_earnings_code": 3500,
                "classification": {
                    "cogs_ranges": ["6000-6099", [6100, 6199]],
                    "receivable_prefixes": [13],
                },
            },
        )
        data = load_classification_table(path)
        assert data["retained_earnings_code"] == "3500"
        assert data["classification"]["cogs_ranges"] == (CodeRange(6000, 6099), CodeRange(6100, 6199))
        assert data["classification"]["receivable_prefixes"] == ("13",)

        config = ReportingConfig.from_dict(data)
        assert config.classification.expense_section("6150") == "cost_of_goods_sold"

    def test_bundled_table_matches_defaults(self):
        from ledger_config.loader import DEFAULT_CLASSIFICATION_PATH

        loaded = ReportingConfig.from_dict(load_classification_table(DEFAULT_CLASSIFICATION_PATH))
        defaults = ReportingConfig()
        assert loaded.classification == defaults.classification
        assert loaded.earnings_codes == defaults.earnings_codes

    def test_unknown_top_level_key(self, tmp_path):
        path = _write(tmp_path / "c.yaml", {"rounding": "bankers"})
        with pytest.raises(ValueError, match="unknown keys"):
            load_classification_table(path)

    def test_unknown_classification_key(self, tmp_path):
        path = _write(tmp_path / "c.yaml", {"classification": {"goodwill_ranges": ["1700-1799"]}})
        with pytest.raises(ValueError, match="unknown classification keys"):
            load_classification_table(path)

    def test_reversed_range_rejected(self, tmp_path):
        path = _write(tmp_path / "c.yaml", {"classification": {"cash_ranges": ["1099-1000"]}})
        with pytest.raises(ValueError, match="cash_ranges"):
            load_classification_table(path)
