"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads YAML files shipped with (or supplied to) the ledger and parses them
into typed inputs: chart-of-accounts templates into kernel ``AccountSpec``
DTOs, and classification tables into a dict accepted by
``ReportingConfig.from_dict``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` naming the offending entry; no silent
  defaults for required fields and no unknown keys.
* ``yaml.safe_load`` only.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing/invalid keys  -> ``ValueError``.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

from ledger_kernel.domain.dtos import AccountSpec
from ledger_kernel.domain.money import to_decimal
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType
from ledger_modules.reporting.config import AccountClassification, CodeRange, ReportingConfig

logger = get_logger("config.loader")

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_CHART_PATH = DEFAULTS_DIR / "chart_of_accounts.yaml"
DEFAULT_CLASSIFICATION_PATH = DEFAULTS_DIR / "classification.yaml"

_ACCOUNT_KEYS = {f.name for f in dataclasses.fields(AccountSpec)} - {"parent_id"}
_REQUIRED_ACCOUNT_KEYS = ("code", "name", "account_type")
_CONFIG_KEYS = {f.name for f in dataclasses.fields(ReportingConfig)}
_CLASSIFICATION_KEYS = {f.name for f in dataclasses.fields(AccountClassification)}
_RANGE_KEYS = {name for name in _CLASSIFICATION_KEYS if name.endswith("_ranges")}


def load_yaml_file(path: Path | str) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_account(data: Any, index: int) -> AccountSpec:
    """Parse one ``accounts:`` entry into an AccountSpec."""
    if not isinstance(data, dict):
        raise ValueError(f"accounts[{index}]: expected a mapping, got {type(data).__name__}")
    label = f"accounts[{index}] ({data.get('code', '?')})"

    unknown = set(data) - _ACCOUNT_KEYS
    if unknown:
        raise ValueError(f"{label}: unknown keys {sorted(unknown)}")
    missing = [key for key in _REQUIRED_ACCOUNT_KEYS if data.get(key) in (None, "")]
    if missing:
        raise ValueError(f"{label}: missing required keys {missing}")

    try:
        AccountType(str(data["account_type"]))
    except ValueError:
        raise ValueError(f"{label}: invalid account_type {data['account_type']!r}") from None

    fields = dict(data)
    fields["code"] = str(fields["code"])
    if fields.get("parent_code") is not None:
        fields["parent_code"] = str(fields["parent_code"])
    if "opening_balance" in fields:
        # YAML floats are refused by to_decimal; quote amounts in templates
        try:
            fields["opening_balance"] = to_decimal(fields["opening_balance"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{label}: {exc}") from None
    try:
        return AccountSpec(**fields)
    except ValueError as exc:
        raise ValueError(f"{label}: {exc}") from None


def load_chart_template(path: Path | str) -> list[AccountSpec]:
    """
    Parse a chart-of-accounts template.

    Format::

        accounts:
          - code: "1000"
            name: Assets
            account_type: asset
            is_header: true
          - code: "1010"
            name: Cash on Hand
            account_type: asset
            parent_code: "1000"
    """
    data = load_yaml_file(path)
    entries = data.get("accounts")
    if not isinstance(entries, list) or not entries:
        raise ValueError(f"{path}: 'accounts' must be a non-empty list")
    specs = [parse_account(entry, i) for i, entry in enumerate(entries)]
    logger.info(
        "chart_template_loaded",
        extra={"path": str(path), "account_count": len(specs)},
    )
    return specs


def default_chart_of_accounts() -> list[AccountSpec]:
    """The bundled SME chart of accounts."""
    return load_chart_template(DEFAULT_CHART_PATH)


def load_classification_table(path: Path | str) -> dict[str, Any]:
    """
    Parse a classification table for ``ReportingConfig.from_dict``.

    Range entries may be written as ``"5000-5199"`` or ``[5000, 5199]``
    and are validated here so a bad table fails at load time.
    """
    data = load_yaml_file(path)
    unknown = set(data) - _CONFIG_KEYS
    if unknown:
        raise ValueError(f"{path}: unknown keys {sorted(unknown)}")

    result = dict(data)
    for key in ("retained_earnings_code", "current_year_earnings_code"):
        if key in result:
            result[key] = str(result[key])

    classification = data.get("classification")
    if classification is not None:
        if not isinstance(classification, dict):
            raise ValueError(f"{path}: 'classification' must be a mapping")
        unknown = set(classification) - _CLASSIFICATION_KEYS
        if unknown:
            raise ValueError(f"{path}: unknown classification keys {sorted(unknown)}")
        parsed: dict[str, Any] = {}
        for key, value in classification.items():
            if not isinstance(value, list):
                raise ValueError(f"{path}: classification.{key} must be a list")
            if key in _RANGE_KEYS:
                try:
                    parsed[key] = tuple(CodeRange.parse(item) for item in value)
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"{path}: classification.{key}: {exc}") from None
            else:
                parsed[key] = tuple(str(item) for item in value)
        result["classification"] = parsed

    logger.info(
        "classification_table_loaded",
        extra={"path": str(path), "keys": sorted(result.keys())},
    )
    return result
