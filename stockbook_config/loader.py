"""
Configuration loader (``stockbook_config.loader``).

Responsibility
--------------
Reads YAML files with PyYAML and parses them into the frozen dataclasses
of ``stockbook_config.schema``.  Runtime callers go through
``stockbook_config.get_active_config()``; this module is the parsing layer
underneath it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stockbook_config.schema import (
    AccountCodes,
    AccountDef,
    ChartOfAccountsDef,
    CostingConfig,
    DatabaseConfig,
    InventoryConfig,
    LoggingConfig,
    MainGroupDef,
    StockbookConfig,
    SubgroupDef,
)
from stockbook_kernel.exceptions import ConfigurationError

_SECTIONS = {
    "database": DatabaseConfig,
    "logging": LoggingConfig,
    "accounts": AccountCodes,
    "costing": CostingConfig,
    "inventory": InventoryConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge: keys in ``override`` replace those in ``base``."""
    merged = {name: dict(values or {}) for name, values in base.items()}
    for name, values in override.items():
        if not isinstance(values, dict):
            raise ConfigurationError(f"Section '{name}' must be a mapping", setting=name)
        merged.setdefault(name, {}).update(values)
    return merged


def _parse_section(name: str, values: dict[str, Any]):
    cls = _SECTIONS[name]
    try:
        return cls(**values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid keys in section '{name}': {exc}", setting=name) from exc


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the merged settings."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> StockbookConfig:
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration sections: {', '.join(unknown)}",
            setting=unknown[0],
        )
    sections = {name: _parse_section(name, data.get(name) or {}) for name in _SECTIONS}
    return StockbookConfig(**sections, checksum=compute_checksum(data))


def parse_chart(data: dict[str, Any]) -> ChartOfAccountsDef:
    try:
        groups = tuple(
            MainGroupDef(
                code=str(g["code"]),
                name=g["name"],
                type=g["type"],
                display_order=int(g.get("display_order", 0)),
                subgroups=tuple(
                    SubgroupDef(
                        code=str(s["code"]),
                        name=s["name"],
                        accounts=tuple(
                            AccountDef(
                                code=str(a["code"]),
                                name=a["name"],
                                opening_balance=str(a.get("opening_balance", "0")),
                                can_delete=bool(a.get("can_delete", True)),
                            )
                            for a in s.get("accounts", ())
                        ),
                    )
                    for s in g.get("subgroups", ())
                ),
            )
            for g in data["main_groups"]
        )
    except KeyError as exc:
        raise ConfigurationError(
            f"Chart of accounts is missing key {exc}",
            setting="chart_of_accounts",
        ) from exc
    return ChartOfAccountsDef(main_groups=groups)


def load_chart_of_accounts(path: Path) -> ChartOfAccountsDef:
    return parse_chart(load_yaml_file(path))
