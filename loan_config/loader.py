"""
Configuration Loader (``loan_config.loader``).

Responsibility
--------------
Loads an engine configuration YAML file and parses it into the typed
``loan_config.schema`` dataclasses. Runtime callers go through
``loan_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys and invalid values raise ``ConfigError``; nothing is
  silently ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  data for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from loan_config.schema import (
    AttributionRules,
    CalendarRules,
    DelinquencyRules,
    EngineConfig,
    LedgerConvention,
    LedgerRules,
    MonthWeekAssignment,
)
from loan_kernel.domain.currency import CurrencyRegistry
from loan_kernel.exceptions import ConfigError

_TOP_LEVEL_KEYS = frozenset(
    {"currency", "timezone", "delinquency", "ledger", "attribution", "calendar"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), type(data).__name__, "top level must be a mapping")
    return data


def _section(data: dict[str, Any], name: str, allowed: frozenset[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(name, section, "must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ConfigError(name, sorted(unknown), "unknown keys")
    return section


def _enum_value(enum_type: type, key: str, raw: Any) -> Any:
    try:
        return enum_type(str(raw).lower())
    except ValueError as e:
        choices = ", ".join(m.value for m in enum_type)
        raise ConfigError(key, raw, f"expected one of: {choices}") from e


def parse_delinquency(data: dict[str, Any]) -> DelinquencyRules:
    section = _section(
        data, "delinquency", frozenset({"sign_week_grace", "exit_payment_threshold"})
    )
    grace = section.get("sign_week_grace", False)
    if not isinstance(grace, bool):
        raise ConfigError("delinquency.sign_week_grace", grace, "must be a boolean")
    threshold = section.get("exit_payment_threshold", 2)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
        raise ConfigError(
            "delinquency.exit_payment_threshold", threshold, "must be a positive integer"
        )
    return DelinquencyRules(sign_week_grace=grace, exit_payment_threshold=threshold)


def parse_ledger(data: dict[str, Any]) -> LedgerRules:
    section = _section(data, "ledger", frozenset({"convention"}))
    convention = _enum_value(
        LedgerConvention, "ledger.convention", section.get("convention", "legacy")
    )
    return LedgerRules(convention=convention)


def parse_attribution(data: dict[str, Any]) -> AttributionRules:
    defaults = AttributionRules()
    allowed = frozenset(
        {
            "default_route_id",
            "default_route_name",
            "default_locality_id",
            "default_locality_name",
        }
    )
    section = _section(data, "attribution", allowed)
    values = {}
    for key in allowed:
        raw = section.get(key, getattr(defaults, key))
        if not isinstance(raw, str) or not raw.strip():
            raise ConfigError(f"attribution.{key}", raw, "must be a non-empty string")
        values[key] = raw
    return AttributionRules(**values)


def parse_calendar(data: dict[str, Any]) -> CalendarRules:
    section = _section(data, "calendar", frozenset({"month_week_assignment"}))
    assignment = _enum_value(
        MonthWeekAssignment,
        "calendar.month_week_assignment",
        section.get("month_week_assignment", "intersect"),
    )
    return CalendarRules(month_week_assignment=assignment)


def parse_config(data: dict[str, Any], source: str = "") -> EngineConfig:
    """
    Parse a configuration mapping into an EngineConfig.

    Postconditions:
        - Returns a frozen EngineConfig carrying the checksum of ``data``.
    Raises:
        ConfigError: on unknown keys or invalid values.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError("<root>", sorted(unknown), "unknown keys")

    currency = str(data.get("currency", "MXN")).upper()
    if not CurrencyRegistry.is_valid(currency):
        raise ConfigError("currency", currency, "not a supported ISO 4217 code")

    tz_name = data.get("timezone")
    if tz_name is not None:
        try:
            ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError("timezone", tz_name, "unknown IANA time zone") from e

    return EngineConfig(
        currency=currency,
        timezone=tz_name,
        delinquency=parse_delinquency(data),
        ledger=parse_ledger(data),
        attribution=parse_attribution(data),
        calendar=parse_calendar(data),
        checksum=compute_checksum(data),
        source=source,
    )


def load_config_file(path: Path) -> EngineConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
