"""
loan_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``. No engine or service reads configuration
    files or environment variables directly; they receive the parsed
    rule objects as arguments.

Architecture position:
    Configuration -- sits above ``loan_kernel`` and ``loan_engines`` and
    below ``loan_services``. Neither the kernel nor the engines import
    from ``loan_config``; engines take plain constructor arguments.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Resolution order: explicit path, then the ``LOAN_ENGINE_CONFIG``
      environment variable, then the packaged ``defaults.yaml``.
    - Deterministic checksum: the same YAML always produces the same
      ``EngineConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved path does not exist.
    - ``ConfigError`` -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LOAN_CONFIG_TRACE`` log entry with the source path and checksum, tying
    every report back to the exact rules that produced it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from loan_config.loader import load_config_file
from loan_config.schema import (
    AttributionRules,
    CalendarRules,
    DelinquencyRules,
    EngineConfig,
    LedgerConvention,
    LedgerRules,
    MonthWeekAssignment,
)

_logger = logging.getLogger("loan_kernel.config")

CONFIG_ENV_VAR = "LOAN_ENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: str | Path | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a configuration YAML file.

    Returns:
        EngineConfig -- frozen, validated configuration.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ConfigError: If configuration validation fails.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    config = load_config_file(Path(path))

    _logger.info(
        "LOAN_CONFIG_TRACE",
        extra={
            "trace_type": "LOAN_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "currency": config.currency,
            "ledger_convention": config.ledger.convention.value,
            "month_week_assignment": config.calendar.month_week_assignment.value,
        },
    )
    return config


__all__ = [
    "AttributionRules",
    "CalendarRules",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "DelinquencyRules",
    "EngineConfig",
    "LedgerConvention",
    "LedgerRules",
    "MonthWeekAssignment",
    "get_active_config",
]
