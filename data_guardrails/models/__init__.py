"""Data models and configuration."""

from data_guardrails.models.config import GuardrailSettings
from data_guardrails.models.conditions import Comparison, RuleParseError, parse_condition
from data_guardrails.models.guardrails import (
    ConsensusMethod,
    CustomValidationRule,
    GuardrailConfig,
    GuardrailMode,
    MetricClass,
    OutlierRule,
    PRESET_CONFIGS,
    RuleAction,
    get_preset,
    new_rule_id,
)
from data_guardrails.models.provenance import (
    ConsensusResult,
    DataProvenance,
    DataSource,
    MarketData,
    SourceStatus,
    SourceType,
    ValidationStatus,
)

__all__ = [
    "GuardrailSettings",
    "Comparison",
    "RuleParseError",
    "parse_condition",
    "ConsensusMethod",
    "CustomValidationRule",
    "GuardrailConfig",
    "GuardrailMode",
    "MetricClass",
    "OutlierRule",
    "PRESET_CONFIGS",
    "RuleAction",
    "get_preset",
    "new_rule_id",
    "ConsensusResult",
    "DataProvenance",
    "DataSource",
    "MarketData",
    "SourceStatus",
    "SourceType",
    "ValidationStatus",
]
