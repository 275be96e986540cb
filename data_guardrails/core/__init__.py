"""Core guardrail components."""

from data_guardrails.core.config_manager import GuardrailConfigManager
from data_guardrails.core.data_quality import DataQualityService
from data_guardrails.core.rules import RuleEvaluator
from data_guardrails.core.source_ledger import SourceLedger, normalize_source_key

__all__ = [
    "GuardrailConfigManager",
    "DataQualityService",
    "RuleEvaluator",
    "SourceLedger",
    "normalize_source_key",
]
