"""
Crypto Data Quality Guardrails

Consensus, outlier detection, staleness tracking and validation for
externally sourced crypto metrics before they reach a research report.
"""

__version__ = "1.0.0"
__author__ = "Crypto Research Data Team"
__description__ = "Data quality and consensus guardrail engine for crypto research metrics"

from data_guardrails.core.data_quality import DataQualityService
from data_guardrails.database.store import MemoryKeyValueStore, SQLKeyValueStore
from data_guardrails.models.config import GuardrailSettings
from data_guardrails.models.guardrails import GuardrailConfig, GuardrailMode

__all__ = [
    "DataQualityService",
    "MemoryKeyValueStore",
    "SQLKeyValueStore",
    "GuardrailSettings",
    "GuardrailConfig",
    "GuardrailMode",
]
