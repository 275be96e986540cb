"""
Data Quality & Provenance Layer.

Rules:
1. Never trust a single source absolutely
2. Every metric carries its provenance (sources, freshness, consensus)
3. Stale sources are tracked and eventually blacklisted
4. A FAIL verdict is a value, not an exception

Flow:
[ source observations ] ──> consensus + outliers ──> staleness
                                                        ↓
                         custom rules ──> deviation check ──> PASS / WARNING / FAIL
                                                        ↓
                                                  report embedding
"""

import dataclasses
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

import structlog

from data_guardrails.core.config_manager import GuardrailConfigManager
from data_guardrails.core.rules import RuleEvaluator
from data_guardrails.core.source_ledger import SourceLedger
from data_guardrails.database.store import KeyValueStore, MemoryKeyValueStore
from data_guardrails.models.config import GuardrailSettings
from data_guardrails.models.guardrails import (
    CustomValidationRule,
    GuardrailConfig,
    GuardrailMode,
    MetricClass,
    OutlierRule,
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
from data_guardrails.utils.statistics import (
    calculate_consensus,
    calculate_relative_deviation,
    detect_outliers_iqr,
    detect_outliers_mad,
)
from data_guardrails.utils.time import age_in_minutes, staleness_minutes, to_epoch_millis

logger = structlog.get_logger(__name__)


FRESH_CONFIDENCE = 95
STALE_CONFIDENCE = 60

COINGECKO_SOURCE_NAME = 'CoinGecko API'
COINGECKO_SOURCE_URL = 'https://www.coingecko.com'
COINGECKO_BLACKLIST_ALIASES = ('coingecko', 'coingecko api')


def _escalate(current: ValidationStatus, target: ValidationStatus) -> ValidationStatus:
    """Move to target only if it is more severe; FAIL is never downgraded."""
    return target if target.severity > current.severity else current


class DataQualityService:
    """
    Scores, cross-validates and flags externally sourced metrics.

    One instance owns the guardrail config, the source ledger and their
    store. Construct it once and pass it to whatever builds reports.
    """

    def __init__(self, store: Optional[KeyValueStore] = None,
                 settings: Optional[GuardrailSettings] = None):
        self.settings = settings or GuardrailSettings()
        self.store = store if store is not None else MemoryKeyValueStore()

        self.config_manager = GuardrailConfigManager(self.store, default_mode=self.settings.default_mode)
        self.ledger = SourceLedger(
            self.store,
            blacklist_threshold=lambda: self.config_manager.config.auto_blacklist_after_stale_count
        )
        self.rule_evaluator = RuleEvaluator()

        logger.info("DataQualityService initialized",
                    mode=self.config.mode.value,
                    store=type(self.store).__name__)

    @property
    def config(self) -> GuardrailConfig:
        return self.config_manager.config

    # ============================================================
    # Configuration
    # ============================================================

    def get_config(self) -> GuardrailConfig:
        return self.config_manager.get_config()

    def set_mode(self, mode: GuardrailMode) -> None:
        self.config_manager.set_mode(mode)

    def update_config(self, updates: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        self.config_manager.update_config(updates, **kwargs)

    def add_custom_rule(self, rule: CustomValidationRule) -> CustomValidationRule:
        return self.config_manager.add_custom_rule(rule)

    def remove_custom_rule(self, rule_id: str) -> None:
        self.config_manager.remove_custom_rule(rule_id)

    def update_custom_rule(self, rule_id: str, **updates: Any) -> Optional[CustomValidationRule]:
        return self.config_manager.update_custom_rule(rule_id, **updates)

    # ============================================================
    # Source tracking
    # ============================================================

    def track_stale_source(self, source_name: str) -> int:
        return self.ledger.track_stale_source(source_name)

    def blacklist_source(self, source_name: str) -> None:
        self.ledger.blacklist_source(source_name)

    def unblacklist_source(self, source_name: str) -> None:
        self.ledger.unblacklist_source(source_name)

    def get_blacklisted_sources(self) -> List[str]:
        return self.ledger.get_blacklisted_sources()

    def reset_source_tracking(self) -> None:
        self.ledger.reset_source_tracking()

    # ============================================================
    # Freshness
    # ============================================================

    def is_data_stale(self, timestamp: int, max_age: int,
                      now: Optional[datetime] = None) -> bool:
        """True when the epoch-millis timestamp is older than max_age minutes."""
        return age_in_minutes(timestamp, now) > max_age

    def calculate_staleness(self, timestamp: int, now: Optional[datetime] = None) -> int:
        """Whole minutes since the epoch-millis timestamp."""
        return staleness_minutes(timestamp, now)

    # ============================================================
    # Data sources
    # ============================================================

    def create_data_source(self, name: str,
                           timestamp: Union[int, float, str, datetime],
                           metric_class: MetricClass = MetricClass.PRICE,
                           source_type: SourceType = SourceType.API,
                           url: Optional[str] = None,
                           now: Optional[datetime] = None,
                           blacklist_aliases: Sequence[str] = ()) -> DataSource:
        """
        Build a DataSource with freshness derived from the configured max age.

        Confidence is two-tier (fresh / stale). Status is blacklisted first,
        then warning when stale, otherwise active.
        """
        if isinstance(timestamp, bool):
            raise ValueError(f"Unsupported timestamp for source '{name}': {timestamp!r}")
        if isinstance(timestamp, (int, float)):
            timestamp_ms = int(timestamp)
        else:
            timestamp_ms = to_epoch_millis(timestamp)
        max_age = self.config.max_age_for(metric_class)

        is_stale = self.is_data_stale(timestamp_ms, max_age, now)
        is_blacklisted = any(
            self.ledger.is_blacklisted(alias) for alias in (name, *blacklist_aliases)
        )

        if is_blacklisted:
            status = SourceStatus.BLACKLISTED
        elif is_stale:
            status = SourceStatus.WARNING
        else:
            status = SourceStatus.ACTIVE

        return DataSource(
            name=name,
            type=SourceType(source_type),
            url=url,
            timestamp=timestamp_ms,
            confidence=STALE_CONFIDENCE if is_stale else FRESH_CONFIDENCE,
            is_stale=is_stale,
            staleness=self.calculate_staleness(timestamp_ms, now),
            status=status,
            stale_count=self.ledger.get_stale_count(name)
        )

    def create_data_source_from_coingecko(self, market_data: Union[MarketData, Mapping[str, Any]],
                                          metric_type: MetricClass,
                                          now: Optional[datetime] = None) -> DataSource:
        """Build a DataSource from a CoinGecko market record."""
        if not isinstance(market_data, MarketData):
            market_data = MarketData.model_validate(market_data)

        return self.create_data_source(
            name=COINGECKO_SOURCE_NAME,
            timestamp=market_data.last_updated,
            metric_class=metric_type,
            source_type=SourceType.API,
            url=COINGECKO_SOURCE_URL,
            now=now,
            blacklist_aliases=COINGECKO_BLACKLIST_ALIASES
        )

    # ============================================================
    # Provenance
    # ============================================================

    def _detect_outliers(self, values: Sequence[float]) -> List[int]:
        rule = self.config.outlier_rule
        if rule == OutlierRule.MAD:
            return detect_outliers_mad(values)
        if rule == OutlierRule.IQR:
            return detect_outliers_iqr(values)

        logger.warning("Custom outlier rule is not supported, no outliers reported",
                       outlier_rule=rule.value)
        return []

    def create_provenance(self, metric: str, value: Union[str, float],
                          sources: Sequence[DataSource],
                          numeric_values: Optional[Sequence[float]] = None) -> DataProvenance:
        """
        Create the provenance record for a metric.

        With more than one numeric value a consensus block is attached:
        consensus value, per-source and max relative deviation, and the
        names of outlier sources (``Source <i>`` when a value has no source).
        """
        provenance = DataProvenance(
            metric=metric,
            value=value,
            sources=list(sources),
            validation_status=ValidationStatus.PASS
        )

        if numeric_values and len(numeric_values) > 1:
            method = self.config.consensus_method
            consensus = calculate_consensus(numeric_values, method.value)
            deviations = [calculate_relative_deviation(v, consensus) for v in numeric_values]
            outlier_indices = self._detect_outliers(numeric_values)

            provenance.consensus = ConsensusResult(
                method=method,
                value=consensus,
                deviation=max(deviations),
                deviations=deviations,
                outliers=[
                    sources[i].name if i < len(sources) else f"Source {i}"
                    for i in outlier_indices
                ]
            )

            logger.debug("Consensus calculated", metric=metric, method=method.value,
                         consensus=consensus, max_deviation=round(max(deviations), 4),
                         outliers=provenance.consensus.outliers)

        return provenance

    def validate_provenance(self, provenance: DataProvenance,
                            context: Optional[Mapping[str, Any]] = None) -> DataProvenance:
        """
        Validate a provenance record.

        Checks, in order: source count, stale sources, all-blacklisted,
        deviation (unless a custom rule disables it for this context).
        Status only ever escalates: PASS -> WARNING -> FAIL.

        Returns:
            A new DataProvenance carrying the verdict and messages
        """
        config = self.config
        messages: List[str] = []
        status = ValidationStatus.PASS
        sources = provenance.sources

        # 1. Source count
        if len(sources) < config.min_consensus_sources:
            messages.append(f"Insufficient sources ({len(sources)} < {config.min_consensus_sources})")
            status = _escalate(status, ValidationStatus.WARNING)

        # 2. Freshness
        stale_sources = provenance.stale_sources
        if stale_sources:
            messages.append(f"{len(stale_sources)} stale source(s) detected")
            status = _escalate(status, ValidationStatus.WARNING)

        # 3. Blacklist
        if len(provenance.blacklisted_sources) == len(sources):
            messages.append("All sources are blacklisted")
            status = _escalate(status, ValidationStatus.FAIL)

        # 4. Deviation
        if provenance.consensus is not None and provenance.consensus.deviation is not None:
            deviation = provenance.consensus.deviation
            max_deviation = config.max_deviation_for(provenance.metric)

            override = self.rule_evaluator.find_deviation_override(config.custom_rules, context)
            if override is not None:
                messages.append(f"Applied rule: {override.name}")
            elif deviation > max_deviation:
                messages.append(f"High deviation: {deviation:.2f}% > {max_deviation:g}%")
                status = _escalate(status, ValidationStatus.FAIL)

        logger.info("Provenance validated",
                    metric=provenance.metric,
                    status=status.value,
                    sources=len(sources),
                    messages=len(messages))

        return dataclasses.replace(
            provenance,
            sources=list(sources),
            validation_status=status,
            validation_messages=messages
        )

    def evaluate_metric(self, metric: str, value: Union[str, float],
                        sources: Sequence[DataSource],
                        numeric_values: Optional[Sequence[float]] = None,
                        context: Optional[Mapping[str, Any]] = None) -> DataProvenance:
        """Create and validate a provenance record in one call."""
        provenance = self.create_provenance(metric, value, sources, numeric_values)
        return self.validate_provenance(provenance, context)
