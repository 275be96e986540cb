"""Guardrail configuration record, custom rules and mode presets."""

import copy
import secrets
import time
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from data_guardrails.models.conditions import Comparison, parse_condition


class GuardrailMode(str, Enum):
    """Named bundles of thresholds."""
    STRICT = "strict"
    WEB_SCRAPING = "web_scraping"
    CUSTOM = "custom"


class ConsensusMethod(str, Enum):
    """How several source observations collapse into one value."""
    MEDIAN = "median"
    MEAN = "mean"
    MODE = "mode"


class OutlierRule(str, Enum):
    """Outlier detection method."""
    MAD = "mad"
    IQR = "iqr"
    CUSTOM = "custom"  # not implemented, detects nothing


class RuleAction(str, Enum):
    """Action attached to a custom validation rule."""
    WARNING = "warning"
    ERROR = "error"
    DISREGARD_PRICE_DEVIATION = "disregard_price_deviation"
    BLACKLIST_SOURCE = "blacklist_source"


class MetricClass(str, Enum):
    """Metric classes that carry their own max-age threshold."""
    PRICE = "price"
    SUPPLY = "supply"
    VOLUME = "volume"
    ON_CHAIN = "on_chain"
    SOCIAL = "social"
    DEV_ACTIVITY = "dev_activity"


def new_rule_id() -> str:
    """Generate a unique rule id: creation time in millis plus a random suffix."""
    return f"rule_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class CustomValidationRule(BaseModel):
    """User-defined rule gating a validation action on a simple comparison."""

    id: str = Field(default_factory=new_rule_id, min_length=1, description="Unique rule id")
    name: str = Field(..., min_length=1, description="Human-readable rule name")
    condition: str = Field(..., description="Comparison such as 'volume < 500000'")
    action: RuleAction = Field(default=RuleAction.WARNING, description="Action when the condition matches")
    enabled: bool = Field(default=True, description="Whether the rule is evaluated")

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v: str) -> str:
        """Reject conditions the evaluator cannot interpret."""
        parse_condition(v)
        return v.strip()

    @property
    def comparison(self) -> Comparison:
        """Parsed condition (parsing is cached per condition string)."""
        return parse_condition(self.condition)


class GuardrailConfig(BaseModel):
    """
    Active data-quality thresholds.

    Serialized with camelCase keys; both camelCase and snake_case are
    accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    mode: GuardrailMode = Field(default=GuardrailMode.STRICT, description="Active guardrail mode")

    # Max age settings (minutes)
    max_price_age: int = Field(..., gt=0, description="Max price age in minutes")
    max_supply_age: int = Field(..., gt=0, description="Max supply age in minutes")
    max_volume_age: int = Field(..., gt=0, description="Max volume age in minutes")
    max_on_chain_data_age: int = Field(..., gt=0, description="Max on-chain data age in minutes")
    max_social_data_age: int = Field(..., gt=0, description="Max social data age in minutes")
    max_dev_activity_age: int = Field(..., gt=0, description="Max developer activity age in minutes")

    # Consensus settings
    min_consensus_sources: int = Field(..., gt=0, description="Minimum independent sources")
    consensus_method: ConsensusMethod = Field(default=ConsensusMethod.MEDIAN)

    # Deviation thresholds (percent)
    max_price_relative_deviation: float = Field(..., ge=0, description="Max price deviation %")
    max_supply_relative_deviation: float = Field(..., ge=0, description="Max supply deviation %")
    max_volume_relative_deviation: float = Field(..., ge=0, description="Max volume deviation %")

    outlier_rule: OutlierRule = Field(default=OutlierRule.MAD)

    custom_rules: List[CustomValidationRule] = Field(default_factory=list)

    auto_blacklist_after_stale_count: int = Field(..., gt=0, description="Stale events before auto-blacklist")

    def max_age_for(self, metric_class: MetricClass) -> int:
        """Max age in minutes for a metric class."""
        metric_class = MetricClass(metric_class)
        return {
            MetricClass.PRICE: self.max_price_age,
            MetricClass.SUPPLY: self.max_supply_age,
            MetricClass.VOLUME: self.max_volume_age,
            MetricClass.ON_CHAIN: self.max_on_chain_data_age,
            MetricClass.SOCIAL: self.max_social_data_age,
            MetricClass.DEV_ACTIVITY: self.max_dev_activity_age,
        }[metric_class]

    def max_deviation_for(self, metric_name: str) -> float:
        """Deviation threshold chosen by metric name; price is the fallback."""
        name = metric_name.lower()
        if 'price' in name:
            return self.max_price_relative_deviation
        if 'supply' in name:
            return self.max_supply_relative_deviation
        if 'volume' in name:
            return self.max_volume_relative_deviation
        return self.max_price_relative_deviation

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "GuardrailConfig":
        return cls.model_validate_json(raw)


PRESET_CONFIGS: Dict[GuardrailMode, Dict[str, Any]] = {
    GuardrailMode.STRICT: {
        'mode': GuardrailMode.STRICT,
        'max_price_age': 5,
        'max_supply_age': 60,
        'max_volume_age': 10,
        'max_on_chain_data_age': 30,
        'max_social_data_age': 60,
        'max_dev_activity_age': 1440,
        'min_consensus_sources': 3,
        'consensus_method': ConsensusMethod.MEDIAN,
        'max_price_relative_deviation': 5,
        'max_supply_relative_deviation': 1,
        'max_volume_relative_deviation': 15,
        'outlier_rule': OutlierRule.MAD,
        'auto_blacklist_after_stale_count': 3,
        'custom_rules': [],
    },
    GuardrailMode.WEB_SCRAPING: {
        'mode': GuardrailMode.WEB_SCRAPING,
        'max_price_age': 30,
        'max_supply_age': 360,
        'max_volume_age': 60,
        'max_on_chain_data_age': 120,
        'max_social_data_age': 240,
        'max_dev_activity_age': 2880,
        'min_consensus_sources': 2,
        'consensus_method': ConsensusMethod.MEAN,
        'max_price_relative_deviation': 15,
        'max_supply_relative_deviation': 5,
        'max_volume_relative_deviation': 30,
        'outlier_rule': OutlierRule.IQR,
        'auto_blacklist_after_stale_count': 5,
        'custom_rules': [
            {
                'id': 'low_volume_price_deviation',
                'name': 'Disregard price deviation for low volume tokens',
                'condition': 'volume < 500000',
                'action': RuleAction.DISREGARD_PRICE_DEVIATION,
                'enabled': True,
            }
        ],
    },
    GuardrailMode.CUSTOM: {
        'mode': GuardrailMode.CUSTOM,
        'max_price_age': 15,
        'max_supply_age': 120,
        'max_volume_age': 30,
        'max_on_chain_data_age': 60,
        'max_social_data_age': 120,
        'max_dev_activity_age': 1440,
        'min_consensus_sources': 2,
        'consensus_method': ConsensusMethod.MEDIAN,
        'max_price_relative_deviation': 10,
        'max_supply_relative_deviation': 2,
        'max_volume_relative_deviation': 20,
        'outlier_rule': OutlierRule.MAD,
        'auto_blacklist_after_stale_count': 3,
        'custom_rules': [],
    },
}


def get_preset(mode: GuardrailMode) -> GuardrailConfig:
    """Build a fresh config from the named preset."""
    return GuardrailConfig(**copy.deepcopy(PRESET_CONFIGS[GuardrailMode(mode)]))
