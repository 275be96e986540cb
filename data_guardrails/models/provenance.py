"""Data models for source provenance and validation results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from data_guardrails.models.guardrails import ConsensusMethod, MetricClass


class SourceType(str, Enum):
    """Kind of data source."""
    API = "api"
    BLOCKCHAIN = "blockchain"
    SOCIAL = "social"
    MANUAL = "manual"
    CALCULATED = "calculated"


class SourceStatus(str, Enum):
    """Per-source health as seen by the guardrails."""
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"
    BLACKLISTED = "blacklisted"


class ValidationStatus(str, Enum):
    """Validation verdict, ordered pass < warning < fail."""
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    ValidationStatus.PASS: 0,
    ValidationStatus.WARNING: 1,
    ValidationStatus.FAIL: 2,
}


@dataclass
class DataSource:
    """One source's observation of a metric, with derived freshness."""
    name: str
    type: SourceType
    timestamp: int  # epoch millis of the source's own last update
    confidence: int  # 0-100
    is_stale: bool
    status: SourceStatus
    url: Optional[str] = None
    staleness: Optional[int] = None  # minutes
    stale_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'type': self.type.value,
            'url': self.url,
            'timestamp': self.timestamp,
            'confidence': self.confidence,
            'is_stale': self.is_stale,
            'staleness': self.staleness,
            'status': self.status.value,
            'stale_count': self.stale_count
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataSource":
        return cls(
            name=data['name'],
            type=SourceType(data.get('type', 'api')),
            url=data.get('url'),
            timestamp=int(data['timestamp']),
            confidence=int(data.get('confidence', 0)),
            is_stale=bool(data.get('is_stale', False)),
            staleness=data.get('staleness'),
            status=SourceStatus(data.get('status', 'active')),
            stale_count=int(data.get('stale_count', 0))
        )


@dataclass
class ConsensusResult:
    """Consensus across several numeric observations of one metric."""
    method: ConsensusMethod
    value: float
    deviation: float  # max relative deviation across sources, percent
    deviations: List[float] = field(default_factory=list)
    outliers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method.value,
            'value': self.value,
            'deviation': round(self.deviation, 4),
            'deviations': [round(d, 4) for d in self.deviations],
            'outliers': list(self.outliers)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsensusResult":
        return cls(
            method=ConsensusMethod(data['method']),
            value=float(data['value']),
            deviation=float(data['deviation']),
            deviations=[float(d) for d in data.get('deviations', [])],
            outliers=list(data.get('outliers', []))
        )


@dataclass
class DataProvenance:
    """Where a reported value came from and whether it passed validation."""
    metric: str
    value: Union[str, float]
    sources: List[DataSource] = field(default_factory=list)
    consensus: Optional[ConsensusResult] = None
    validation_status: ValidationStatus = ValidationStatus.PASS
    validation_messages: List[str] = field(default_factory=list)

    @property
    def stale_sources(self) -> List[DataSource]:
        return [s for s in self.sources if s.is_stale]

    @property
    def blacklisted_sources(self) -> List[DataSource]:
        return [s for s in self.sources if s.status == SourceStatus.BLACKLISTED]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'metric': self.metric,
            'value': self.value,
            'sources': [s.to_dict() for s in self.sources],
            'consensus': self.consensus.to_dict() if self.consensus else None,
            'validation_status': self.validation_status.value,
            'validation_messages': list(self.validation_messages)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataProvenance":
        consensus = data.get('consensus')
        return cls(
            metric=data['metric'],
            value=data['value'],
            sources=[DataSource.from_dict(s) for s in data.get('sources', [])],
            consensus=ConsensusResult.from_dict(consensus) if consensus else None,
            validation_status=ValidationStatus(data.get('validation_status', 'pass')),
            validation_messages=list(data.get('validation_messages') or [])
        )


class MarketData(BaseModel):
    """Market record as returned by the CoinGecko markets endpoint."""
    id: str = Field(..., description="CoinGecko coin id")
    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(default="", description="Display name")
    current_price: float = Field(default=0, description="Price in USD")
    market_cap: float = Field(default=0)
    market_cap_rank: int = Field(default=0)
    total_volume: float = Field(default=0, description="24h volume in USD")
    price_change_percentage_24h: float = Field(default=0)
    price_change_percentage_7d: float = Field(default=0)
    price_change_percentage_30d: float = Field(default=0)
    circulating_supply: float = Field(default=0)
    total_supply: float = Field(default=0)
    max_supply: Optional[float] = Field(default=None)
    ath: float = Field(default=0)
    ath_date: str = Field(default="")
    atl: float = Field(default=0)
    atl_date: str = Field(default="")
    last_updated: str = Field(..., description="ISO-8601 time of the last update")

    def value_for(self, metric_class: MetricClass) -> float:
        """Numeric value reported for a metric class."""
        metric_class = MetricClass(metric_class)
        if metric_class == MetricClass.PRICE:
            return self.current_price
        if metric_class == MetricClass.SUPPLY:
            return self.circulating_supply
        if metric_class == MetricClass.VOLUME:
            return self.total_volume
        raise ValueError(f"Market data has no value for metric class: {metric_class.value}")
