"""
Capacity report value objects
All timestamps are timezone-aware UTC; to_dict() renders ISO-8601.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class CapacitySnapshot:
    ingestion_rate: float = 0.0
    active_series: float = 0.0
    memory_usage: float = 0.0
    cpu_usage: float = 0.0
    storage_usage: float = 0.0
    queue_depth: float = 0.0
    error_rate: float = 0.0

    def scaled(self, multiplier: float) -> "CapacitySnapshot":
        return CapacitySnapshot(**{f.name: getattr(self, f.name) * multiplier for f in fields(self)})

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ReportPeriod:
    start_date: datetime
    end_date: datetime
    duration: str

    @property
    def seconds(self) -> float:
        return (self.end_date - self.start_date).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class UtilizationTrend:
    direction: str = "stable"
    growth_rate: float = 0.0
    seasonality: str = "daily"
    peak_utilization: float = 0.0
    low_utilization: float = 0.0
    trend_confidence: float = 0.0
    # growth over the trailing week of the period
    recent_growth_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class TenantForecast:
    time_horizon: str
    predicted_capacity: CapacitySnapshot
    confidence_interval: float
    capacity_exhaustion_date: Optional[datetime] = None
    recommended_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_horizon": self.time_horizon,
            "predicted_capacity": self.predicted_capacity.to_dict(),
            "confidence_interval": self.confidence_interval,
            "capacity_exhaustion_date": _iso(self.capacity_exhaustion_date),
            "recommended_actions": list(self.recommended_actions),
        }


@dataclass(frozen=True)
class BottleneckAnalysis:
    primary_bottleneck: str
    secondary_bottlenecks: Tuple[str, ...]
    impact_assessment: str
    mitigation_steps: Tuple[str, ...]
    # error rate (a rate) outranked utilization (a percentage) for primary
    units_mismatch: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_bottleneck": self.primary_bottleneck,
            "secondary_bottlenecks": list(self.secondary_bottlenecks),
            "impact_assessment": self.impact_assessment,
            "mitigation_steps": list(self.mitigation_steps),
            "units_mismatch": self.units_mismatch,
        }


@dataclass(frozen=True)
class TenantCapacityReport:
    tenant_name: str
    current: CapacitySnapshot
    trend: UtilizationTrend
    forecast: TenantForecast
    bottleneck: BottleneckAnalysis
    risk_level: str
    recommendations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_name": self.tenant_name,
            "current_capacity": self.current.to_dict(),
            "utilization_trend": self.trend.to_dict(),
            "forecasting": self.forecast.to_dict(),
            "bottleneck_analysis": self.bottleneck.to_dict(),
            "risk_level": self.risk_level,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class CapacitySummary:
    total_tenants: int = 0
    total_ingestion_rate: float = 0.0
    total_active_series: float = 0.0
    average_utilization: float = 0.0
    capacity_utilization: float = 0.0
    projected_growth_rate: float = 0.0
    estimated_capacity_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ForecastingSummary:
    global_trend: str = "stable"
    predicted_growth_rate: float = 0.0
    capacity_exhaustion_date: Optional[datetime] = None
    scaling_recommendations: Tuple[str, ...] = ()
    confidence_level: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_trend": self.global_trend,
            "predicted_growth_rate": self.predicted_growth_rate,
            "capacity_exhaustion_date": _iso(self.capacity_exhaustion_date),
            "scaling_recommendations": list(self.scaling_recommendations),
            "confidence_level": self.confidence_level,
        }


@dataclass(frozen=True)
class RiskFactor:
    factor: str
    severity: str
    probability: float
    impact: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk_level: str = "low"
    risk_counts: Dict[str, int] = field(default_factory=dict)
    risk_factors: Tuple[RiskFactor, ...] = ()
    alert_thresholds: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_risk_level": self.overall_risk_level,
            "risk_counts": dict(self.risk_counts),
            "risk_factors": [r.to_dict() for r in self.risk_factors],
            "alert_thresholds": dict(self.alert_thresholds),
        }


@dataclass(frozen=True)
class PeriodTrend:
    period: str
    start_date: datetime
    end_date: datetime
    growth_rate: float
    direction: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "growth_rate": self.growth_rate,
            "direction": self.direction,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class TrendAnalysis:
    weekly_trends: Tuple[PeriodTrend, ...] = ()
    monthly_trends: Tuple[PeriodTrend, ...] = ()
    direction_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weekly_trends": [t.to_dict() for t in self.weekly_trends],
            "monthly_trends": [t.to_dict() for t in self.monthly_trends],
            "direction_counts": dict(self.direction_counts),
        }


@dataclass(frozen=True)
class CapacityReport:
    report_id: str
    generated_at: datetime
    report_type: str
    period: ReportPeriod
    summary: CapacitySummary
    tenant_reports: Tuple[TenantCapacityReport, ...]
    forecasting: ForecastingSummary
    risk_assessment: RiskAssessment
    trend_analysis: TrendAnalysis
    recommendations: Tuple[str, ...]

    def tenant(self, name: str) -> Optional[TenantCapacityReport]:
        for report in self.tenant_reports:
            if report.tenant_name == name:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "generated_at": _iso(self.generated_at),
            "report_type": self.report_type,
            "period": self.period.to_dict(),
            "summary": self.summary.to_dict(),
            "tenant_reports": [t.to_dict() for t in self.tenant_reports],
            "forecasting": self.forecasting.to_dict(),
            "risk_assessment": self.risk_assessment.to_dict(),
            "trend_analysis": self.trend_analysis.to_dict(),
            "recommendations": list(self.recommendations),
        }
