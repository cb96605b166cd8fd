"""
Capacity planning - per-tenant snapshot, trend, forecast and bottlenecks
Rolled up into a cluster-wide report for a weekly, monthly or quarterly
period. A tenant whose current usage cannot be read is left out of the
report; a tenant whose trend cannot be read is reported as stable.
"""
import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from capacity.models import (
    BottleneckAnalysis,
    CapacityReport,
    CapacitySnapshot,
    CapacitySummary,
    ForecastingSummary,
    PeriodTrend,
    ReportPeriod,
    RiskAssessment,
    RiskFactor,
    TenantCapacityReport,
    TenantForecast,
    TrendAnalysis,
    UtilizationTrend,
)
from concurrency import Deadline, bounded_map
from config import MAX_WORKERS
from metrics.prometheus_client import MetricsUnavailable, PrometheusError, MimirMetricsClient
from normalize import math as nmath
from normalize.series import values_from_series

logger = logging.getLogger(__name__)

REPORT_TYPES = ("weekly", "monthly", "quarterly")
SNAPSHOT_WINDOW = "24h"
FORECAST_HORIZON_DAYS = 30
EXHAUSTION_GROWTH_THRESHOLD = 0.1
EXHAUSTION_MAX_DAYS = 180
BOTTLENECK_THRESHOLD = 70.0
ERROR_RATE_THRESHOLD = 5.0
TREND_CONFIDENCE = 0.8
FORECAST_CONFIDENCE = 0.7
SUMMARY_CONFIDENCE = 0.75

ALERT_THRESHOLDS = {
    "cpu_utilization": 80.0,
    "memory_utilization": 85.0,
    "error_rate": 5.0,
}

MITIGATION_STEPS: Dict[str, Tuple[str, ...]] = {
    "CPU": ("Increase CPU limits", "Optimize query performance", "Consider horizontal scaling"),
    "Memory": ("Increase memory limits", "Optimize memory usage", "Review series cardinality"),
    "Storage": ("Increase storage capacity", "Implement data retention policies", "Optimize compression"),
    "Error Rate": ("Investigate error root causes", "Review limit configurations", "Implement retry mechanisms"),
}
DEFAULT_MITIGATION = ("Monitor resource usage trends",)

RISK_ORDER = ("low", "medium", "high", "critical")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_period(report_type: str, now: Optional[datetime] = None) -> ReportPeriod:
    """Trailing period for a report type; unknown types fall back to weekly"""
    end = now or _utcnow()
    if report_type == "monthly":
        return ReportPeriod(_months_back(end, 1), end, "30 days")
    if report_type == "quarterly":
        return ReportPeriod(_months_back(end, 3), end, "90 days")
    if report_type != "weekly":
        logger.warning(f"Unknown report type {report_type!r}, using weekly period")
    return ReportPeriod(end - timedelta(days=7), end, "7 days")


def trend_direction(growth_rate: float) -> str:
    if growth_rate > 0.05:
        return "increasing"
    if growth_rate < -0.05:
        return "decreasing"
    return "stable"


def build_trend(samples: Sequence[Tuple[float, float]], recent_seconds: float = 7 * 86400) -> UtilizationTrend:
    """Endpoint-delta trend of an ingestion-rate series"""
    values = values_from_series(samples)
    growth = nmath.growth_rate(values)
    recent_growth = growth
    if samples:
        cutoff = samples[-1][0] - recent_seconds
        recent_growth = nmath.growth_rate(values_from_series([s for s in samples if s[0] >= cutoff]))
    return UtilizationTrend(
        direction=trend_direction(growth),
        growth_rate=growth,
        seasonality="daily",
        peak_utilization=max(values) if values else 0.0,
        low_utilization=min(values) if values else 0.0,
        trend_confidence=TREND_CONFIDENCE,
        recent_growth_rate=recent_growth,
    )


def forecast(current: CapacitySnapshot, trend: UtilizationTrend, now: Optional[datetime] = None) -> TenantForecast:
    """Linear 30-day projection of every dimension, plus exhaustion estimate"""
    now = now or _utcnow()
    predicted = current.scaled(1.0 + trend.growth_rate * FORECAST_HORIZON_DAYS)

    exhaustion = None
    if trend.growth_rate > EXHAUSTION_GROWTH_THRESHOLD:
        days = int(90.0 / (trend.growth_rate * 100))
        if 0 < days < EXHAUSTION_MAX_DAYS:
            exhaustion = now + timedelta(days=days)

    actions: List[str] = []
    if predicted.cpu_usage > 80:
        actions.append("Scale up CPU resources")
    if predicted.memory_usage > 80:
        actions.append("Increase memory allocation")
    if trend.growth_rate > 0.2:
        actions.append("Consider horizontal scaling")

    return TenantForecast(
        time_horizon=f"{FORECAST_HORIZON_DAYS}d",
        predicted_capacity=predicted,
        confidence_interval=FORECAST_CONFIDENCE,
        capacity_exhaustion_date=exhaustion,
        recommended_actions=tuple(actions),
    )


def analyze_bottlenecks(current: CapacitySnapshot) -> BottleneckAnalysis:
    """Rank CPU / memory / storage utilization and the error rate.

    The highest utilization is primary; an error rate above 5 overrides it
    when its raw value is larger, which compares a rate with a percentage.
    That case is flagged with units_mismatch.
    """
    secondary: List[str] = []
    primary = "None"
    max_utilization = 0.0
    for resource, utilization in (
        ("CPU", current.cpu_usage),
        ("Memory", current.memory_usage),
        ("Storage", current.storage_usage),
    ):
        if utilization > BOTTLENECK_THRESHOLD:
            secondary.append(resource)
        if utilization > max_utilization:
            max_utilization = utilization
            primary = resource

    units_mismatch = False
    if current.error_rate > ERROR_RATE_THRESHOLD:
        secondary.append("Error Rate")
        if current.error_rate > max_utilization:
            primary = "Error Rate"
            units_mismatch = True

    if max_utilization > 80:
        impact = "high"
    elif max_utilization > 60:
        impact = "medium"
    else:
        impact = "low"

    return BottleneckAnalysis(
        primary_bottleneck=primary,
        secondary_bottlenecks=tuple(secondary),
        impact_assessment=impact,
        mitigation_steps=MITIGATION_STEPS.get(primary, DEFAULT_MITIGATION),
        units_mismatch=units_mismatch,
    )


def _tiered(value: float, tiers: Sequence[Tuple[float, float]]) -> float:
    for threshold, points in tiers:
        if value > threshold:
            return points
    return 0.0


def tenant_risk_level(
    current: CapacitySnapshot,
    trend: UtilizationTrend,
    tenant_forecast: TenantForecast,
    now: Optional[datetime] = None,
) -> str:
    points = 0.0
    points += _tiered(current.cpu_usage, ((90, 3), (80, 2), (70, 1)))
    points += _tiered(current.memory_usage, ((90, 3), (80, 2), (70, 1)))
    points += _tiered(trend.growth_rate, ((0.3, 2), (0.1, 1)))
    points += _tiered(current.error_rate, ((10, 2), (5, 1)))

    if tenant_forecast.capacity_exhaustion_date is not None:
        now = now or _utcnow()
        days = int((tenant_forecast.capacity_exhaustion_date - now).total_seconds() // 86400)
        if days < 30:
            points += 3
        elif days < 60:
            points += 2
        elif days < 90:
            points += 1

    if points >= 6:
        return "critical"
    if points >= 4:
        return "high"
    if points >= 2:
        return "medium"
    return "low"


def tenant_recommendations(
    current: CapacitySnapshot, trend: UtilizationTrend, bottleneck: BottleneckAnalysis
) -> Tuple[str, ...]:
    recs: List[str] = []
    if current.cpu_usage > 80:
        recs.append("Increase CPU allocation")
    if current.memory_usage > 80:
        recs.append("Increase memory allocation")
    if current.error_rate > ERROR_RATE_THRESHOLD:
        recs.append("Investigate and reduce error rate")
    if trend.growth_rate > 0.2:
        recs.append("Plan for rapid growth - consider preemptive scaling")
    if bottleneck.primary_bottleneck != "None":
        recs.append(f"Address {bottleneck.primary_bottleneck} bottleneck")
    if not recs:
        recs.append("Monitor current usage patterns")
    return tuple(recs)


def _days_until(moment: Optional[datetime], now: datetime) -> Optional[int]:
    if moment is None:
        return None
    return int((moment - now).total_seconds() // 86400)


def summarize(reports: Sequence[TenantCapacityReport], now: Optional[datetime] = None) -> CapacitySummary:
    if not reports:
        return CapacitySummary()
    now = now or _utcnow()
    average = sum((r.current.cpu_usage + r.current.memory_usage) / 2 for r in reports) / len(reports)
    exhaustion_days = [
        d for d in (_days_until(r.forecast.capacity_exhaustion_date, now) for r in reports) if d is not None
    ]
    return CapacitySummary(
        total_tenants=len(reports),
        total_ingestion_rate=sum(r.current.ingestion_rate for r in reports),
        total_active_series=sum(r.current.active_series for r in reports),
        average_utilization=average,
        capacity_utilization=min(average, 100.0),
        projected_growth_rate=sum(r.trend.growth_rate for r in reports) / len(reports),
        estimated_capacity_days=min(exhaustion_days) if exhaustion_days else None,
    )


def forecasting_summary(reports: Sequence[TenantCapacityReport]) -> ForecastingSummary:
    if not reports:
        return ForecastingSummary()
    increasing = sum(1 for r in reports if r.trend.direction == "increasing")
    average_growth = sum(r.trend.growth_rate for r in reports) / len(reports)
    dates = [r.forecast.capacity_exhaustion_date for r in reports if r.forecast.capacity_exhaustion_date]
    earliest = min(dates) if dates else None

    scaling: List[str] = []
    if average_growth > 0.2:
        scaling.append("Consider cluster-level scaling")
    if earliest is not None:
        scaling.append("Address capacity exhaustion risks")

    return ForecastingSummary(
        global_trend="increasing" if increasing / len(reports) > 0.6 else "stable",
        predicted_growth_rate=average_growth,
        capacity_exhaustion_date=earliest,
        scaling_recommendations=tuple(scaling),
        confidence_level=SUMMARY_CONFIDENCE,
    )


def assess_risk(reports: Sequence[TenantCapacityReport]) -> RiskAssessment:
    counts = {level: 0 for level in RISK_ORDER}
    for r in reports:
        counts[r.risk_level] = counts.get(r.risk_level, 0) + 1

    overall = "low"
    for level in RISK_ORDER:
        if counts.get(level):
            overall = level

    factors: List[RiskFactor] = []
    if counts["high"] + counts["critical"] > 0:
        factors.append(RiskFactor(
            factor="High Resource Utilization",
            severity="high",
            probability=0.8,
            impact="Service degradation or outages",
            description="Multiple tenants showing high resource utilization",
        ))

    return RiskAssessment(
        overall_risk_level=overall,
        risk_counts=counts,
        risk_factors=tuple(factors),
        alert_thresholds=dict(ALERT_THRESHOLDS),
    )


def _average(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def analyze_trends(reports: Sequence[TenantCapacityReport], period: ReportPeriod) -> TrendAnalysis:
    recent_growth = _average(r.trend.recent_growth_rate for r in reports)
    period_growth = _average(r.trend.growth_rate for r in reports)
    week_start = max(period.start_date, period.end_date - timedelta(days=7))

    weekly = (PeriodTrend(
        period="Last 7 days",
        start_date=week_start,
        end_date=period.end_date,
        growth_rate=recent_growth,
        direction=trend_direction(recent_growth),
        confidence=TREND_CONFIDENCE,
    ),) if reports else ()
    monthly = (PeriodTrend(
        period=f"Last {period.duration}",
        start_date=period.start_date,
        end_date=period.end_date,
        growth_rate=period_growth,
        direction=trend_direction(period_growth),
        confidence=SUMMARY_CONFIDENCE,
    ),) if reports else ()

    counts = {"increasing": 0, "stable": 0, "decreasing": 0}
    for r in reports:
        counts[r.trend.direction] = counts.get(r.trend.direction, 0) + 1
    return TrendAnalysis(weekly_trends=weekly, monthly_trends=monthly, direction_counts=counts)


def report_recommendations(
    summary: CapacitySummary, risk: RiskAssessment, forecasting: ForecastingSummary
) -> Tuple[str, ...]:
    recs: List[str] = []
    if summary.average_utilization > 80:
        recs.append("URGENT: Average utilization is high - immediate scaling required")
    if risk.overall_risk_level == "critical":
        recs.append("CRITICAL: Multiple high-risk tenants detected - review immediately")
    if forecasting.scaling_recommendations:
        recs.append("Scale cluster resources based on growth projections")
    if not recs:
        recs.append("Capacity utilization is within acceptable ranges")
    recs.append("Schedule regular capacity reviews")
    recs.append("Monitor trends and adjust thresholds as needed")
    return tuple(recs)


class CapacityPlanner:
    """Builds capacity reports from tenant usage series

    Args:
        metrics: Metrics collaborator providing tenant series
        max_workers: Pool size for per-tenant report generation
    """

    def __init__(self, metrics: Optional[MimirMetricsClient] = None, max_workers: int = MAX_WORKERS):
        self.metrics = metrics or MimirMetricsClient()
        self.max_workers = max_workers

    def current_snapshot(self, tenant_id: str, deadline: Optional[Deadline] = None) -> CapacitySnapshot:
        """24h average of every capacity dimension.

        Raises:
            MetricsUnavailable: no usage could be read for the tenant
        """
        series = self.metrics.get_tenant_series(tenant_id, SNAPSHOT_WINDOW, deadline=deadline)

        def mean(metric: str) -> float:
            values = values_from_series(series.get(metric, []))
            return nmath.avg(values) if values else 0.0

        return CapacitySnapshot(
            ingestion_rate=mean("ingestion_rate"),
            active_series=mean("active_series"),
            memory_usage=mean("memory_utilization"),
            cpu_usage=mean("cpu_usage"),
            storage_usage=mean("storage_usage"),
            queue_depth=mean("queue_depth"),
            error_rate=mean("error_rate"),
        )

    def utilization_trend(
        self, tenant_id: str, period: ReportPeriod, deadline: Optional[Deadline] = None
    ) -> UtilizationTrend:
        """Trend of the tenant's ingestion rate over the report period; stable when unreadable"""
        window = f"{int(period.seconds)}s"
        try:
            series = self.metrics.get_tenant_series(
                tenant_id, window, deadline=deadline, metrics=["ingestion_rate"]
            )
        except (MetricsUnavailable, PrometheusError) as e:
            logger.warning(f"Failed to analyze utilization trend for {tenant_id}: {e}")
            return UtilizationTrend(direction="stable", growth_rate=0.0)
        return build_trend(series.get("ingestion_rate", []))

    def tenant_report(
        self,
        tenant_id: str,
        period: ReportPeriod,
        deadline: Optional[Deadline] = None,
        now: Optional[datetime] = None,
    ) -> TenantCapacityReport:
        now = now or _utcnow()
        current = self.current_snapshot(tenant_id, deadline)
        trend = self.utilization_trend(tenant_id, period, deadline)
        tenant_forecast = forecast(current, trend, now)
        bottleneck = analyze_bottlenecks(current)
        return TenantCapacityReport(
            tenant_name=tenant_id,
            current=current,
            trend=trend,
            forecast=tenant_forecast,
            bottleneck=bottleneck,
            risk_level=tenant_risk_level(current, trend, tenant_forecast, now),
            recommendations=tenant_recommendations(current, trend, bottleneck),
        )

    def generate_report(
        self,
        report_type: str,
        tenant_ids: Iterable[str],
        deadline: Optional[Deadline] = None,
    ) -> CapacityReport:
        """Cluster-wide capacity report; tenants that fail are left out"""
        tenant_ids = list(dict.fromkeys(tenant_ids))
        now = _utcnow()
        period = resolve_period(report_type, now)
        logger.info(f"Generating {report_type} capacity report for {len(tenant_ids)} tenants")

        results = bounded_map(
            lambda t: self.tenant_report(t, period, deadline, now),
            tenant_ids,
            self.max_workers,
            deadline=deadline,
            label="tenant",
        )
        reports = tuple(results[t] for t in tenant_ids if t in results)

        summary = summarize(reports, now)
        forecasting = forecasting_summary(reports)
        risk = assess_risk(reports)
        report = CapacityReport(
            report_id=f"{report_type}_{int(now.timestamp())}",
            generated_at=now,
            report_type=report_type,
            period=period,
            summary=summary,
            tenant_reports=reports,
            forecasting=forecasting,
            risk_assessment=risk,
            trend_analysis=analyze_trends(reports, period),
            recommendations=report_recommendations(summary, risk, forecasting),
        )
        logger.info(f"Generated {report_type} capacity report with {len(reports)} tenant reports")
        return report


def generate_capacity_report(
    report_type: str,
    tenant_ids: Iterable[str],
    metrics: Optional[MimirMetricsClient] = None,
    deadline: Optional[Deadline] = None,
) -> CapacityReport:
    return CapacityPlanner(metrics=metrics).generate_report(report_type, tenant_ids, deadline=deadline)
