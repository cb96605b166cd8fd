"""
Usage recommendation analysis - Mimir limits vs. observed tenant usage
For every catalog limit the tenant's effective value is compared with usage
statistics (peak / average / p95 / p99, worst value across the analysis
windows) and a recommendation with risk, confidence, priority and remediation
steps is produced. Limits the tenant does not configure are reported as
missing with a conservative synthetic recommendation.

Two recommendation policies exist:
- percentile (default): category-specific percentile multipliers
- buffer: flat 20/15/10% buffer over peak by category tier
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from concurrency import Deadline, bounded_map
from config import ANALYSIS_WINDOWS, MAX_WORKERS, MIMIR_NAMESPACE, RECOMMENDATION_POLICY
from limits.catalog import LIMIT_CATALOG, LimitDefinition
from limits.discovery import ConfigDiscoverer
from limits.models import DiscoveredLimits
from limits.values import ABSENT, LimitValue, TypeCoercionError
from metrics.prometheus_client import MetricsUnavailable, PrometheusError, MimirMetricsClient
from normalize import math as nmath
from normalize.series import values_from_series

logger = logging.getLogger(__name__)

POLICY_PERCENTILE = "percentile"
POLICY_BUFFER = "buffer"

LEVEL_WEIGHTS = {"critical": 4.0, "high": 3.0, "medium": 2.0, "low": 1.0}
# Legacy 0-100 severity per level
LEVEL_SCORES = {"critical": 100.0, "high": 75.0, "medium": 50.0, "low": 25.0}

MISSING_LIMIT_CONFIDENCE = 0.8
MISSING_LIMIT_MULTIPLIER = 1.5

TIER_BUFFER_PERCENT = {"critical": 20.0, "important": 15.0, "regular": 10.0}


class ConfigResolutionError(Exception):
    """A tenant's effective limit configuration could not be built"""
    pass


# =============================================================================
# Value objects
# =============================================================================
@dataclass(frozen=True)
class UsageSample:
    peak: float = 0.0
    average: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "UsageSample":
        if not values:
            return cls()
        return cls(
            peak=nmath.p100(values),
            average=nmath.avg(values),
            p95=nmath.p95(values),
            p99=nmath.p99(values),
        )

    def combine(self, other: "UsageSample") -> "UsageSample":
        """Worst case of two windows, statistic by statistic"""
        return UsageSample(
            peak=max(self.peak, other.peak),
            average=max(self.average, other.average),
            p95=max(self.p95, other.p95),
            p99=max(self.p99, other.p99),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"peak": self.peak, "average": self.average, "p95": self.p95, "p99": self.p99}


@dataclass(frozen=True)
class Recommendation:
    limit_name: str
    category: str
    current_value: Optional[float]
    recommended_value: float
    observed_peak: float
    average_usage: float
    usage_p95: float
    usage_p99: float
    risk_level: str
    confidence: float
    reason: str
    impact: str
    priority: str
    remediation_steps: Tuple[str, ...] = ()
    estimated_savings: Dict[str, str] = field(default_factory=dict)
    policy: str = POLICY_PERCENTILE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit_name": self.limit_name,
            "category": self.category,
            "current_value": self.current_value,
            "recommended_value": self.recommended_value,
            "observed_peak": self.observed_peak,
            "average_usage": self.average_usage,
            "usage_percentile_95": self.usage_p95,
            "usage_percentile_99": self.usage_p99,
            "risk_level": self.risk_level,
            "confidence": self.confidence,
            "reason": self.reason,
            "impact": self.impact,
            "priority": self.priority,
            "remediation_steps": list(self.remediation_steps),
            "estimated_savings": dict(self.estimated_savings),
            "policy": self.policy,
        }


@dataclass(frozen=True)
class TenantAnalysis:
    tenant_name: str
    analysis_time: datetime
    current_limits: Dict[str, LimitValue]
    missing_limits: Tuple[str, ...]
    recommendations: Tuple[Recommendation, ...]
    risk_score: float
    reliability_score: float
    performance_score: float
    cost_optimization_score: float
    summary: Dict[str, Any]

    def recommendation_for(self, limit_name: str) -> Optional[Recommendation]:
        for rec in self.recommendations:
            if rec.limit_name == limit_name:
                return rec
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_name": self.tenant_name,
            "analysis_time": self.analysis_time.isoformat(),
            "current_limits": {k: v.to_json() for k, v in sorted(self.current_limits.items())},
            "missing_limits": list(self.missing_limits),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "risk_score": self.risk_score,
            "reliability_score": self.reliability_score,
            "performance_score": self.performance_score,
            "cost_optimization_score": self.cost_optimization_score,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class LimitCheck:
    """Flat-buffer check of one configured limit against its observed peak"""
    limit_name: str
    current_value: float
    observed_peak: float
    recommended_value: float
    buffer_percent: float
    risk_level: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit_name": self.limit_name,
            "current_value": self.current_value,
            "observed_peak": self.observed_peak,
            "recommended_value": self.recommended_value,
            "buffer_percent": self.buffer_percent,
            "risk_level": self.risk_level,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class TenantLimitReport:
    tenant_name: str
    analysis_time: datetime
    current_config: Dict[str, LimitValue]
    checks: Tuple[LimitCheck, ...]
    missing_limits: Tuple[str, ...]
    risk_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_name": self.tenant_name,
            "analysis_time": self.analysis_time.isoformat(),
            "current_config": {k: v.to_json() for k, v in sorted(self.current_config.items())},
            "recommendations": [c.to_dict() for c in self.checks],
            "missing_limits": list(self.missing_limits),
            "risk_score": self.risk_score,
        }


# =============================================================================
# Policy functions
# =============================================================================
def metric_for_limit(limit_name: str) -> str:
    """Usage metric that a limit constrains"""
    name = limit_name.lower()
    if "ingestion_rate" in name:
        return "ingestion_rate"
    if "series_per_user" in name:
        return "active_series"
    if "memory" in name:
        return "memory_bytes"
    if "rejected" in name:
        return "rejected_samples"
    if "limits_reached" in name:
        return "limits_reached"
    return "ingestion_rate"


def percentile_recommendation(category: str, usage: UsageSample) -> float:
    if category == "ingestion":
        return usage.p99 * 1.2
    if category == "query":
        return usage.p95 * 1.3
    if category == "memory":
        return usage.peak * 1.25
    if category in ("alertmanager", "alerting"):
        return usage.peak * 1.5
    return usage.p95 * 1.25


def buffer_percent(definition: LimitDefinition) -> float:
    return TIER_BUFFER_PERCENT.get(definition.tier, TIER_BUFFER_PERCENT["regular"])


def buffer_recommendation(definition: LimitDefinition, peak: float) -> float:
    return peak * (1 + buffer_percent(definition) / 100)


def _ratio(usage: float, current: float) -> float:
    if current > 0:
        return usage / current
    return float("inf") if usage > 0 else 0.0


def assess_risk(current: float, usage: UsageSample) -> Tuple[str, float]:
    """Risk level and confidence from p99/p95 usage relative to the limit"""
    if _ratio(usage.p99, current) > 0.9:
        return "critical", 0.95
    p95_ratio = _ratio(usage.p95, current)
    if p95_ratio > 0.8:
        return "high", 0.85
    if p95_ratio > 0.6:
        return "medium", 0.75
    return "low", 0.65


def classify_utilization(utilization_percent: float) -> str:
    """Risk level from peak utilization (% of limit); boundaries are inclusive"""
    if utilization_percent >= 95:
        return "critical"
    if utilization_percent >= 80:
        return "high"
    if utilization_percent >= 60:
        return "medium"
    return "low"


_UTILIZATION_CONFIDENCE = {"critical": 0.95, "high": 0.85, "medium": 0.75, "low": 0.65}


def impact_for(category: str, risk_level: str) -> str:
    if risk_level == "critical" or category == "ingestion":
        return "high"
    if risk_level == "high" or category == "query":
        return "medium"
    return "low"


def priority_for(impact: str, risk_level: str) -> str:
    if impact == "high" or risk_level == "critical":
        return "critical"
    if impact == "medium" or risk_level == "high":
        return "high"
    if impact == "low" and risk_level == "medium":
        return "medium"
    return "low"


def percentile_reason(definition: LimitDefinition, current: float, usage: UsageSample) -> str:
    reason = f"Limit '{definition.name}' (current: {current:.2f}) shows "
    if usage.p99 > current * 0.9:
        reason += f"99th percentile usage ({usage.p99:.2f}) exceeds 90% of the limit and is dangerously close. "
    elif usage.p95 > current * 0.8:
        reason += f"95th percentile usage ({usage.p95:.2f}) exceeds 80% of the limit, indicating potential risk. "
    elif usage.p95 > current * 0.6:
        reason += f"95th percentile usage ({usage.p95:.2f}) exceeds 60% of the limit, monitoring needed. "
    else:
        reason += f"usage patterns are healthy (peak: {usage.peak:.2f}, avg: {usage.average:.2f}). "
    reason += f"Recommendation based on {definition.category} category analysis."
    return reason


def utilization_reason(utilization: float, risk_level: str) -> str:
    if risk_level == "critical":
        return (f"Critical: Current utilization is {utilization:.1f}% of limit. "
                "Immediate action required to prevent rejections.")
    if risk_level == "high":
        return (f"High: Current utilization is {utilization:.1f}% of limit. "
                "Consider increasing limit to prevent future issues.")
    if risk_level == "medium":
        return (f"Medium: Current utilization is {utilization:.1f}% of limit. "
                "Monitor closely and consider optimization.")
    return (f"Low: Current utilization is {utilization:.1f}% of limit. "
            "Limit appears adequate for current usage.")


def remediation_steps(definition: LimitDefinition) -> Tuple[str, ...]:
    steps = [
        f"Update {definition.name} limit in runtime overrides",
        "Deploy configuration change",
        "Monitor metrics for 1 hour",
        "Check for any errors or warnings",
        "Monitor for 24 hours",
        "Adjust if needed based on usage patterns",
    ]
    if definition.category == "ingestion":
        steps.insert(0, "Critical: Monitor ingestion rate closely")
    return tuple(steps)


def estimated_savings(current: float, recommended: float, average_usage: float) -> Dict[str, str]:
    savings = {
        "reliability_improvement": "medium",
        "performance_impact": "positive",
        "cost_optimization": "low",
    }
    if recommended < current:
        savings["cost_optimization"] = "high"
        savings["resource_savings"] = f"{(current - recommended) / current * 100:.1f}%"
    if average_usage > current * 0.8:
        savings["reliability_improvement"] = "high"
    return savings


def missing_limit_recommendation(definition: LimitDefinition, usage: UsageSample) -> Recommendation:
    recommended = max(definition.default_value, usage.peak * MISSING_LIMIT_MULTIPLIER)
    reason = (
        f"Limit '{definition.name}' is not configured. Based on observed peak usage of "
        f"{usage.peak:.2f}, recommend setting to {recommended:.2f} for reliability."
    )
    return Recommendation(
        limit_name=definition.name,
        category=definition.category,
        current_value=None,
        recommended_value=recommended,
        observed_peak=usage.peak,
        average_usage=usage.average,
        usage_p95=usage.p95,
        usage_p99=usage.p99,
        risk_level="high",
        confidence=MISSING_LIMIT_CONFIDENCE,
        reason=reason,
        impact="high",
        priority="critical",
        remediation_steps=("Add limit to runtime overrides", "Monitor for 24 hours", "Adjust based on usage"),
        estimated_savings={"reliability_improvement": "high"},
    )


def configured_limit_recommendation(
    definition: LimitDefinition,
    current: float,
    usage: UsageSample,
    policy: str = POLICY_PERCENTILE,
) -> Recommendation:
    if policy == POLICY_BUFFER:
        recommended = buffer_recommendation(definition, usage.peak)
        utilization = _ratio(usage.peak, current) * 100
        risk_level = classify_utilization(utilization)
        confidence = _UTILIZATION_CONFIDENCE[risk_level]
        reason = utilization_reason(utilization, risk_level)
    else:
        recommended = percentile_recommendation(definition.category, usage)
        risk_level, confidence = assess_risk(current, usage)
        reason = percentile_reason(definition, current, usage)

    impact = impact_for(definition.category, risk_level)
    return Recommendation(
        limit_name=definition.name,
        category=definition.category,
        current_value=current,
        recommended_value=recommended,
        observed_peak=usage.peak,
        average_usage=usage.average,
        usage_p95=usage.p95,
        usage_p99=usage.p99,
        risk_level=risk_level,
        confidence=confidence,
        reason=reason,
        impact=impact,
        priority=priority_for(impact, risk_level),
        remediation_steps=remediation_steps(definition),
        estimated_savings=estimated_savings(current, recommended, usage.average),
        policy=policy,
    )


# =============================================================================
# Scores
# =============================================================================
def risk_score(recommendations: Sequence[Recommendation], missing_count: int) -> float:
    total = 0.0
    total_weight = 0.0
    for rec in recommendations:
        weight = LEVEL_WEIGHTS.get(rec.risk_level, 1.0)
        total += weight * (1 - rec.confidence)
        total_weight += weight
    total += missing_count * 0.1
    if total_weight > 0:
        total = total / total_weight
    return nmath.clamp(total, 0.0, 1.0)


def reliability_score(recommendations: Sequence[Recommendation], missing_count: int) -> float:
    """Coverage-based reliability; missing limits are also present in recommendations"""
    configured = [r for r in recommendations if r.current_value is not None]
    total = len(configured) + missing_count
    if total == 0:
        return 0.0
    score = 1.0
    score -= missing_count / total * 0.5
    high_risk = sum(1 for r in recommendations if r.risk_level in ("critical", "high"))
    score -= high_risk / total * 0.3
    return max(score, 0.0)


def performance_score(recommendations: Sequence[Recommendation]) -> float:
    score = 1.0
    for rec in recommendations:
        if rec.current_value is None or rec.current_value <= 0:
            continue
        usage_ratio = rec.average_usage / rec.current_value
        if usage_ratio > 0.8:
            score -= 0.1
        elif usage_ratio < 0.2:
            score -= 0.05
    return max(score, 0.0)


def cost_optimization_score(recommendations: Sequence[Recommendation]) -> float:
    score = 1.0
    for rec in recommendations:
        if rec.current_value is None:
            continue
        if rec.current_value > rec.recommended_value * 1.2:
            score += 0.1
    return min(score, 1.0)


def legacy_risk_score(checks: Sequence[LimitCheck], missing_count: int) -> float:
    """0-100 style score: weighted level severity plus 10 per missing limit"""
    if not checks and missing_count == 0:
        return 0.0
    total = 0.0
    total_weight = 0.0
    for check in checks:
        weight = LEVEL_WEIGHTS.get(check.risk_level, 1.0)
        total += LEVEL_SCORES.get(check.risk_level, 0.0) * weight
        total_weight += weight
    total += missing_count * 10
    if total_weight > 0:
        return total / total_weight
    return total


def build_summary(recommendations: Sequence[Recommendation], missing_limits: Sequence[str]) -> Dict[str, Any]:
    critical = sum(1 for r in recommendations if r.priority == "critical")
    high_priority = sum(1 for r in recommendations if r.priority == "high")
    reliability_issues = sum(1 for r in recommendations if r.risk_level in ("critical", "high"))
    performance_issues = sum(1 for r in recommendations if r.impact == "high")
    cost_opportunities = sum(
        1 for r in recommendations if r.estimated_savings.get("cost_optimization") == "high"
    )

    next_actions: List[str] = []
    if critical:
        next_actions.append("Address critical limit recommendations immediately")
    if missing_limits:
        next_actions.append("Configure missing limits for reliability")
    if cost_opportunities:
        next_actions.append("Review cost optimization opportunities")
    if not next_actions:
        next_actions.append("All limits are well-configured")

    return {
        "total_recommendations": len(recommendations),
        "critical_recommendations": critical,
        "high_priority_recommendations": high_priority,
        "missing_limits": len(missing_limits),
        "reliability_issues": reliability_issues,
        "performance_issues": performance_issues,
        "cost_optimization_opportunities": cost_opportunities,
        "next_actions": next_actions,
    }


# =============================================================================
# Analyzer
# =============================================================================
class LimitAnalyzer:
    """Analyzes one or more tenants' limits against their usage

    Args:
        metrics: Metrics collaborator (tenant series / peak values)
        discoverer: Config discoverer; run once per analysis unless `discovered` is given
        discovered: Pre-computed discovery snapshot shared across analyses
        namespace: Mimir namespace handed to discovery
        windows: Trailing windows sampled for usage statistics
        policy: "percentile" or "buffer"
    """

    def __init__(
        self,
        metrics: Optional[MimirMetricsClient] = None,
        discoverer: Optional[ConfigDiscoverer] = None,
        discovered: Optional[DiscoveredLimits] = None,
        namespace: str = MIMIR_NAMESPACE,
        windows: Sequence[str] = ANALYSIS_WINDOWS,
        policy: str = RECOMMENDATION_POLICY,
        max_workers: int = MAX_WORKERS,
        catalog: Sequence[LimitDefinition] = LIMIT_CATALOG,
    ):
        if policy not in (POLICY_PERCENTILE, POLICY_BUFFER):
            raise ValueError(f"unknown recommendation policy: {policy}")
        self.metrics = metrics or MimirMetricsClient()
        self._discoverer = discoverer
        self.discovered = discovered
        self.namespace = namespace
        self.windows = list(windows)
        self.policy = policy
        self.max_workers = max_workers
        self.catalog = tuple(catalog)

    @property
    def discoverer(self) -> ConfigDiscoverer:
        if self._discoverer is None:
            self._discoverer = ConfigDiscoverer()
        return self._discoverer

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def _discovery(self, deadline: Optional[Deadline]) -> DiscoveredLimits:
        if self.discovered is not None:
            return self.discovered
        try:
            return self.discoverer.discover_all(self.namespace, deadline=deadline)
        except Exception as e:
            raise ConfigResolutionError(f"limit discovery failed: {e}") from e

    def resolve_config(self, tenant_id: str, deadline: Optional[Deadline] = None) -> Dict[str, LimitValue]:
        """Effective limits for a tenant: globals overlaid with the tenant's own.

        Raises:
            ConfigResolutionError: no tenant ID, or discovery itself failed
        """
        if not tenant_id:
            raise ConfigResolutionError("tenant ID must not be empty")
        discovered = self._discovery(deadline)
        entry = discovered.resolve_tenant(tenant_id)
        if entry is None:
            logger.warning(f"No specific configuration found for tenant {tenant_id}, using global limits only")
        elif entry.tenant_id != tenant_id:
            logger.info(f"Found tenant limits for {tenant_id} using alternative name {entry.tenant_id}")
        else:
            logger.info(f"Found tenant-specific limits for {tenant_id} from source: {entry.source}")
        return discovered.effective_limits(tenant_id)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------
    def _window_usage(self, tenant_id: str, window: str, deadline: Optional[Deadline]) -> Dict[str, UsageSample]:
        series = self.metrics.get_tenant_series(tenant_id, window, deadline=deadline)
        return {metric: UsageSample.from_values(values_from_series(samples)) for metric, samples in series.items()}

    def usage_statistics(self, tenant_id: str, deadline: Optional[Deadline] = None) -> Dict[str, UsageSample]:
        """Per-metric usage, worst statistic across all analysis windows.

        A window whose queries fail contributes nothing; the others still count.
        """
        def fetch(window: str) -> Dict[str, UsageSample]:
            try:
                return self._window_usage(tenant_id, window, deadline)
            except (MetricsUnavailable, PrometheusError) as e:
                logger.warning(f"Failed to get usage for {tenant_id} in {window}: {e}")
                return {}

        per_window = bounded_map(fetch, self.windows, self.max_workers, deadline=deadline, label="window")
        combined: Dict[str, UsageSample] = {}
        for window in self.windows:
            for metric, sample in per_window.get(window, {}).items():
                combined[metric] = combined[metric].combine(sample) if metric in combined else sample
        return combined

    def observed_peak(self, tenant_id: str, metric: str, deadline: Optional[Deadline] = None) -> float:
        """Highest peak of `metric` over all windows (0.0 when nothing answered)"""
        max_peak = 0.0
        for window in self.windows:
            try:
                peaks = self.metrics.get_peak_values(tenant_id, window, deadline=deadline)
            except (MetricsUnavailable, PrometheusError) as e:
                logger.warning(f"Failed to get peak values for {tenant_id} in {window}: {e}")
                continue
            max_peak = max(max_peak, peaks.get(metric, 0.0))
        return max_peak

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def analyze_limit(
        self,
        definition: LimitDefinition,
        value: LimitValue,
        usage: Dict[str, UsageSample],
    ) -> Recommendation:
        """Recommendation for one catalog limit.

        Raises:
            TypeCoercionError: the configured value is not numeric
        """
        sample = usage.get(metric_for_limit(definition.name), UsageSample())
        if value.is_absent:
            return missing_limit_recommendation(definition, sample)
        return configured_limit_recommendation(definition, value.to_float(), sample, self.policy)

    def analyze_tenant(self, tenant_id: str, deadline: Optional[Deadline] = None) -> TenantAnalysis:
        """Full limit analysis for one tenant.

        Raises:
            ConfigResolutionError: the tenant's effective configuration cannot be built
        """
        logger.info(f"Analyzing limits for tenant: {tenant_id}")
        current = self.resolve_config(tenant_id, deadline)
        usage = self.usage_statistics(tenant_id, deadline)

        recommendations: List[Recommendation] = []
        missing: List[str] = []
        for definition in self.catalog:
            value = current.get(definition.name, ABSENT)
            try:
                rec = self.analyze_limit(definition, value, usage)
            except TypeCoercionError as e:
                logger.warning(f"Skipping limit {definition.name} for {tenant_id}: {e}")
                continue
            if value.is_absent:
                missing.append(definition.name)
            recommendations.append(rec)

        analysis = TenantAnalysis(
            tenant_name=tenant_id,
            analysis_time=datetime.now(timezone.utc),
            current_limits=dict(current),
            missing_limits=tuple(missing),
            recommendations=tuple(recommendations),
            risk_score=risk_score(recommendations, len(missing)),
            reliability_score=reliability_score(recommendations, len(missing)),
            performance_score=performance_score(recommendations),
            cost_optimization_score=cost_optimization_score(recommendations),
            summary=build_summary(recommendations, missing),
        )
        logger.info(
            f"Completed analysis for {tenant_id}: {len(recommendations)} recommendations, "
            f"risk score: {analysis.risk_score:.2f}"
        )
        return analysis

    def analyze_tenant_limits(self, tenant_id: str, deadline: Optional[Deadline] = None) -> TenantLimitReport:
        """Flat-buffer check of every configured limit against its observed peak"""
        current = self.resolve_config(tenant_id, deadline)
        peaks: Dict[str, float] = {}
        checks: List[LimitCheck] = []
        missing: List[str] = []

        for definition in self.catalog:
            value = current.get(definition.name, ABSENT)
            if value.is_absent:
                missing.append(definition.name)
                continue
            try:
                current_value = value.to_float()
            except TypeCoercionError as e:
                logger.warning(f"Skipping limit {definition.name} for {tenant_id}: {e}")
                continue
            metric = metric_for_limit(definition.name)
            if metric not in peaks:
                peaks[metric] = self.observed_peak(tenant_id, metric, deadline)
            peak = peaks[metric]
            utilization = _ratio(peak, current_value) * 100
            level = classify_utilization(utilization)
            checks.append(LimitCheck(
                limit_name=definition.name,
                current_value=current_value,
                observed_peak=peak,
                recommended_value=buffer_recommendation(definition, peak),
                buffer_percent=buffer_percent(definition),
                risk_level=level,
                reason=utilization_reason(utilization, level),
            ))

        return TenantLimitReport(
            tenant_name=tenant_id,
            analysis_time=datetime.now(timezone.utc),
            current_config=dict(current),
            checks=tuple(checks),
            missing_limits=tuple(missing),
            risk_score=legacy_risk_score(checks, len(missing)),
        )

    def analyze_tenants(
        self,
        tenant_ids: Iterable[str],
        deadline: Optional[Deadline] = None,
        legacy: bool = False,
    ) -> Dict[str, Any]:
        """Analyze many tenants on the pool; failing tenants are logged and dropped.

        Discovery runs once and is shared by every tenant of the batch. With
        `legacy` the flat-buffer TenantLimitReport is produced instead.
        """
        tenant_ids = list(dict.fromkeys(tenant_ids))
        if not tenant_ids:
            return {}
        shared = self._discovery(deadline)
        batch = LimitAnalyzer(
            metrics=self.metrics,
            discoverer=self._discoverer,
            discovered=shared,
            namespace=self.namespace,
            windows=self.windows,
            policy=self.policy,
            max_workers=self.max_workers,
            catalog=self.catalog,
        )
        run = batch.analyze_tenant_limits if legacy else batch.analyze_tenant
        results = bounded_map(lambda t: run(t, deadline), tenant_ids, self.max_workers, deadline=deadline, label="tenant")
        return {t: results[t] for t in tenant_ids if t in results}


def analyze_tenant(
    tenant_id: str,
    metrics: Optional[MimirMetricsClient] = None,
    discovered: Optional[DiscoveredLimits] = None,
    deadline: Optional[Deadline] = None,
) -> TenantAnalysis:
    return LimitAnalyzer(metrics=metrics, discovered=discovered).analyze_tenant(tenant_id, deadline=deadline)
