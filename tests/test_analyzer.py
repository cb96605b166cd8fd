"""
Tests for the usage recommendation analyzer
"""
import pytest

from limits.analyzer import (
    ConfigResolutionError,
    LimitAnalyzer,
    Recommendation,
    UsageSample,
    analyze_tenant,
    assess_risk,
    build_summary,
    classify_utilization,
    configured_limit_recommendation,
    cost_optimization_score,
    estimated_savings,
    metric_for_limit,
    missing_limit_recommendation,
    percentile_reason,
    percentile_recommendation,
    performance_score,
    priority_for,
    reliability_score,
    risk_score,
)
from limits.catalog import LimitDefinition, get_limit
from limits.models import DiscoveredLimits, TenantLimitSet
from limits.values import LimitValue


WINDOWS = ["48h", "7d", "30d", "60d"]


def _rec(risk_level="low", confidence=0.65, current=100.0, recommended=100.0, average=50.0, priority="low", impact="low"):
    return Recommendation(
        limit_name="x", category="query", current_value=current, recommended_value=recommended,
        observed_peak=0.0, average_usage=average, usage_p95=0.0, usage_p99=0.0,
        risk_level=risk_level, confidence=confidence, reason="", impact=impact, priority=priority,
    )


def _acme_discovered(value=10000):
    d = DiscoveredLimits()
    d.merge_tenant(TenantLimitSet("acme", {"ingestion_rate": LimitValue.number(value)}, source="runtime-override"))
    return d


class TestRiskClassification:
    """Utilization boundaries are inclusive"""

    @pytest.mark.parametrize("utilization,expected", [
        (95.0, "critical"),
        (94.999, "high"),
        (80.0, "high"),
        (79.999, "medium"),
        (60.0, "medium"),
        (59.999, "low"),
        (0.0, "low"),
    ])
    def test_boundaries(self, utilization, expected):
        assert classify_utilization(utilization) == expected

    def test_percentile_risk(self):
        assert assess_risk(100, UsageSample(p99=91)) == ("critical", 0.95)
        assert assess_risk(100, UsageSample(p95=81, p99=90)) == ("high", 0.85)
        assert assess_risk(100, UsageSample(p95=61, p99=61)) == ("medium", 0.75)
        assert assess_risk(100, UsageSample(p95=60, p99=60)) == ("low", 0.65)

    def test_zero_limit_with_usage_is_critical(self):
        assert assess_risk(0, UsageSample(p99=1))[0] == "critical"
        assert assess_risk(0, UsageSample())[0] == "low"


class TestPolicies:
    def test_category_multipliers(self):
        usage = UsageSample(peak=100, average=50, p95=80, p99=90)
        assert percentile_recommendation("ingestion", usage) == pytest.approx(108)
        assert percentile_recommendation("query", usage) == pytest.approx(104)
        assert percentile_recommendation("memory", usage) == pytest.approx(125)
        assert percentile_recommendation("alertmanager", usage) == pytest.approx(150)
        assert percentile_recommendation("compactor", usage) == pytest.approx(100)

    def test_buffer_policy_by_tier(self):
        usage = UsageSample(peak=100, average=50, p95=80, p99=90)
        ingestion = configured_limit_recommendation(get_limit("ingestion_rate"), 1000, usage, "buffer")
        query = configured_limit_recommendation(get_limit("max_fetched_series_per_query"), 1000, usage, "buffer")
        other = configured_limit_recommendation(get_limit("enforce_metric_name"), 1000, usage, "buffer")
        assert ingestion.recommended_value == pytest.approx(120)
        assert query.recommended_value == pytest.approx(115)
        assert other.recommended_value == pytest.approx(110)
        assert ingestion.policy == "buffer"
        assert ingestion.risk_level == "low"

    def test_metric_mapping(self):
        assert metric_for_limit("ingestion_rate") == "ingestion_rate"
        assert metric_for_limit("max_global_series_per_user") == "active_series"
        assert metric_for_limit("ingester_memory_limit_bytes") == "memory_bytes"
        assert metric_for_limit("max_query_parallelism") == "ingestion_rate"

    def test_priority(self):
        assert priority_for("high", "low") == "critical"
        assert priority_for("low", "critical") == "critical"
        assert priority_for("medium", "low") == "high"
        assert priority_for("low", "medium") == "medium"
        assert priority_for("low", "low") == "low"

    def test_query_category_impact_not_below_medium(self):
        rec = configured_limit_recommendation(get_limit("max_fetched_series_per_query"), 1000, UsageSample(peak=1))
        assert rec.impact == "medium"
        assert rec.priority == "high"

    def test_estimated_savings(self):
        assert "resource_savings" not in estimated_savings(100, 120, 10)
        savings = estimated_savings(200, 150, 10)
        assert savings["cost_optimization"] == "high"
        assert savings["resource_savings"] == "25.0%"
        assert estimated_savings(100, 120, 90)["reliability_improvement"] == "high"

    @pytest.mark.parametrize("usage,expected", [
        (UsageSample(peak=95, p95=85, p99=92), "99th percentile usage (92.00) exceeds 90% of the limit"),
        (UsageSample(peak=85, p95=82, p99=85), "95th percentile usage (82.00) exceeds 80% of the limit"),
        (UsageSample(peak=70, p95=65, p99=70), "95th percentile usage (65.00) exceeds 60% of the limit"),
        (UsageSample(peak=30, average=20, p95=25, p99=28), "usage patterns are healthy"),
    ])
    def test_reason_names_threshold(self, usage, expected):
        reason = percentile_reason(get_limit("ingestion_rate"), 100, usage)
        assert expected in reason
        assert reason.endswith("Recommendation based on ingestion category analysis.")

    def test_remediation_order(self):
        rec = configured_limit_recommendation(get_limit("ingestion_rate"), 1000, UsageSample(peak=1))
        steps = list(rec.remediation_steps)
        assert steps[0].startswith("Critical")
        assert steps.index("Deploy configuration change") < steps.index("Monitor metrics for 1 hour")
        assert steps.index("Monitor metrics for 1 hour") < steps.index("Monitor for 24 hours")
        assert steps[-1].startswith("Adjust")


class TestMissingLimit:
    def test_default_wins_over_low_peak(self):
        definition = LimitDefinition("custom_limit", "test", 500, "units", "query")
        rec = missing_limit_recommendation(definition, UsageSample(peak=100))
        assert rec.recommended_value == 500
        assert rec.current_value is None
        assert rec.risk_level == "high"
        assert rec.priority == "critical"
        assert rec.confidence == 0.8

    def test_peak_scaled_when_above_default(self):
        definition = LimitDefinition("custom_limit", "test", 500, "units", "query")
        rec = missing_limit_recommendation(definition, UsageSample(peak=1000))
        assert rec.recommended_value == pytest.approx(1500)

    def test_observed_percentiles_are_reported(self):
        definition = LimitDefinition("custom_limit", "test", 500, "units", "query")
        rec = missing_limit_recommendation(definition, UsageSample(peak=1000, average=400, p95=800, p99=950))
        assert rec.usage_p95 == 800
        assert rec.usage_p99 == 950
        assert rec.to_dict()["usage_percentile_99"] == 950


class TestScores:
    def test_risk_score_weighted(self):
        recs = [_rec("critical", 0.95), _rec("low", 0.65)]
        # (4*0.05 + 1*0.35) / 5
        assert risk_score(recs, 0) == pytest.approx(0.11)

    def test_risk_score_missing_penalty_and_clamp(self):
        assert risk_score([], 3) == pytest.approx(0.3)
        assert risk_score([], 20) == 1.0

    def test_reliability_score(self):
        missing = _rec("high", 0.8, current=None)
        configured = [_rec("critical", 0.95), _rec("low", 0.65), _rec("low", 0.65)]
        # total 4, missing 1/4*0.5, high risk 2/4*0.3
        assert reliability_score(configured + [missing], 1) == pytest.approx(1 - 0.125 - 0.15)

    def test_reliability_score_empty(self):
        assert reliability_score([], 0) == 0.0

    def test_performance_score(self):
        recs = [_rec(average=90), _rec(average=10), _rec(average=50), _rec(current=None)]
        assert performance_score(recs) == pytest.approx(0.85)

    def test_cost_score_capped(self):
        recs = [_rec(current=200, recommended=100)]
        assert cost_optimization_score(recs) == 1.0

    def test_summary(self):
        recs = [_rec(priority="critical", risk_level="critical", impact="high")]
        summary = build_summary(recs, ["ingestion_rate"])
        assert summary["critical_recommendations"] == 1
        assert summary["missing_limits"] == 1
        assert summary["next_actions"][0] == "Address critical limit recommendations immediately"
        assert build_summary([], [])["next_actions"] == ["All limits are well-configured"]


class TestLimitAnalyzer:
    """Analyzer against fake collaborators"""

    def _analyzer(self, fake_metrics, discovered, policy="percentile", catalog=None):
        return LimitAnalyzer(
            metrics=fake_metrics,
            discovered=discovered,
            windows=WINDOWS,
            policy=policy,
            max_workers=4,
            catalog=catalog or [get_limit("ingestion_rate")],
        )

    def _acme_usage(self, fake_metrics, flat):
        for window, peak in zip(WINDOWS, (9500, 8000, 7000, 6000)):
            fake_metrics.set_series("acme", window, {"ingestion_rate": flat(peak)})

    @pytest.mark.parametrize("policy", ["percentile", "buffer"])
    def test_end_to_end_scenario(self, fake_metrics, flat, policy):
        """Peak 9500 against a 10000 limit is critical and recommends 11400"""
        self._acme_usage(fake_metrics, flat)
        analyzer = self._analyzer(fake_metrics, _acme_discovered(10000), policy=policy)

        analysis = analyzer.analyze_tenant("acme")
        rec = analysis.recommendation_for("ingestion_rate")

        assert rec.observed_peak == 9500
        assert rec.usage_p99 == pytest.approx(9500)
        assert rec.risk_level == "critical"
        assert rec.recommended_value == pytest.approx(11400)
        assert rec.priority == "critical"
        assert analysis.missing_limits == ()

    def test_unavailable_window_is_skipped(self, fake_metrics, flat):
        self._acme_usage(fake_metrics, flat)
        fake_metrics.unavailable.add(("acme", "48h"))
        analyzer = self._analyzer(fake_metrics, _acme_discovered(10000))

        rec = analyzer.analyze_tenant("acme").recommendation_for("ingestion_rate")

        assert rec.observed_peak == 8000
        assert rec.risk_level == "medium"

    def test_all_windows_unavailable(self, fake_metrics):
        fake_metrics.unavailable.add("acme")
        analyzer = self._analyzer(fake_metrics, _acme_discovered(10000))

        rec = analyzer.analyze_tenant("acme").recommendation_for("ingestion_rate")

        assert rec.observed_peak == 0.0
        assert rec.risk_level == "low"

    def test_tenant_value_overrides_global(self, fake_metrics):
        discovered = _acme_discovered(10000)
        discovered.global_limits["ingestion_rate"] = LimitValue.number(25000)
        analyzer = self._analyzer(fake_metrics, discovered)

        assert analyzer.resolve_config("acme")["ingestion_rate"].to_float() == 10000
        assert analyzer.resolve_config("globex")["ingestion_rate"].to_float() == 25000

    def test_name_variant_fallback(self, fake_metrics):
        discovered = DiscoveredLimits()
        discovered.merge_tenant(TenantLimitSet("tenant-Acme", {"ingestion_rate": LimitValue.number(42)}, source="configmap"))
        analyzer = self._analyzer(fake_metrics, discovered)

        assert analyzer.resolve_config("Acme")["ingestion_rate"].to_float() == 42

    def test_memory_limit_uses_byte_usage(self, fake_metrics, flat):
        gib = 1024 ** 3
        for window in WINDOWS:
            fake_metrics.set_series("acme", window, {"memory_bytes": flat(6 * gib), "memory_utilization": flat(42)})
        discovered = DiscoveredLimits()
        discovered.merge_tenant(TenantLimitSet(
            "acme", {"ingester_memory_limit_bytes": LimitValue.number(8 * gib)}, source="runtime-override",
        ))
        analyzer = self._analyzer(fake_metrics, discovered, catalog=[get_limit("ingester_memory_limit_bytes")])

        rec = analyzer.analyze_tenant("acme").recommendation_for("ingester_memory_limit_bytes")

        assert rec.observed_peak == 6 * gib
        assert rec.recommended_value == pytest.approx(7.5 * gib)
        assert rec.risk_level == "medium"
        assert rec.estimated_savings.get("resource_savings") != "100.0%"

    def test_missing_limits_reported(self, fake_metrics, flat):
        fake_metrics.trend["acme"] = {"ingestion_rate": flat(100)}
        analyzer = self._analyzer(
            fake_metrics, _acme_discovered(),
            catalog=[get_limit("ingestion_rate"), get_limit("ingestion_burst_size")],
        )

        analysis = analyzer.analyze_tenant("acme")

        assert analysis.missing_limits == ("ingestion_burst_size",)
        rec = analysis.recommendation_for("ingestion_burst_size")
        assert rec.current_value is None
        assert rec.recommended_value == 20000
        assert analysis.summary["missing_limits"] == 1

    def test_non_numeric_limit_is_skipped(self, fake_metrics):
        discovered = DiscoveredLimits()
        discovered.merge_tenant(TenantLimitSet("acme", {
            "ingestion_rate": LimitValue.string("unlimited"),
            "ingestion_burst_size": LimitValue.number(5),
        }, source="configmap"))
        analyzer = self._analyzer(
            fake_metrics, discovered,
            catalog=[get_limit("ingestion_rate"), get_limit("ingestion_burst_size")],
        )

        analysis = analyzer.analyze_tenant("acme")

        assert analysis.recommendation_for("ingestion_rate") is None
        assert "ingestion_rate" not in analysis.missing_limits
        assert analysis.recommendation_for("ingestion_burst_size") is not None

    def test_empty_tenant_id(self, fake_metrics):
        with pytest.raises(ConfigResolutionError):
            self._analyzer(fake_metrics, DiscoveredLimits()).analyze_tenant("")

    def test_discovery_failure(self, fake_metrics):
        class Broken:
            def discover_all(self, namespace, deadline=None):
                raise RuntimeError("cluster gone")

        analyzer = LimitAnalyzer(metrics=fake_metrics, discoverer=Broken(), windows=WINDOWS)
        with pytest.raises(ConfigResolutionError):
            analyzer.analyze_tenant("acme")

    def test_unknown_policy(self, fake_metrics):
        with pytest.raises(ValueError):
            LimitAnalyzer(metrics=fake_metrics, discovered=DiscoveredLimits(), policy="aggressive")

    def test_to_dict_field_names(self, fake_metrics, flat):
        self._acme_usage(fake_metrics, flat)
        out = self._analyzer(fake_metrics, _acme_discovered()).analyze_tenant("acme").to_dict()

        assert out["tenant_name"] == "acme"
        assert out["current_limits"] == {"ingestion_rate": 10000}
        rec = out["recommendations"][0]
        for key in ("usage_percentile_95", "usage_percentile_99", "remediation_steps", "estimated_savings"):
            assert key in rec

    def test_module_entry_point(self, fake_metrics, flat):
        self._acme_usage(fake_metrics, flat)
        analysis = analyze_tenant("acme", metrics=fake_metrics, discovered=_acme_discovered())
        assert analysis.tenant_name == "acme"


class TestBatchAnalysis:
    def test_failing_tenant_is_dropped(self, fake_metrics, flat, fake_cluster, runtime_overrides_yaml):
        from limits.discovery import ConfigDiscoverer

        fake_cluster.add_configmap("mimir", "runtime-overrides", {"overrides.yaml": runtime_overrides_yaml})
        fake_metrics.trend["acme"] = {"ingestion_rate": flat(100)}
        fake_metrics.trend["globex"] = {"ingestion_rate": flat(100)}
        analyzer = LimitAnalyzer(
            metrics=fake_metrics,
            discoverer=ConfigDiscoverer(cluster=fake_cluster),
            windows=WINDOWS,
            max_workers=2,
            catalog=[get_limit("ingestion_rate")],
        )

        results = analyzer.analyze_tenants(["acme", "", "globex", "acme"])

        assert list(results) == ["acme", "globex"]
        # discovery ran once for the whole batch
        reads = [c for c in fake_cluster.get_calls if c == ("mimir", "runtime-overrides")]
        assert len(reads) == 1

    def test_legacy_reports(self, fake_metrics, flat):
        for window, peak in zip(WINDOWS, (9500, 8000, 7000, 6000)):
            fake_metrics.set_series("acme", window, {"ingestion_rate": flat(peak)})
        analyzer = LimitAnalyzer(
            metrics=fake_metrics,
            discovered=_acme_discovered(10000),
            windows=WINDOWS,
            catalog=[get_limit("ingestion_rate"), get_limit("ingestion_burst_size")],
        )

        report = analyzer.analyze_tenants(["acme"], legacy=True)["acme"]

        check = report.checks[0]
        assert check.observed_peak == 9500
        assert check.risk_level == "critical"
        assert check.recommended_value == pytest.approx(11400)
        assert check.buffer_percent == 20.0
        assert report.missing_limits == ("ingestion_burst_size",)
        # (100*4 + 10 for the missing limit) / 4
        assert report.risk_score == pytest.approx(410 / 4)

    def test_empty_batch(self, fake_metrics):
        assert LimitAnalyzer(metrics=fake_metrics, discovered=DiscoveredLimits()).analyze_tenants([]) == {}
