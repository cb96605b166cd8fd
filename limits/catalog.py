"""
Limit catalog - every Mimir per-tenant limit the analyzer knows about
Built once at import; read-only afterwards.
"""
from dataclasses import dataclass, asdict
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class LimitDefinition:
    name: str
    description: str
    default_value: float
    unit: str
    category: str

    @property
    def tier(self) -> str:
        """Coarse tier used by the flat-buffer policy"""
        return CATEGORY_TIERS.get(self.category, "regular")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Flat-buffer tier per category: critical 20%, important 15%, regular 10%
CATEGORY_TIERS: Mapping[str, str] = MappingProxyType({
    "ingestion": "critical",
    "write_path": "critical",
    "memory": "critical",
    "query": "important",
    "query_frontend": "important",
    "store_gateway": "important",
    "alertmanager": "important",
    "ruler": "important",
})


def _d(name: str, description: str, default: float, unit: str, category: str) -> LimitDefinition:
    return LimitDefinition(name, description, float(default), unit, category)


_DEFINITIONS: Tuple[LimitDefinition, ...] = (
    # Ingestion
    _d("ingestion_rate", "Maximum ingestion rate in samples per second", 10000, "samples/sec", "ingestion"),
    _d("ingestion_burst_size", "Maximum burst size for ingestion", 20000, "samples", "ingestion"),
    _d("max_global_series_per_user", "Maximum number of series per user globally", 5000000, "series", "ingestion"),
    _d("max_series_per_user", "Maximum number of series per user", 1000000, "series", "ingestion"),
    _d("max_series_per_metric", "Maximum number of series per metric", 100000, "series", "ingestion"),
    _d("max_global_series_per_metric", "Maximum number of series per metric globally", 200000, "series", "ingestion"),
    _d("max_metadata_per_user", "Maximum metadata entries per user", 100000, "entries", "ingestion"),
    _d("max_label_name_length", "Maximum length of label names", 63, "characters", "ingestion"),
    _d("max_label_value_length", "Maximum length of label values", 2048, "characters", "ingestion"),
    _d("max_label_names_per_series", "Maximum number of label names per series", 30, "labels", "ingestion"),
    _d("max_label_value_per_metric", "Maximum number of label values per metric", 100, "values", "ingestion"),
    _d("max_samples_per_series", "Maximum samples per series", 1000000, "samples", "ingestion"),
    _d("max_ingestion_rate_spike", "Maximum ingestion rate spike", 50000, "samples/sec", "ingestion"),
    _d("max_exemplars_per_user", "Maximum exemplars per user", 100000, "exemplars", "ingestion"),
    _d("max_global_exemplars_per_user", "Maximum exemplars per user globally", 100000, "exemplars", "ingestion"),
    _d("max_metadata_per_metric", "Maximum metadata per metric", 1000, "entries", "ingestion"),
    _d("request_rate", "Maximum push requests per second", 0, "requests/sec", "ingestion"),
    _d("request_burst_size", "Maximum push request burst", 0, "requests", "ingestion"),
    _d("out_of_order_time_window", "Accepted out-of-order sample window", 0, "seconds", "ingestion"),

    # Query
    _d("max_fetched_series_per_query", "Maximum series fetched per query", 500000, "series", "query"),
    _d("max_fetched_chunks_per_query", "Maximum chunks fetched per query", 2000000, "chunks", "query"),
    _d("max_fetched_chunk_bytes_per_query", "Maximum chunk bytes fetched per query", 0, "bytes", "query"),
    _d("max_query_parallelism", "Maximum query parallelism", 32, "parallel", "query"),
    _d("max_query_series", "Maximum series per query", 100000, "series", "query"),
    _d("max_query_lookback", "Maximum query lookback period", 168, "hours", "query"),
    _d("max_query_length", "Maximum query length", 10000, "characters", "query"),
    _d("max_concurrent_queries", "Maximum concurrent queries", 20, "queries", "query"),
    _d("max_concurrent_requests", "Maximum concurrent requests", 100, "requests", "query"),
    _d("max_samples_per_query", "Maximum samples per query", 1000000, "samples", "query"),
    _d("max_query_time", "Maximum query execution time", 300, "seconds", "query"),
    _d("split_queries_by_interval", "Split queries by interval", 24, "hours", "query"),
    _d("query_ingesters_within", "Query ingesters within time", 12, "hours", "query"),
    _d("max_query_result_bytes", "Maximum query result size", 100000000, "bytes", "query"),
    _d("max_cache_freshness", "Most recent window never served from cache", 600, "seconds", "query"),

    # Query frontend / cache / scheduler
    _d("query_split_interval", "Query split interval", 24, "hours", "query_frontend"),
    _d("query_shard_size_limit", "Query shard size limit", 100000, "series", "query_frontend"),
    _d("results_cache_ttl", "Results cache TTL", 3600, "seconds", "query_frontend"),
    _d("min_sharding_lookback", "Minimum sharding lookback", 12, "hours", "query_frontend"),
    _d("shard_by_all_labels", "Shard by all labels", 1, "boolean", "query_frontend"),
    _d("max_outstanding_requests_per_tenant", "Maximum outstanding requests per tenant", 100, "requests", "query_frontend"),
    _d("max_queriers_per_tenant", "Maximum queriers serving one tenant", 0, "queriers", "query_frontend"),

    # Memory
    _d("ingester_max_inflight_push_requests_bytes", "Ingester in-flight push request memory", 1073741824, "bytes", "memory"),
    _d("distributor_max_inflight_push_requests_bytes", "Distributor in-flight push request memory", 536870912, "bytes", "memory"),
    _d("max_chunks_memory_bytes_per_query", "Chunk memory a single query may hold", 268435456, "bytes", "memory"),
    _d("ingester_memory_limit_bytes", "Ingester working-set memory ceiling", 8589934592, "bytes", "memory"),
    _d("store_gateway_memory_limit_bytes", "Store-gateway working-set memory ceiling", 4294967296, "bytes", "memory"),

    # Alertmanager
    _d("alertmanager_max_alerts", "Maximum alerts in Alertmanager", 10000, "alerts", "alertmanager"),
    _d("alertmanager_max_alerts_size_bytes", "Maximum total size of alerts", 0, "bytes", "alertmanager"),
    _d("alertmanager_max_config_size_bytes", "Maximum Alertmanager config size", 1048576, "bytes", "alertmanager"),
    _d("alertmanager_max_templates_count", "Maximum Alertmanager templates", 100, "templates", "alertmanager"),
    _d("alertmanager_max_dispatcher_aggregation_groups", "Maximum dispatcher aggregation groups", 0, "groups", "alertmanager"),
    _d("alertmanager_notification_rate_limit", "Notification rate limit", 0, "notifications/sec", "alertmanager"),

    # Ruler
    _d("ruler_max_rules_per_rule_group", "Maximum rules per rule group", 20, "rules", "ruler"),
    _d("ruler_max_rule_groups_per_tenant", "Maximum rule groups per tenant", 70, "groups", "ruler"),
    _d("ruler_max_total_rules_per_tenant", "Maximum total rules per tenant", 1000, "rules", "ruler"),
    _d("ruler_evaluation_interval", "Ruler evaluation interval", 60, "seconds", "ruler"),
    _d("ruler_remote_write_url", "Ruler remote write URL", 0, "url", "ruler"),
    _d("ruler_evaluation_delay_duration", "Delay applied to rule evaluation", 60, "seconds", "ruler"),

    # Compactor / retention
    _d("retention_period", "Data retention period", 744, "hours", "compactor"),
    _d("retention_stream", "Retention stream configuration", 0, "stream", "compactor"),
    _d("compactor_max_block_bytes", "Maximum block size for compaction", 1073741824, "bytes", "compactor"),
    _d("compactor_max_compaction_concurrency", "Maximum compaction concurrency", 1, "concurrent", "compactor"),
    _d("compactor_blocks_retention_period", "Block retention enforced by the compactor", 0, "hours", "compactor"),
    _d("compactor_split_groups", "Compactor split groups", 1, "groups", "compactor"),

    # Metadata & exemplars
    _d("max_exemplars_per_series", "Maximum exemplars per series", 100, "exemplars", "metadata"),
    _d("max_exemplars_size", "Maximum exemplars size", 1048576, "bytes", "metadata"),
    _d("max_metadata_size_per_metric", "Maximum metadata size per metric", 1048576, "bytes", "metadata"),

    # Runtime / miscellaneous
    _d("enforce_metric_name", "Enforce metric name validation", 1, "boolean", "runtime"),
    _d("creation_grace_period", "Creation grace period", 10, "minutes", "runtime"),
    _d("per_tenant_override_config_ttl", "Per-tenant override config TTL", 300, "seconds", "runtime"),
    _d("allow_infinite_retention", "Allow infinite retention", 0, "boolean", "runtime"),
    _d("allow_ingester_idle_timeout", "Allow ingester idle timeout", 0, "boolean", "runtime"),

    # Store-gateway / block fetching
    _d("store_gateway_max_series_per_query", "Store gateway max series per query", 100000, "series", "store_gateway"),
    _d("store_gateway_max_chunks_per_query", "Store gateway max chunks per query", 2000000, "chunks", "store_gateway"),
    _d("store_gateway_max_blocks_per_query", "Store gateway max blocks per query", 100, "blocks", "store_gateway"),
    _d("store_gateway_tenant_shard_size", "Store gateways per tenant shard", 0, "instances", "store_gateway"),

    # Write path
    _d("distributor_shard_by_all_labels", "Distributor shard by all labels", 0, "boolean", "write_path"),
    _d("shard_ingest_by_label_name", "Shard ingest by label name", 0, "label", "write_path"),
    _d("max_distributor_concurrent_streams", "Maximum distributor concurrent streams", 1000, "streams", "write_path"),
    _d("max_distributor_concurrent_series", "Maximum distributor concurrent series", 10000, "series", "write_path"),
    _d("ingestion_tenant_shard_size", "Ingesters per tenant shard", 0, "instances", "write_path"),

    # Feature toggles
    _d("enable_enhanced_read_path", "Enable enhanced read path", 0, "boolean", "features"),
    _d("enable_query_stats", "Enable query statistics", 1, "boolean", "features"),
    _d("enable_auto_block_compaction", "Enable auto block compaction", 1, "boolean", "features"),
    _d("enable_alertmanager_multitenancy", "Enable Alertmanager multitenancy", 1, "boolean", "features"),
    _d("enable_streaming_ingestion", "Enable streaming ingestion", 0, "boolean", "features"),
)

LIMIT_CATALOG: Tuple[LimitDefinition, ...] = _DEFINITIONS

_BY_NAME: Mapping[str, LimitDefinition] = MappingProxyType({d.name: d for d in _DEFINITIONS})


def get_limit(name: str) -> Optional[LimitDefinition]:
    return _BY_NAME.get(name)


def by_category(category: str) -> List[LimitDefinition]:
    return [d for d in LIMIT_CATALOG if d.category == category]


def categories() -> List[str]:
    seen: List[str] = []
    for d in LIMIT_CATALOG:
        if d.category not in seen:
            seen.append(d.category)
    return seen
