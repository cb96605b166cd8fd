"""
Test fixtures and configuration for pytest
"""
import pytest
from typing import Dict, List, Optional, Tuple

from cluster.k8s_client import ClusterResourceError, ConfigObject, SourceUnavailable
from concurrency import DeadlineExceeded
from metrics.prometheus_client import MetricsUnavailable


class FakeCluster:
    """In-memory stand-in for KubeClusterClient"""

    def __init__(self):
        self.objects: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.namespaces: List[str] = []
        self.broken_namespaces = set()
        self.slow_namespaces = set()
        self.list_namespaces_error: Optional[Exception] = None
        self.get_calls: List[Tuple[str, str]] = []

    def add_configmap(self, namespace: str, name: str, data: Dict[str, str]) -> None:
        self.objects[(namespace, name)] = dict(data)
        if namespace not in self.namespaces:
            self.namespaces.append(namespace)

    def get_config_object(self, namespace, name, deadline=None):
        self.get_calls.append((namespace, name))
        if deadline is not None:
            deadline.check()
        if (namespace, name) not in self.objects:
            raise SourceUnavailable(f"configmap {namespace}/{name} not found")
        return dict(self.objects[(namespace, name)])

    def list_config_objects(self, namespace, deadline=None):
        if deadline is not None:
            deadline.check()
        if namespace in self.broken_namespaces:
            raise ClusterResourceError(f"failed to list configmaps in {namespace}: Forbidden")
        if namespace in self.slow_namespaces:
            raise DeadlineExceeded(f"deadline exceeded while listing {namespace}")
        return [
            ConfigObject(name=name, namespace=ns, data=dict(data))
            for (ns, name), data in sorted(self.objects.items())
            if ns == namespace
        ]

    def list_namespaces(self, deadline=None):
        if self.list_namespaces_error is not None:
            raise self.list_namespaces_error
        return list(self.namespaces)


class FakeMetrics:
    """In-memory stand-in for MimirMetricsClient

    `series[tenant][window]` holds metric -> samples; `trend[tenant]` answers
    any window not listed explicitly. Windows in `unavailable` raise
    MetricsUnavailable.
    """

    def __init__(self):
        self.series: Dict[str, Dict[str, Dict[str, list]]] = {}
        self.trend: Dict[str, Dict[str, list]] = {}
        self.unavailable = set()
        self.calls: List[Tuple[str, str]] = []

    def set_series(self, tenant: str, window: str, metrics: Dict[str, list]) -> None:
        self.series.setdefault(tenant, {})[window] = metrics

    def get_tenant_series(self, tenant, window, deadline=None, metrics=None):
        self.calls.append((tenant, window))
        if (tenant, window) in self.unavailable or tenant in self.unavailable:
            raise MetricsUnavailable(f"no metrics available for tenant {tenant} over {window}")
        data = self.series.get(tenant, {}).get(window)
        if data is None:
            data = self.trend.get(tenant, {})
        if metrics:
            return {m: list(data.get(m, [])) for m in metrics if m in data}
        return {m: list(v) for m, v in data.items()}

    def get_peak_values(self, tenant, window, deadline=None):
        return {
            metric: max((v for _, v in samples), default=0.0)
            for metric, samples in self.get_tenant_series(tenant, window, deadline).items()
        }


def _flat(value: float, points: int = 3, start: float = 1000.0, step: float = 60.0):
    """Constant series of (timestamp, value) samples"""
    return [(start + i * step, float(value)) for i in range(points)]


@pytest.fixture
def flat():
    """Builder for constant series"""
    return _flat


@pytest.fixture
def fake_cluster():
    return FakeCluster()


@pytest.fixture
def fake_metrics():
    return FakeMetrics()


@pytest.fixture
def runtime_overrides_yaml():
    """Mimir runtime overrides with two tenants and global defaults"""
    return (
        "overrides:\n"
        "  acme:\n"
        "    ingestion_rate: 10000\n"
        "    max_global_series_per_user: 150000\n"
        "  globex:\n"
        "    ingestion_rate: 50000\n"
        "    retention_period: 720h\n"
        "limits:\n"
        "  ingestion_rate: 25000\n"
        "  max_fetched_series_per_query: 100000\n"
        "max_cache_freshness: 10m\n"
        "multi_kv_config: {}\n"
    )


@pytest.fixture
def mock_prometheus_response():
    """Mock Mimir query_range response"""
    return {
        "status": "success",
        "data": {
            "resultType": "matrix",
            "result": [
                {
                    "metric": {"user": "acme"},
                    "values": [[1704355200, "0.5"], [1704355260, "0.6"]]
                }
            ]
        }
    }


@pytest.fixture
def temp_output_dir(tmp_path):
    """Temporary directory for test output files"""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir
