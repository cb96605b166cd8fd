"""Orchestrator: discover limits -> analyze tenants -> capacity report -> atomic write.
Read-only against the cluster. All configuration from config.py.
"""
import logging
from datetime import datetime, timezone
import json
import os
import tempfile
from typing import Any, Dict, List, Optional

from config import (
    setup_logging, validate_config, ConfigValidationError, get_output_path,
    MIMIR_NAMESPACE, OUTPUT_DIR, REPORT_TYPE, REQUEST_DEADLINE_SECONDS, TENANTS
)
from cluster.k8s_client import KubeClusterClient
from concurrency import Deadline, DeadlineExceeded
from limits.analyzer import LimitAnalyzer
from limits.discovery import ConfigDiscoverer
from metrics.prometheus_client import MimirMetricsClient
from capacity.planner import CapacityPlanner

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _atomic_write(path: str, data: str) -> None:
    dirp = os.path.dirname(path) or '.'
    fd, tmp = tempfile.mkstemp(prefix='.tmp_report_', dir=dirp)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(data)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def run_once(
    cluster: Optional[KubeClusterClient] = None,
    metrics: Optional[MimirMetricsClient] = None,
    tenants: Optional[List[str]] = None,
    report_type: str = REPORT_TYPE,
    namespace: str = MIMIR_NAMESPACE,
    deadline: Optional[Deadline] = None,
) -> Dict[str, Any]:
    """One full audit pass

    Args:
        cluster: Cluster-resource client (defaults to kube config)
        metrics: Mimir metrics client
        tenants: Tenants to analyze; every discovered tenant when empty
        report_type: weekly | monthly | quarterly
        namespace: Mimir namespace to probe
        deadline: Shared deadline for every collaborator call

    Returns:
        Dict with 'discovery', 'tenant_analysis' and 'capacity_report' sections
    """
    cluster = cluster or KubeClusterClient()
    metrics = metrics or MimirMetricsClient(namespace=namespace)

    # 1) Discovery
    discoverer = ConfigDiscoverer(cluster=cluster)
    discovered = discoverer.discover_all(namespace, deadline=deadline)

    tenant_ids = list(tenants or []) or discovered.tenant_ids()
    logger.info(f"Analyzing {len(tenant_ids)} tenant(s)")

    # 2) Limit analysis
    analyzer = LimitAnalyzer(metrics=metrics, discoverer=discoverer, discovered=discovered, namespace=namespace)
    analyses = analyzer.analyze_tenants(tenant_ids, deadline=deadline)

    # 3) Capacity planning
    planner = CapacityPlanner(metrics=metrics)
    report = planner.generate_report(report_type, tenant_ids, deadline=deadline)

    return {
        'generated_at': _now_iso(),
        'namespace': namespace,
        'tenants': tenant_ids,
        'discovery': discovered.to_dict(),
        'tenant_analysis': {t: a.to_dict() for t, a in analyses.items()},
        'capacity_report': report.to_dict(),
    }


def write_outputs(out: Dict[str, Any], report_type: str = REPORT_TYPE) -> List[str]:
    """Write each section of a run to its own JSON file"""
    paths = {
        get_output_path('limits_discovery'): out['discovery'],
        get_output_path('tenant_analysis'): {
            'generated_at': out['generated_at'],
            'tenants': out['tenant_analysis'],
        },
        get_output_path(f'capacity_{report_type}'): out['capacity_report'],
    }
    written = []
    for path, payload in paths.items():
        _atomic_write(path, json.dumps(payload, indent=2, sort_keys=True))
        logger.info(f"Wrote {path}")
        written.append(path)
    return written


def main() -> int:
    setup_logging()

    try:
        validate_config()
        logger.info("Configuration validated successfully")
    except ConfigValidationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    os.makedirs(OUTPUT_DIR, exist_ok=True)

    logger.info("=" * 60)
    logger.info(f"Starting Mimir limit audit (namespace={MIMIR_NAMESPACE}, report={REPORT_TYPE})")
    logger.info("=" * 60)

    deadline = Deadline(REQUEST_DEADLINE_SECONDS)
    try:
        out = run_once(tenants=TENANTS, report_type=REPORT_TYPE, deadline=deadline)
        output_files = write_outputs(out, REPORT_TYPE)
    except DeadlineExceeded as e:
        logger.error(f"Audit did not finish within {REQUEST_DEADLINE_SECONDS}s: {e}")
        return 1
    except Exception as e:
        logger.error(f"Audit failed: {e}")
        return 1

    logger.info("=" * 60)
    logger.info(f"Audit complete: {len(out['tenant_analysis'])} tenant(s) analyzed")
    logger.info(f"Output files: {output_files}")
    logger.info("=" * 60)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
