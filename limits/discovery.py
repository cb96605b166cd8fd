"""
Config discovery - builds the global and per-tenant limit view from ConfigMaps
There is no canonical schema; objects are found by name heuristics and their
YAML payloads are read leniently. Four stages run in order against the same
accumulator:

1. runtime overrides (first well-known name found in the Mimir namespace)
2. main Mimir config (first well-known name found in the Mimir namespace)
3. tenant-named ConfigMaps in the Mimir namespace
4. monitoring-agent ConfigMaps in every non-system namespace, scanned for
   X-Scope-OrgID headers (tenant discovery only)

A missing object or failed list call degrades that stage to "found nothing".
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import yaml

from cluster.k8s_client import ClusterResourceError, KubeClusterClient, SourceUnavailable
from concurrency import Deadline, DeadlineExceeded, bounded_map
from config import MAX_WORKERS, MIMIR_NAMESPACE, SYSTEM_NAMESPACES
from limits import rules
from limits.models import ConfigSource, DiscoveredLimits, TenantLimitSet
from limits.values import LimitValue, coerce_text, from_raw

logger = logging.getLogger(__name__)


class ParseFailure(Exception):
    """A structured payload could not be decoded"""
    pass


def load_mapping(text: str, origin: str) -> Dict[str, Any]:
    """Decode a YAML document that must be a mapping (empty document -> {}).

    Raises:
        ParseFailure: invalid YAML, or a top level that is not a mapping
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseFailure(f"{origin}: invalid YAML: {e}")
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ParseFailure(f"{origin}: expected a mapping, got {type(doc).__name__}")
    return {str(k): v for k, v in doc.items()}


def _wrap(values: Dict[Any, Any]) -> Dict[str, LimitValue]:
    return {str(k): from_raw(v) for k, v in values.items() if v is not None}


def _merge_in_order(discovered: DiscoveredLimits, partials: Dict[str, DiscoveredLimits]) -> None:
    # namespace order keeps provenance strings deterministic
    for ns in sorted(partials):
        discovered.merge(partials[ns])


class ConfigDiscoverer:
    """Discovers Mimir limits scattered across cluster ConfigMaps

    Args:
        cluster: Cluster-resource client (get/list ConfigMaps, list namespaces)
        system_namespaces: Namespaces skipped by the cross-namespace scan
        max_workers: Pool size for the cross-namespace scan
    """

    def __init__(
        self,
        cluster: Optional[KubeClusterClient] = None,
        system_namespaces: Sequence[str] = SYSTEM_NAMESPACES,
        max_workers: int = MAX_WORKERS,
    ):
        self.cluster = cluster or KubeClusterClient()
        self.system_namespaces = list(system_namespaces)
        self.max_workers = max_workers

    def discover_all(self, namespace: str = MIMIR_NAMESPACE, deadline: Optional[Deadline] = None) -> DiscoveredLimits:
        """Run every discovery stage and return what was found.

        Never raises for cluster or payload problems. If the deadline runs
        out the stages completed so far are returned.
        """
        logger.info(f"Starting limit discovery in namespace {namespace}")
        discovered = DiscoveredLimits()

        stages = (
            ("runtime overrides", lambda: self._discover_runtime_overrides(namespace, discovered, deadline)),
            ("main config", lambda: self._discover_main_config(namespace, discovered, deadline)),
            ("tenant configs", lambda: self._discover_tenant_configs(namespace, discovered, deadline)),
            ("namespace scan", lambda: self._discover_namespace_configs(discovered, deadline)),
        )
        for label, stage in stages:
            try:
                stage()
            except DeadlineExceeded as e:
                logger.warning(f"Discovery stopped during {label}: {e}; returning partial results")
                break
            except ClusterResourceError as e:
                logger.warning(f"Failed to discover {label}: {e}")

        logger.info(
            f"Discovery completed: {len(discovered.global_limits)} global limits, "
            f"{len(discovered.tenant_limits)} tenants from {len(discovered.sources)} sources"
        )
        return discovered

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------
    def _first_existing(
        self, namespace: str, names: Sequence[str], deadline: Optional[Deadline]
    ) -> Optional[tuple]:
        for name in names:
            try:
                data = self.cluster.get_config_object(namespace, name, deadline=deadline)
            except SourceUnavailable:
                logger.debug(f"ConfigMap {namespace}/{name} not present")
                continue
            except ClusterResourceError as e:
                logger.warning(f"Could not read {namespace}/{name}: {e}")
                continue
            return name, data
        return None

    def _discover_runtime_overrides(
        self, namespace: str, discovered: DiscoveredLimits, deadline: Optional[Deadline]
    ) -> None:
        found = self._first_existing(namespace, rules.RUNTIME_OVERRIDE_NAMES, deadline)
        if found is None:
            logger.info("No runtime overrides ConfigMap found")
            return
        name, data = found
        logger.info(f"Found runtime overrides ConfigMap: {name}")
        discovered.sources.append(ConfigSource(name, namespace, "runtime-override", sorted(data)))

        for key in sorted(data):
            if not rules.is_structured_key(key):
                continue
            try:
                doc = load_mapping(data[key], f"{name}/{key}")
            except ParseFailure as e:
                logger.warning(f"Skipping runtime overrides payload: {e}")
                continue
            self._apply_overrides_document(doc, discovered)

    def _apply_overrides_document(self, doc: Dict[str, Any], discovered: DiscoveredLimits) -> None:
        overrides = doc.get("overrides")
        if isinstance(overrides, dict):
            for tenant_key, tenant_limits in overrides.items():
                if not isinstance(tenant_limits, dict):
                    logger.warning(f"Ignoring overrides for tenant {tenant_key}: not a mapping")
                    continue
                discovered.merge_tenant(TenantLimitSet(
                    tenant_id=str(tenant_key),
                    limits=_wrap(tenant_limits),
                    source="runtime-override",
                ))

        limits = doc.get("limits")
        if isinstance(limits, dict):
            discovered.global_limits.update(_wrap(limits))

        for key, value in doc.items():
            if key in ("overrides", "limits") or isinstance(value, (dict, list)):
                continue
            if rules.is_limit_key(key) and value is not None:
                discovered.global_limits[key] = from_raw(value)

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------
    def _discover_main_config(
        self, namespace: str, discovered: DiscoveredLimits, deadline: Optional[Deadline]
    ) -> None:
        found = self._first_existing(namespace, rules.MAIN_CONFIG_NAMES, deadline)
        if found is None:
            logger.info("No main Mimir config ConfigMap found")
            return
        name, data = found
        logger.info(f"Found main Mimir config ConfigMap: {name}")
        discovered.sources.append(ConfigSource(name, namespace, "configmap", sorted(data)))

        for key in sorted(data):
            if not rules.is_structured_key(key):
                continue
            try:
                doc = load_mapping(data[key], f"{name}/{key}")
            except ParseFailure as e:
                logger.warning(f"Skipping main config payload: {e}")
                continue

            limits = doc.get("limits")
            if isinstance(limits, dict):
                discovered.global_limits.update(_wrap(limits))

            for section in rules.SUBSYSTEM_SECTIONS:
                body = doc.get(section)
                if not isinstance(body, dict):
                    continue
                for k, v in body.items():
                    if rules.is_limit_key(str(k)) and v is not None:
                        discovered.global_limits[f"{section}.{k}"] = from_raw(v)

    # ------------------------------------------------------------------
    # Stage 3
    # ------------------------------------------------------------------
    def _discover_tenant_configs(
        self, namespace: str, discovered: DiscoveredLimits, deadline: Optional[Deadline]
    ) -> None:
        for obj in self.cluster.list_config_objects(namespace, deadline=deadline):
            if not rules.is_tenant_object(obj.name) or rules.is_well_known_object(obj.name):
                continue
            logger.info(f"Found tenant config ConfigMap: {obj.name}")
            discovered.sources.append(ConfigSource(obj.name, obj.namespace, obj.kind, sorted(obj.data)))

            tenant_id = rules.extract_tenant_id(obj.name)
            limits = self.parse_tenant_payload(obj.name, obj.data)
            if limits:
                discovered.merge_tenant(TenantLimitSet(tenant_id=tenant_id, limits=limits, source="configmap"))

    @staticmethod
    def parse_tenant_payload(object_name: str, data: Dict[str, str]) -> Dict[str, LimitValue]:
        """Limits held by a tenant ConfigMap.

        YAML entries contribute every key; flat entries only limit-like keys,
        coerced to int, float or duration where possible.
        """
        limits: Dict[str, LimitValue] = {}
        for key in sorted(data):
            value = data[key]
            if rules.is_structured_key(key):
                try:
                    doc = load_mapping(value, f"{object_name}/{key}")
                except ParseFailure as e:
                    logger.warning(f"Skipping tenant payload: {e}")
                    continue
                limits.update(_wrap(doc))
            elif rules.is_limit_key(key):
                limits[key] = coerce_text(value)
        return limits

    # ------------------------------------------------------------------
    # Stage 4
    # ------------------------------------------------------------------
    def _discover_namespace_configs(self, discovered: DiscoveredLimits, deadline: Optional[Deadline]) -> None:
        namespaces = [
            ns for ns in self.cluster.list_namespaces(deadline=deadline)
            if not rules.is_system_namespace(ns, self.system_namespaces)
        ]
        logger.info(f"Scanning {len(namespaces)} namespaces for monitoring configs")

        try:
            partials = bounded_map(
                lambda ns: self._scan_namespace(ns, deadline),
                namespaces,
                max_workers=self.max_workers,
                deadline=deadline,
                label="namespace",
            )
        except DeadlineExceeded as e:
            _merge_in_order(discovered, e.partial_results)
            raise
        _merge_in_order(discovered, partials)

    def _scan_namespace(self, namespace: str, deadline: Optional[Deadline]) -> DiscoveredLimits:
        partial = DiscoveredLimits()
        for obj in self.cluster.list_config_objects(namespace, deadline=deadline):
            if not rules.is_monitoring_object(obj.name):
                continue
            partial.sources.append(ConfigSource(obj.name, obj.namespace, obj.kind, sorted(obj.data)))
            for key in sorted(obj.data):
                for org_id in rules.extract_org_ids(obj.data[key] or ""):
                    logger.debug(f"Found tenant {org_id} in {namespace}/{obj.name}")
                    partial.merge_tenant(TenantLimitSet(tenant_id=org_id, source=f"namespace:{namespace}"))
        return partial


def discover_all_limits(
    namespace: str = MIMIR_NAMESPACE,
    cluster: Optional[KubeClusterClient] = None,
    deadline: Optional[Deadline] = None,
) -> DiscoveredLimits:
    return ConfigDiscoverer(cluster=cluster).discover_all(namespace, deadline=deadline)
