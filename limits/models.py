"""
Discovery results: global limits, per-tenant limit sets and their provenance.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from limits.values import ABSENT, LimitValue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConfigSource:
    name: str
    namespace: str
    kind: str  # configmap | secret | runtime-override
    discovered_keys: List[str] = field(default_factory=list)
    last_seen: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "kind": self.kind,
            "discovered_keys": list(self.discovered_keys),
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass
class TenantLimitSet:
    tenant_id: str
    limits: Dict[str, LimitValue] = field(default_factory=dict)
    source: str = ""
    last_updated: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "limits": {k: v.to_json() for k, v in sorted(self.limits.items())},
            "source": self.source,
            "last_updated": self.last_updated.isoformat(),
        }


def _join_sources(existing: str, incoming: str) -> str:
    if not existing:
        return incoming
    if not incoming or incoming in existing.split(","):
        return existing
    return f"{existing},{incoming}"


@dataclass
class DiscoveredLimits:
    global_limits: Dict[str, LimitValue] = field(default_factory=dict)
    tenant_limits: Dict[str, TenantLimitSet] = field(default_factory=dict)
    sources: List[ConfigSource] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_utcnow)

    def merge_tenant(self, incoming: TenantLimitSet) -> TenantLimitSet:
        """Fold a tenant's limits into the accumulator.

        Entries are keyed by tenant ID. Limits are unioned, a later value
        for the same key wins, and an empty incoming set never clears a
        populated one. Provenance strings accumulate, comma separated.
        """
        current = self.tenant_limits.get(incoming.tenant_id)
        if current is None:
            self.tenant_limits[incoming.tenant_id] = TenantLimitSet(
                tenant_id=incoming.tenant_id,
                limits=dict(incoming.limits),
                source=incoming.source,
                last_updated=incoming.last_updated,
            )
            return self.tenant_limits[incoming.tenant_id]

        current.limits.update(incoming.limits)
        current.source = _join_sources(current.source, incoming.source)
        current.last_updated = max(current.last_updated, incoming.last_updated)
        return current

    def merge(self, other: "DiscoveredLimits") -> None:
        """Fold a partial result (e.g. one namespace's scan) into this one."""
        self.global_limits.update(other.global_limits)
        for tenant_set in other.tenant_limits.values():
            self.merge_tenant(tenant_set)
        self.sources.extend(other.sources)

    def tenant_ids(self) -> List[str]:
        return sorted(self.tenant_limits)

    def resolve_tenant(self, tenant_id: str) -> Optional[TenantLimitSet]:
        """Tenant entry by ID, retrying common naming variants.

        Tried in order: the ID itself, tenant-{id}, {id}-tenant, lower case,
        upper case. None when nothing matches.
        """
        for candidate in (
            tenant_id,
            f"tenant-{tenant_id}",
            f"{tenant_id}-tenant",
            tenant_id.lower(),
            tenant_id.upper(),
        ):
            entry = self.tenant_limits.get(candidate)
            if entry is not None:
                return entry
        return None

    def effective_limits(self, tenant_id: str) -> Dict[str, LimitValue]:
        """Global limits overlaid with the tenant's own; tenant values win."""
        effective = dict(self.global_limits)
        entry = self.resolve_tenant(tenant_id)
        if entry is not None:
            effective.update(entry.limits)
        return effective

    def lookup(self, tenant_id: str, key: str) -> LimitValue:
        return self.effective_limits(tenant_id).get(key, ABSENT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_limits": {k: v.to_json() for k, v in sorted(self.global_limits.items())},
            "tenant_limits": {
                tid: self.tenant_limits[tid].to_dict() for tid in self.tenant_ids()
            },
            "sources": [s.to_dict() for s in self.sources],
            "timestamp": self.timestamp.isoformat(),
        }
