"""
Name and content heuristics used by discovery.

Each rule table is plain data so it can be fixtured on its own; the
predicates below only walk the tables.
"""
import re
from typing import List, Optional, Pattern, Sequence, Tuple

# Substrings marking a configuration key as a limit
LIMIT_KEY_KEYWORDS: Tuple[str, ...] = (
    "limit",
    "max",
    "rate",
    "burst",
    "series",
    "ingestion",
    "query",
    "retention",
)

# Substrings marking a ConfigMap name as tenant-specific
TENANT_OBJECT_PATTERNS: Tuple[str, ...] = (
    "tenant-",
    "-tenant",
    "-limits",
    "-overrides",
    "user-",
    "org-",
)

# First capture group is the tenant ID; first match wins
TENANT_ID_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"tenant-(.+)"),
    re.compile(r"(.+)-tenant"),
    re.compile(r"(.+)-limits"),
    re.compile(r"(.+)-overrides"),
    re.compile(r"user-(.+)"),
    re.compile(r"org-(.+)"),
)

# Substrings marking a ConfigMap as monitoring-agent configuration
MONITORING_OBJECT_PATTERNS: Tuple[str, ...] = (
    "alloy",
    "grafana-agent",
    "prometheus",
    "agent-config",
    "monitoring",
    "scrape",
)

RUNTIME_OVERRIDE_NAMES: Tuple[str, ...] = (
    "runtime-overrides",
    "mimir-runtime-overrides",
    "cortex-runtime-overrides",
    "overrides",
    "mimir-overrides",
)

MAIN_CONFIG_NAMES: Tuple[str, ...] = (
    "mimir-config",
    "cortex-config",
    "mimir",
    "cortex",
)

# Main-config sections whose limit-like keys are lifted as "<section>.<key>"
SUBSYSTEM_SECTIONS: Tuple[str, ...] = ("distributor", "ingester", "querier")

ORG_ID_HEADER = "x-scope-orgid"

STRUCTURED_SUFFIXES: Tuple[str, ...] = (".yaml", ".yml")


def is_limit_key(key: str) -> bool:
    lowered = key.lower()
    return any(word in lowered for word in LIMIT_KEY_KEYWORDS)


def is_tenant_object(name: str) -> bool:
    lowered = name.lower()
    return any(p in lowered for p in TENANT_OBJECT_PATTERNS)


def is_well_known_object(name: str) -> bool:
    """Runtime-override and main-config objects, read by their own stages"""
    return name in RUNTIME_OVERRIDE_NAMES or name in MAIN_CONFIG_NAMES


def is_monitoring_object(name: str) -> bool:
    lowered = name.lower()
    return any(p in lowered for p in MONITORING_OBJECT_PATTERNS)


def is_system_namespace(namespace: str, system_namespaces: Sequence[str]) -> bool:
    return namespace in system_namespaces


def is_structured_key(data_key: str) -> bool:
    return data_key.lower().endswith(STRUCTURED_SUFFIXES)


def extract_tenant_id(object_name: str) -> str:
    """Tenant ID from a ConfigMap name; the whole name when no pattern matches."""
    for pattern in TENANT_ID_PATTERNS:
        m = pattern.search(object_name)
        if m and m.group(1):
            return m.group(1)
    return object_name


def extract_org_ids(text: str) -> List[str]:
    """X-Scope-OrgID values found in agent configuration text.

    Matches any line naming the header (case-insensitive) that carries a
    `:`; the value after the first colon is stripped of whitespace and quotes.
    """
    found: List[str] = []
    for line in text.splitlines():
        if ORG_ID_HEADER not in line.lower() or ":" not in line:
            continue
        value = _org_id_from_line(line)
        if value and value not in found:
            found.append(value)
    return found


def _org_id_from_line(line: str) -> Optional[str]:
    lowered = line.lower()
    # start after the header so "X-Scope-OrgID: x" and "headers: {X-Scope-OrgID: x}" both work
    start = lowered.index(ORG_ID_HEADER) + len(ORG_ID_HEADER)
    rest = line[start:]
    if ":" not in rest:
        rest = line
    value = rest.split(":", 1)[1]
    value = value.strip().strip("\"'").strip().rstrip("}, ").strip("\"'")
    return value or None
