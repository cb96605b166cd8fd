import os
import logging
import sys
from typing import Optional, List
from urllib.parse import urlparse

from normalize.series import parse_duration


# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def setup_logging():
    """Configure application-wide logging"""
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default) or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


# =============================================================================
# Mimir / Metrics Configuration
# =============================================================================
# Namespace where Mimir and its runtime overrides live
MIMIR_NAMESPACE: str = os.getenv("MIMIR_NAMESPACE", "mimir")

# Prometheus-compatible query API exposed by Mimir (query-frontend)
MIMIR_API_URL: str = os.getenv("MIMIR_API_URL", "http://localhost:9009/prometheus")

METRICS_TIMEOUT_SECONDS: int = int(os.getenv("METRICS_TIMEOUT_SECONDS", "30"))

# Trailing windows used for usage statistics, largest peak wins
ANALYSIS_WINDOWS: List[str] = _env_list("ANALYSIS_WINDOWS", "48h,7d,30d,60d")

# =============================================================================
# Kubernetes Configuration
# =============================================================================
K8S_TIMEOUT_SECONDS: int = int(os.getenv("K8S_TIMEOUT_SECONDS", "15"))
KUBECONFIG_PATH: Optional[str] = os.getenv("KUBECONFIG_PATH")
KUBE_CONTEXT: Optional[str] = os.getenv("KUBE_CONTEXT")
PREFER_IN_CLUSTER: bool = _env_bool("PREFER_IN_CLUSTER", True)

# Namespaces never scanned for monitoring agent configs
SYSTEM_NAMESPACES: List[str] = _env_list(
    "SYSTEM_NAMESPACES",
    "kube-system,kube-public,kube-node-lease,default,mimir-insights"
)

# =============================================================================
# Analysis Configuration
# =============================================================================
# "percentile" (category-specific percentile multipliers) or "buffer" (flat tier buffer)
RECOMMENDATION_POLICY: str = os.getenv("RECOMMENDATION_POLICY", "percentile")

MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "8"))
REQUEST_DEADLINE_SECONDS: int = int(os.getenv("REQUEST_DEADLINE_SECONDS", "300"))

# =============================================================================
# Run / Output Configuration
# =============================================================================
OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "output")

# weekly | monthly | quarterly
REPORT_TYPE: str = os.getenv("REPORT_TYPE", "weekly")

# Explicit tenant list; empty means every discovered tenant
TENANTS: List[str] = _env_list("TENANTS", "")


def get_output_path(name: str) -> str:
    """Get output file path: {OUTPUT_DIR}/{name}.json"""
    return os.path.join(OUTPUT_DIR, f"{name}.json")


__all__ = [
    "MIMIR_NAMESPACE",
    "MIMIR_API_URL",
    "METRICS_TIMEOUT_SECONDS",
    "ANALYSIS_WINDOWS",
    "K8S_TIMEOUT_SECONDS",
    "KUBECONFIG_PATH",
    "KUBE_CONTEXT",
    "PREFER_IN_CLUSTER",
    "SYSTEM_NAMESPACES",
    "RECOMMENDATION_POLICY",
    "MAX_WORKERS",
    "REQUEST_DEADLINE_SECONDS",
    "OUTPUT_DIR",
    "REPORT_TYPE",
    "TENANTS",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "setup_logging",
    "validate_config",
    "get_output_path",
]


# =============================================================================
# Configuration Validation
# =============================================================================
class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


def _validate_positive_int(name: str, value: int) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name} must be positive, got {value}")


def _validate_url(name: str, value: str) -> None:
    try:
        result = urlparse(value)
        if not all([result.scheme, result.netloc]):
            raise ValueError("Missing scheme or netloc")
        if result.scheme not in ('http', 'https'):
            raise ValueError(f"Invalid scheme: {result.scheme}")
    except Exception as e:
        raise ConfigValidationError(f"{name} is not a valid URL: {value} ({e})")


def _validate_policy(value: str) -> None:
    if value not in ('percentile', 'buffer'):
        raise ConfigValidationError(
            f"RECOMMENDATION_POLICY must be 'percentile' or 'buffer', got '{value}'"
        )


def _validate_report_type(value: str) -> None:
    if value not in ('weekly', 'monthly', 'quarterly'):
        raise ConfigValidationError(
            f"REPORT_TYPE must be 'weekly', 'monthly' or 'quarterly', got '{value}'"
        )


def _validate_windows(windows: List[str]) -> None:
    if not windows:
        raise ConfigValidationError("ANALYSIS_WINDOWS must list at least one window")
    bad = [w for w in windows if not parse_duration(w)]
    if bad:
        raise ConfigValidationError(
            f"ANALYSIS_WINDOWS entries must be durations like 48h or 7d, got {', '.join(bad)}"
        )


def validate_config() -> None:
    """Validate all configuration values on startup

    Raises:
        ConfigValidationError: If any configuration value is invalid
    """
    errors = []

    for name, value in (
        ("METRICS_TIMEOUT_SECONDS", METRICS_TIMEOUT_SECONDS),
        ("K8S_TIMEOUT_SECONDS", K8S_TIMEOUT_SECONDS),
        ("MAX_WORKERS", MAX_WORKERS),
        ("REQUEST_DEADLINE_SECONDS", REQUEST_DEADLINE_SECONDS),
    ):
        try:
            _validate_positive_int(name, value)
        except ConfigValidationError as e:
            errors.append(str(e))

    try:
        _validate_url("MIMIR_API_URL", MIMIR_API_URL)
    except ConfigValidationError as e:
        errors.append(str(e))

    try:
        _validate_policy(RECOMMENDATION_POLICY)
    except ConfigValidationError as e:
        errors.append(str(e))

    try:
        _validate_report_type(REPORT_TYPE)
    except ConfigValidationError as e:
        errors.append(str(e))

    try:
        _validate_windows(ANALYSIS_WINDOWS)
    except ConfigValidationError as e:
        errors.append(str(e))

    if not MIMIR_NAMESPACE:
        errors.append("MIMIR_NAMESPACE must not be empty")

    if errors:
        raise ConfigValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )
