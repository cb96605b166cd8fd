"""
Cluster-resource client - read-only ConfigMap and Namespace access
Thin wrapper over the official kubernetes client. Nothing here patches or
writes cluster state.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from concurrency import Deadline
from config import K8S_TIMEOUT_SECONDS, KUBECONFIG_PATH, KUBE_CONTEXT, PREFER_IN_CLUSTER

logger = logging.getLogger(__name__)


class ClusterResourceError(Exception):
    """Base error for cluster-resource calls"""
    pass


class SourceUnavailable(ClusterResourceError):
    """A requested configuration object does not exist (HTTP 404)"""
    pass


@dataclass
class ConfigObject:
    """A keyed text payload read from the cluster (ConfigMap data)"""
    name: str
    namespace: str
    data: Dict[str, str] = field(default_factory=dict)
    kind: str = "configmap"


def load_kube_config() -> None:
    """Load in-cluster config first, falling back to kubeconfig"""
    if PREFER_IN_CLUSTER:
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
            return
        except config.ConfigException:
            logger.debug("Not running in-cluster, trying kubeconfig")
    if KUBECONFIG_PATH:
        config.load_kube_config(config_file=KUBECONFIG_PATH, context=KUBE_CONTEXT)
    else:
        config.load_kube_config(context=KUBE_CONTEXT)
    logger.info("Loaded kubeconfig")


class KubeClusterClient:
    """Read-only access to ConfigMaps and Namespaces

    Args:
        core_api: Pre-built CoreV1Api (tests); built from kube config when omitted
        timeout: Default per-request timeout in seconds
    """

    def __init__(self, core_api: Optional[client.CoreV1Api] = None, timeout: int = K8S_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._core_api = core_api

    @property
    def core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            load_kube_config()
            self._core_api = client.CoreV1Api()
        return self._core_api

    def _request_timeout(self, deadline: Optional[Deadline]) -> float:
        if deadline is None:
            return self.timeout
        return deadline.timeout_for(self.timeout)

    def get_config_object(self, namespace: str, name: str, deadline: Optional[Deadline] = None) -> Dict[str, str]:
        """Return the data of ConfigMap namespace/name

        Raises:
            SourceUnavailable: The object does not exist
            ClusterResourceError: Any other API failure
        """
        timeout = self._request_timeout(deadline)
        try:
            cm = self.core_api.read_namespaced_config_map(name, namespace, _request_timeout=timeout)
        except ApiException as e:
            if e.status == 404:
                raise SourceUnavailable(f"configmap {namespace}/{name} not found")
            raise ClusterResourceError(f"failed to read configmap {namespace}/{name}: {e.reason}")
        except Exception as e:
            raise ClusterResourceError(f"failed to read configmap {namespace}/{name}: {e}")
        return dict(cm.data or {})

    def list_config_objects(self, namespace: str, deadline: Optional[Deadline] = None) -> List[ConfigObject]:
        """List every ConfigMap in a namespace"""
        timeout = self._request_timeout(deadline)
        try:
            resp = self.core_api.list_namespaced_config_map(namespace, _request_timeout=timeout)
        except ApiException as e:
            raise ClusterResourceError(f"failed to list configmaps in {namespace}: {e.reason}")
        except Exception as e:
            raise ClusterResourceError(f"failed to list configmaps in {namespace}: {e}")
        return [
            ConfigObject(
                name=cm.metadata.name,
                namespace=cm.metadata.namespace or namespace,
                data=dict(cm.data or {}),
            )
            for cm in resp.items
        ]

    def list_namespaces(self, deadline: Optional[Deadline] = None) -> List[str]:
        """List all namespace names"""
        timeout = self._request_timeout(deadline)
        try:
            resp = self.core_api.list_namespace(_request_timeout=timeout)
        except ApiException as e:
            raise ClusterResourceError(f"failed to list namespaces: {e.reason}")
        except Exception as e:
            raise ClusterResourceError(f"failed to list namespaces: {e}")
        return [ns.metadata.name for ns in resp.items]
